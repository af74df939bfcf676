"""
Prompt 加载器测试
"""
import pytest

from app.agents.prompts import PromptLoader


@pytest.fixture
def loader(tmp_path) -> PromptLoader:
    (tmp_path / "demo.yaml").write_text(
        "common:\n"
        "  user_template: \"维度：{dimension}\\n{input}\"\n"
        "skill:\n"
        "  system: |\n"
        "    输出 JSON：{\"score\": 0}\n",
        encoding="utf-8",
    )
    return PromptLoader(base_path=tmp_path)


def test_format_template(loader: PromptLoader):
    assert loader.get("demo", "common.user_template", dimension="技能", input="{}") == "维度：技能\n{}"


def test_system_prompt_keeps_braces(loader: PromptLoader):
    assert loader.get("demo", "skill.system").strip() == '输出 JSON：{"score": 0}'


def test_missing_key(loader: PromptLoader):
    with pytest.raises(KeyError):
        loader.get("demo", "skill.user")


def test_missing_file(loader: PromptLoader):
    with pytest.raises(FileNotFoundError):
        loader.load("missing")


def test_cache_and_hot_reload(tmp_path, loader: PromptLoader):
    loader.load("demo")
    (tmp_path / "demo.yaml").write_text("skill:\n  system: 新版本\n", encoding="utf-8")
    assert loader.get("demo", "skill.system").startswith("输出 JSON")

    loader.clear_cache()
    assert loader.get("demo", "skill.system") == "新版本"

    hot = PromptLoader(base_path=tmp_path, hot_reload=True)
    assert hot.get("demo", "skill.system") == "新版本"
