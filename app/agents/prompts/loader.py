# -*- coding: utf-8 -*-
"""
Prompt 加载器模块。

加载 YAML 格式的 prompt 配置，提供缓存和 {variable} 模板变量替换。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml
from loguru import logger

from app.core.config import settings


class PromptLoader:
    """
    Prompt 配置加载器。

    开发环境下可开启热加载，每次读取都重新解析文件。
    """

    def __init__(self, base_path: Path | str | None = None, hot_reload: bool = False):
        if base_path is None:
            base_path = Path(__file__).parent
        self.base_path = Path(base_path)
        self.hot_reload = hot_reload
        self._cache: Dict[str, Dict[str, Any]] = {}

    def load(self, name: str) -> Dict[str, Any]:
        """
        加载指定名称的 YAML 配置。

        Args:
            name: 配置文件名（不含 .yaml 后缀）

        Raises:
            FileNotFoundError: 配置文件不存在
            yaml.YAMLError: YAML 解析失败
        """
        if not self.hot_reload and name in self._cache:
            return self._cache[name]

        file_path = self.base_path / f"{name}.yaml"
        if not file_path.exists():
            raise FileNotFoundError(f"Prompt 配置文件不存在: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error("解析 YAML 失败 {}: {}", file_path, e)
            raise
        self._cache[name] = data
        return data

    def _lookup(self, name: str, key: str) -> Any:
        value: Any = self.load(name)
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                raise KeyError(f"Prompt 键不存在: {name}.{key}")
            value = value[part]
        return value

    def get(self, name: str, key: str, **kwargs) -> str:
        """
        获取 prompt 并替换模板变量。

        key 支持点号分隔的嵌套键，如 "skill.system"。
        """
        value = self._lookup(name, key)
        if not isinstance(value, str):
            raise TypeError(f"期望字符串类型的 prompt，但 {name}.{key} 是 {type(value).__name__}")
        if not kwargs:
            return value
        try:
            return value.format(**kwargs)
        except KeyError as e:
            logger.warning("Prompt 模板变量缺失: {} in {}.{}", e, name, key)
            return value

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("Prompt 缓存已清除")


_loader: PromptLoader | None = None


def get_prompt_loader() -> PromptLoader:
    """获取全局 PromptLoader 单例，开发环境默认热加载"""
    global _loader
    if _loader is None:
        _loader = PromptLoader(hot_reload=settings.is_development)
    return _loader


def get_prompt(name: str, key: str, **kwargs) -> str:
    """
    便捷函数：获取格式化后的 prompt。

    Example:
        >>> prompt = get_prompt("screening", "common.user_template", dimension="技能", input="{}")
    """
    return get_prompt_loader().get(name, key, **kwargs)
