"""
权重预览测试

权重清洗、模型输出校验、失败时回退默认权重
"""
import httpx
import pytest
from openai import APIConnectionError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.crud import job_profile_crud
from app.models import (
    DEFAULT_DIMENSION_WEIGHTS,
    JobProfileCreate,
    WeightSchemeType,
    sanitize_weights,
    validate_weights,
)
from app.services.weight_preview import FALLBACK_RATIONALE, WeightPreviewService

from tests.conftest import StubLLM


def planned(**overrides) -> dict:
    scheme = dict(
        skill=0.35, responsibility=0.25, experience=0.15, education=0.10, industry=0.10, basic=0.05,
        rationale=["岗位以后端开发为主"],
    )
    return {**scheme, **overrides}


def planner_output(*schemes) -> dict:
    return {"schemes": list(schemes) or [
        planned(),
        planned(skill=0.30, responsibility=0.15, experience=0.05, education=0.35, industry=0.10, basic=0.05),
        planned(skill=0.25, responsibility=0.30, experience=0.30, education=0.05, industry=0.05, basic=0.05),
    ]}


async def seed_job(db: AsyncSession) -> str:
    job = await job_profile_crud.create_profile(db, obj_in=JobProfileCreate.model_validate({
        "name": "数据工程师",
        "department": "数据平台部",
        "location": "杭州",
        "salary_min": 25,
        "salary_max": 40,
        "responsibilities": [{"responsibility": "建设实时数仓"}],
        "skills": [{"skill": "Flink", "type": "required"}, {"skill": "Doris", "type": "bonus"}],
        "experience_requirements": [{"experience_type": "work", "min_years": 3, "ideal_years": 5}],
        "education_requirements": [{"education_type": "本科", "major": "计算机"}],
        "industry_requirements": [{"industry": "电商", "company_name": "某电商平台"}],
    }))
    return job.id


def test_sanitize_weights_floor_and_normalize():
    weights = sanitize_weights(dict(
        skill=0.5, responsibility=0.3, experience=0.2, education=0.01, industry=-0.1, basic=0
    ))
    validate_weights(weights)
    assert weights.industry == 0
    assert weights.basic == 0
    assert weights.education == pytest.approx(0.03 / 1.03)
    assert weights.skill == pytest.approx(0.5 / 1.03)


def test_sanitize_weights_all_zero_uses_default():
    assert sanitize_weights({"skill": 0, "basic": -1}) == DEFAULT_DIMENSION_WEIGHTS
    assert sanitize_weights({}) == DEFAULT_DIMENSION_WEIGHTS


@pytest.mark.asyncio
async def test_preview_returns_three_schemes(db_session: AsyncSession):
    job_id = await seed_job(db_session)
    llm = StubLLM(response=planner_output())

    preview = await WeightPreviewService(db_session, llm).preview(job_id)

    assert preview.fallback is False
    assert [s.type for s in preview.schemes] == [
        WeightSchemeType.DEFAULT, WeightSchemeType.FRESH_GRADUATE, WeightSchemeType.EXPERIENCED
    ]
    for scheme in preview.schemes:
        validate_weights(scheme.weights)
        assert scheme.rationale == ["岗位以后端开发为主"]
    assert preview.schemes[1].weights.education == pytest.approx(0.35)
    assert (preview.input_tokens, preview.output_tokens, preview.total_tokens) == (200, 80, 280)
    assert preview.agent_version == WeightPreviewService.agent_version

    # 岗位画像整理为 Markdown 注入 user 提示词
    system_prompt, user_prompt = llm.calls[0]
    assert '"schemes"' in system_prompt
    assert "## 必备技能\nFlink" in user_prompt
    assert "## 加分技能\nDoris" in user_prompt
    assert "至少 3 年，理想 5 年" in user_prompt
    assert "目标公司：某电商平台" in user_prompt


@pytest.mark.asyncio
async def test_preview_normalizes_slightly_off_sums(db_session: AsyncSession):
    job_id = await seed_job(db_session)
    skewed = planned(skill=0.39)  # 总和 1.04
    llm = StubLLM(response=planner_output(skewed, planned(), planned()))

    preview = await WeightPreviewService(db_session, llm).preview(job_id)

    assert preview.fallback is False
    weights = preview.schemes[0].weights
    assert weights.total() == pytest.approx(1.0)
    assert weights.skill == pytest.approx(0.39 / 1.04)


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    planner_output(planned(), planned()),
    planner_output(planned(), planned(skill=0.6), planned()),
    planner_output(planned(), planned(basic=1.5), planned()),
    {"weights": {}},
])
async def test_preview_falls_back_on_invalid_output(db_session: AsyncSession, response):
    job_id = await seed_job(db_session)

    preview = await WeightPreviewService(db_session, StubLLM(response=response)).preview(job_id)

    assert preview.fallback is True
    assert len(preview.schemes) == 3
    for scheme in preview.schemes:
        assert scheme.weights == DEFAULT_DIMENSION_WEIGHTS
        assert scheme.rationale == [FALLBACK_RATIONALE]
    # 模型已经调用，消耗照常记录
    assert preview.total_tokens == 280


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ValueError("LLM API Key 未配置"),
    APIConnectionError(request=httpx.Request("POST", "http://llm.test/v1/chat/completions")),
])
async def test_preview_falls_back_on_llm_error(db_session: AsyncSession, error):
    job_id = await seed_job(db_session)

    preview = await WeightPreviewService(db_session, StubLLM(error=error)).preview(job_id)

    assert preview.fallback is True
    assert [s.weights for s in preview.schemes] == [DEFAULT_DIMENSION_WEIGHTS] * 3
    assert preview.total_tokens == 0


@pytest.mark.asyncio
async def test_preview_unknown_job(db_session: AsyncSession):
    llm = StubLLM(response=planner_output())
    with pytest.raises(NotFoundException):
        await WeightPreviewService(db_session, llm).preview("missing")
    assert llm.calls == []


def test_sanitize_weights_lifts_tiny_values():
    weights = sanitize_weights({"skill": 0.001})
    assert weights.skill == pytest.approx(1.0)
    assert weights.basic == 0
