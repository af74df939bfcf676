"""
权重预览服务

根据岗位画像让模型推荐三套维度权重（通用、应届生、资深），
仅供创建任务前参考，不写库。模型输出不可用时返回默认权重。
"""
from typing import Any, Dict, List, Optional

from loguru import logger
from openai import OpenAIError
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.llm_client import LLMClient, TokenUsage, get_llm_client
from app.agents.prompts import get_prompt
from app.core.exceptions import NotFoundException
from app.crud import job_profile_crud
from app.models.job_profile import JobProfileDetail
from app.models.weights import (
    DEFAULT_DIMENSION_WEIGHTS,
    DIMENSIONS,
    WeightPreviewResponse,
    WeightScheme,
    WeightSchemeType,
    sanitize_weights,
)

SCHEME_TYPES: List[WeightSchemeType] = [
    WeightSchemeType.DEFAULT,
    WeightSchemeType.FRESH_GRADUATE,
    WeightSchemeType.EXPERIENCED,
]

# 模型给出的单套权重总和允许偏离 1 的范围，超出视为无效输出
PLANNED_SUM_TOLERANCE = 0.05

FALLBACK_RATIONALE = "推理失败，使用默认权重配置"


class _PlannedScheme(BaseModel):
    skill: float = Field(..., ge=0, le=1)
    responsibility: float = Field(..., ge=0, le=1)
    experience: float = Field(..., ge=0, le=1)
    education: float = Field(..., ge=0, le=1)
    industry: float = Field(..., ge=0, le=1)
    basic: float = Field(..., ge=0, le=1)
    rationale: List[str] = Field(default_factory=list)


class _PlannedWeights(BaseModel):
    schemes: List[_PlannedScheme] = Field(..., min_length=3, max_length=3)


def format_job_document(job: JobProfileDetail) -> str:
    """岗位画像整理为 Markdown 文本，作为模型输入"""
    lines = ["# 岗位画像", "", "## 基本信息", f"- 岗位名称：{job.name}"]
    if job.department:
        lines.append(f"- 所属部门：{job.department}")
    if job.location:
        lines.append(f"- 工作地点：{job.location}")
    if job.salary_min is not None or job.salary_max is not None:
        low = job.salary_min if job.salary_min is not None else "-"
        high = job.salary_max if job.salary_max is not None else "-"
        lines.append(f"- 薪资范围：{low}K ~ {high}K")
    if job.description:
        lines += ["", "## 岗位描述", job.description.strip()]

    if job.responsibilities:
        lines += ["", "## 岗位职责"]
        lines += [f"{i}. {item.responsibility}" for i, item in enumerate(job.responsibilities, 1)]

    required = [s.skill for s in job.skills if s.type != "bonus"]
    bonus = [s.skill for s in job.skills if s.type == "bonus"]
    if required:
        lines += ["", "## 必备技能", "、".join(required)]
    if bonus:
        lines += ["", "## 加分技能", "、".join(bonus)]

    if job.experience_requirements:
        lines += ["", "## 经验要求"]
        for req in job.experience_requirements:
            text = f"- {req.experience_type}：至少 {req.min_years:g} 年"
            if req.ideal_years is not None:
                text += f"，理想 {req.ideal_years:g} 年"
            lines.append(text)

    if job.education_requirements:
        lines += ["", "## 学历要求"]
        for req in job.education_requirements:
            lines.append(f"- {req.education_type}" + (f"（{req.major}）" if req.major else ""))

    if job.industry_requirements:
        lines += ["", "## 行业要求"]
        for req in job.industry_requirements:
            lines.append(f"- {req.industry}" + (f"，目标公司：{req.company_name}" if req.company_name else ""))

    return "\n".join(lines)


def parse_schemes(data: Dict[str, Any]) -> List[WeightScheme]:
    """
    校验并清洗模型输出

    Raises:
        ValueError: 方案数量不对、权重越界或总和偏离 1 过多
    """
    planned = _PlannedWeights.model_validate(data)
    schemes = []
    for scheme_type, item in zip(SCHEME_TYPES, planned.schemes):
        values = {d: getattr(item, d) for d in DIMENSIONS}
        total = sum(values.values())
        if total <= 0 or abs(total - 1.0) > PLANNED_SUM_TOLERANCE:
            raise ValueError(f"{scheme_type.value} 方案权重总和为 {total:.3f}")
        schemes.append(WeightScheme(
            type=scheme_type,
            weights=sanitize_weights(values),
            rationale=[r.strip() for r in item.rationale if r and r.strip()],
        ))
    return schemes


def fallback_schemes() -> List[WeightScheme]:
    return [
        WeightScheme(type=t, weights=DEFAULT_DIMENSION_WEIGHTS, rationale=[FALLBACK_RATIONALE])
        for t in SCHEME_TYPES
    ]


class WeightPreviewService:
    """岗位权重推荐"""

    prompt_file = "screening"
    prompt_key = "weight_planner"
    agent_version = "1.1.0"

    def __init__(self, db: AsyncSession, llm: Optional[LLMClient] = None):
        self.db = db
        self.llm = llm or get_llm_client()

    async def preview(self, job_position_id: str) -> WeightPreviewResponse:
        """
        生成三套推荐权重

        模型调用失败或输出不合法时返回三套默认权重，fallback 置为 True

        Raises:
            NotFoundException: 岗位画像不存在
        """
        job = await job_profile_crud.get_detail(self.db, job_position_id)
        if job is None:
            raise NotFoundException(f"岗位画像不存在: {job_position_id}")

        usage = TokenUsage()
        try:
            data, usage = await self.llm.complete_json(
                get_prompt(self.prompt_file, f"{self.prompt_key}.system"),
                get_prompt(
                    self.prompt_file,
                    f"{self.prompt_key}.user_template",
                    job_profile=format_job_document(job),
                ),
            )
            schemes = parse_schemes(data)
            fallback = False
        except (ValueError, OpenAIError) as exc:
            logger.warning("岗位 {} 权重推理失败，使用默认权重: {}", job_position_id, exc)
            schemes = fallback_schemes()
            fallback = True

        return WeightPreviewResponse(
            job_position_id=job_position_id,
            schemes=schemes,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.input_tokens + usage.output_tokens,
            agent_version=self.agent_version,
            fallback=fallback,
        )
