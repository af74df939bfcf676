"""
聚合器：按权重合成综合分、匹配等级和推荐建议

确定性计算，不调用 LLM。某个维度不可用时，在剩余维度的权重上重新归一化。
"""
from typing import Dict, List, Optional

from app.core.config import settings
from app.core.exceptions import AggregationFailure
from app.models.base import utc_now
from app.models.payloads import (
    AggregateOutput,
    BasicMatchDetail,
    EducationMatchDetail,
    ExperienceMatchDetail,
    IndustryMatchDetail,
    MatchDetail,
    ResponsibilityMatchDetail,
    SkillMatchDetail,
    TaskMetaData,
)
from app.models.screening import get_match_level
from app.models.weights import DIMENSIONS, DimensionWeights

# 低于该分数的专业相关度、院校、行业视为风险
LOW_RELEVANCE_THRESHOLD = 70
LOW_INDUSTRY_THRESHOLD = 60

MISSING_HINTS = ("缺", "未提供", "无法", "待补充")

NO_RISK_RECOMMENDATION = "各维度均未发现明显风险，建议优先安排面试"


def _skill_risks(detail: SkillMatchDetail) -> List[str]:
    risks = list(detail.gap_areas)
    for matched in detail.matched_skills:
        if matched.proficiency_gap and matched.proficiency_gap not in ("none", "无"):
            risks.append(f"{matched.skill}熟练度差距：{matched.proficiency_gap}")
    risks.extend(f"缺少技能：{skill}" for skill in detail.missing_skills if skill)
    return risks


def _responsibility_risks(detail: ResponsibilityMatchDetail) -> List[str]:
    risks: List[str] = []
    for matched in detail.matched_responsibilities:
        risks.extend(matched.weak_points)
    risks.extend(f"未覆盖职责：{item}" for item in detail.unmatched_responsibilities if item)
    return risks


def _experience_risks(detail: ExperienceMatchDetail) -> List[str]:
    years = detail.years_match
    if years and years.required_years > 0 and years.actual_years < years.required_years:
        gap = years.gap or (years.required_years - years.actual_years)
        return [f"工作年限不足：缺少 {gap:.1f} 年"]
    return []


def _education_risks(detail: EducationMatchDetail) -> List[str]:
    risks: List[str] = []
    degree = detail.degree_match
    if degree is not None and not degree.meets:
        risks.append(
            f"学历不满足要求：需要{degree.required_degree or '未知'}，实际{degree.actual_degree or '未知'}"
        )
    for major in detail.major_matches:
        if major.relevance < LOW_RELEVANCE_THRESHOLD:
            risks.append(f"专业相关性低：{major.major}（{major.relevance:.0f}分）")
    for school in detail.school_matches:
        if school.school and school.score < LOW_RELEVANCE_THRESHOLD:
            risks.append(f"院校匹配偏低：{school.school}（{school.score:.0f}分）")
    return risks


def _industry_risks(detail: IndustryMatchDetail) -> List[str]:
    risks = [
        f"行业匹配偏低：{item.industry}（{item.score:.0f}分）"
        for item in detail.industry_matches
        if item.industry and item.score < LOW_INDUSTRY_THRESHOLD
    ]
    risks.extend(detail.gaps)
    return risks


def _has_missing_hint(text: Optional[str]) -> bool:
    return bool(text) and any(hint in text for hint in MISSING_HINTS)


def _basic_risks(detail: BasicMatchDetail) -> List[str]:
    risks = [item for item in detail.evidence if _has_missing_hint(item)]
    if _has_missing_hint(detail.notes):
        risks.append(detail.notes)
    return risks


_RISK_EXTRACTORS = {
    SkillMatchDetail: _skill_risks,
    ResponsibilityMatchDetail: _responsibility_risks,
    ExperienceMatchDetail: _experience_risks,
    EducationMatchDetail: _education_risks,
    IndustryMatchDetail: _industry_risks,
    BasicMatchDetail: _basic_risks,
}


def build_recommendations(
    details: Dict[str, Optional[MatchDetail]],
    limit: Optional[int] = None,
) -> List[str]:
    """
    从各维度详情中提取风险点作为推荐建议

    按维度顺序去重并截断；没有任何风险时给出正向结论
    """
    if limit is None:
        limit = settings.screening_max_recommendations

    seen = set()
    recommendations: List[str] = []
    for dimension in DIMENSIONS:
        detail = details.get(dimension)
        if detail is None:
            continue
        for risk in _RISK_EXTRACTORS[type(detail)](detail):
            risk = risk.strip()
            if risk and risk not in seen:
                seen.add(risk)
                recommendations.append(risk)

    if not recommendations:
        return [NO_RISK_RECOMMENDATION]
    return recommendations[:limit]


def weighted_score(scores: Dict[str, float], weights: DimensionWeights) -> float:
    """
    可用维度的加权平均，权重在可用维度上重新归一化

    Raises:
        AggregationFailure: 没有可用维度或可用维度权重之和为 0
    """
    if not scores:
        raise AggregationFailure()
    weight_sum = sum(weights.get(dimension) for dimension in scores)
    if weight_sum <= 0:
        raise AggregationFailure("可用维度的权重之和为 0，无法聚合")
    contribution = sum(score * weights.get(dimension) for dimension, score in scores.items())
    return round(contribution / weight_sum, 2)


def aggregate(
    task_meta: TaskMetaData,
    details: Dict[str, Optional[MatchDetail]],
    weights: Optional[DimensionWeights] = None,
    *,
    require_all: bool = False,
) -> AggregateOutput:
    """
    聚合六个维度的匹配详情

    Args:
        task_meta: 任务元数据，未显式给出权重时使用其中的权重快照
        details: 维度 -> 匹配详情，不可用的维度为 None 或缺省
        weights: 维度权重
        require_all: 为 True 时任一维度不可用即失败

    Raises:
        AggregationFailure: 没有可用维度，或 require_all 时存在不可用维度
    """
    weights = weights or task_meta.dimension_weights
    scores = {
        dimension: details[dimension].score
        for dimension in DIMENSIONS
        if details.get(dimension) is not None
    }
    unavailable = [dimension for dimension in DIMENSIONS if dimension not in scores]
    if require_all and unavailable:
        raise AggregationFailure(f"维度评分不完整: {', '.join(unavailable)}")

    overall = weighted_score(scores, weights)
    return AggregateOutput(
        overall_score=overall,
        match_level=get_match_level(overall).value,
        dimension_scores=scores,
        available_dimensions=list(scores),
        unavailable_dimensions=unavailable,
        recommendations=build_recommendations(details),
        weights=weights,
        matched_at=utc_now(),
    )
