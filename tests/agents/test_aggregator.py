"""
聚合器测试

加权合成、缺失维度重新归一化、匹配等级边界、推荐建议
"""
import pytest

from app.agents.aggregator import (
    NO_RISK_RECOMMENDATION,
    aggregate,
    build_recommendations,
    weighted_score,
)
from app.core.exceptions import AggregationFailure
from app.models import DimensionWeights, TaskMetaData
from app.models.payloads import (
    BasicMatchDetail,
    DegreeMatch,
    EducationMatchDetail,
    ExperienceMatchDetail,
    IndustryMatch,
    IndustryMatchDetail,
    MatchedSkill,
    ResponsibilityMatchDetail,
    SkillMatchDetail,
    YearsMatch,
)
from app.models.screening import MatchLevel, get_match_level


def make_task_meta(weights: DimensionWeights = None) -> TaskMetaData:
    return TaskMetaData(
        job_id="job-1",
        resume_id="resume-1",
        match_task_id="task-1",
        task_resume_id="tr-1",
        dimension_weights=weights or DimensionWeights(),
    )


def make_details(**scores):
    models = {
        "skill": SkillMatchDetail,
        "responsibility": ResponsibilityMatchDetail,
        "experience": ExperienceMatchDetail,
        "education": EducationMatchDetail,
        "industry": IndustryMatchDetail,
        "basic": BasicMatchDetail,
    }
    return {dimension: models[dimension](score=score) for dimension, score in scores.items()}


FULL_SCORES = dict(skill=80, responsibility=70, experience=90, education=60, industry=50, basic=100)


class TestWeightedScore:

    def test_default_weights(self):
        assert weighted_score(FULL_SCORES, DimensionWeights()) == 75.5

    def test_missing_dimension_renormalized(self):
        scores = {k: v for k, v in FULL_SCORES.items() if k != "skill"}
        # (14 + 18 + 9 + 3.5 + 3) / 0.65
        assert weighted_score(scores, DimensionWeights()) == round(47.5 / 0.65, 2)

    def test_no_dimensions(self):
        with pytest.raises(AggregationFailure):
            weighted_score({}, DimensionWeights())

    def test_zero_weight_sum(self):
        weights = DimensionWeights(skill=1.0, responsibility=0, experience=0, education=0, industry=0, basic=0)
        with pytest.raises(AggregationFailure):
            weighted_score({"basic": 80}, weights)


@pytest.mark.parametrize("score,level", [
    (100, MatchLevel.EXCELLENT),
    (90, MatchLevel.EXCELLENT),
    (89.99, MatchLevel.GOOD),
    (75, MatchLevel.GOOD),
    (74.99, MatchLevel.FAIR),
    (60, MatchLevel.FAIR),
    (59.99, MatchLevel.POOR),
    (0, MatchLevel.POOR),
])
def test_match_level_boundaries(score, level):
    assert get_match_level(score) == level


class TestAggregate:

    def test_full_details(self):
        output = aggregate(make_task_meta(), make_details(**FULL_SCORES))
        assert output.overall_score == 75.5
        assert output.match_level == "good"
        assert output.unavailable_dimensions == []
        assert output.available_dimensions == list(FULL_SCORES)
        assert output.recommendations == [NO_RISK_RECOMMENDATION]

    def test_uses_task_meta_weights(self):
        weights = DimensionWeights(skill=1.0, responsibility=0, experience=0, education=0, industry=0, basic=0)
        output = aggregate(make_task_meta(weights), make_details(**FULL_SCORES))
        assert output.overall_score == 80
        assert output.weights == weights

    def test_unavailable_dimension(self):
        details = make_details(**FULL_SCORES)
        details["skill"] = None
        output = aggregate(make_task_meta(), details)
        assert output.unavailable_dimensions == ["skill"]
        assert "skill" not in output.dimension_scores
        assert output.overall_score == round(47.5 / 0.65, 2)

    def test_require_all_dimensions(self):
        details = make_details(**FULL_SCORES)
        del details["industry"]
        with pytest.raises(AggregationFailure):
            aggregate(make_task_meta(), details, require_all=True)

    def test_nothing_available(self):
        with pytest.raises(AggregationFailure):
            aggregate(make_task_meta(), {dimension: None for dimension in FULL_SCORES})


class TestRecommendations:

    def test_risks_in_dimension_order(self):
        details = {
            "basic": BasicMatchDetail(score=80, evidence=["期望薪资未提供"]),
            "industry": IndustryMatchDetail(
                score=40,
                industry_matches=[IndustryMatch(industry="金融", score=30)],
            ),
            "skill": SkillMatchDetail(
                score=60,
                missing_skills=["Kubernetes"],
                matched_skills=[MatchedSkill(skill="Python", proficiency_gap="需要精通")],
            ),
            "experience": ExperienceMatchDetail(
                score=50,
                years_match=YearsMatch(required_years=5, actual_years=3, gap=2),
            ),
            "education": EducationMatchDetail(
                score=50,
                degree_match=DegreeMatch(required_degree="硕士", actual_degree="本科", meets=False),
            ),
        }
        recommendations = build_recommendations(details, limit=10)
        assert recommendations == [
            "Python熟练度差距：需要精通",
            "缺少技能：Kubernetes",
            "工作年限不足：缺少 2.0 年",
            "学历不满足要求：需要硕士，实际本科",
            "行业匹配偏低：金融（30分）",
            "期望薪资未提供",
        ]

    def test_deduplicated_and_capped(self):
        details = {
            "skill": SkillMatchDetail(score=50, gap_areas=["云原生经验不足", "云原生经验不足"]),
            "industry": IndustryMatchDetail(score=50, gaps=["云原生经验不足", "缺少金融行业背景"]),
            "responsibility": ResponsibilityMatchDetail(
                score=50, unmatched_responsibilities=["团队管理", "架构设计"]
            ),
        }
        assert build_recommendations(details, limit=2) == ["云原生经验不足", "未覆盖职责：团队管理"]
        assert len(build_recommendations(details, limit=10)) == 4

    def test_no_risks(self):
        assert build_recommendations(make_details(**FULL_SCORES)) == [NO_RISK_RECOMMENDATION]
