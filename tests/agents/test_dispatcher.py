"""
分发器与节点载荷测试
"""
import pytest
from pydantic import ValidationError

from app.agents.dispatcher import dispatch, dispatch_snapshot
from app.core.exceptions import InvalidInputException
from app.models import (
    DimensionWeights,
    JobProfileDetail,
    ResumeDetail,
    TaskMetaData,
    decode_node_payload,
)
from app.models.payloads import DispatcherOutput, SkillMatchDetail


@pytest.fixture
def job() -> JobProfileDetail:
    return JobProfileDetail(
        id="job-1",
        name="后端工程师",
        location="上海",
        salary_min=20,
        salary_max=35,
        skills=[{"skill": "Python"}, {"skill": "Go", "type": "bonus"}],
        responsibilities=[{"responsibility": "设计后端服务"}],
        education_requirements=[{"education_type": "本科"}],
        experience_requirements=[{"min_years": 3}],
        industry_requirements=[{"industry": "互联网"}],
    )


@pytest.fixture
def resume() -> ResumeDetail:
    return ResumeDetail(
        id="resume-1",
        name="张三",
        current_city="上海",
        highest_education="本科",
        years_experience=4,
        educations=[{"school": "同济大学", "degree": "本科", "major": "软件工程"}],
        experiences=[{"company": "A 公司", "position": "后端工程师", "industry": "互联网"}],
        skills=[{"skill_name": "Python"}],
        projects=[{"name": "订单系统", "technologies": ["Python"]}],
    )


def make_task_meta(job_id="job-1", resume_id="resume-1") -> TaskMetaData:
    return TaskMetaData(
        job_id=job_id,
        resume_id=resume_id,
        match_task_id="task-1",
        task_resume_id="tr-1",
        dimension_weights=DimensionWeights(),
    )


def test_dispatch_splits_inputs(job, resume):
    output = dispatch(make_task_meta(), job, resume)

    assert output.basic_info.job_name == "后端工程师"
    assert output.basic_info.candidate_name == "张三"
    assert [s.skill for s in output.skill.job_skills] == ["Python", "Go"]
    assert output.skill.resume_skills[0].skill_name == "Python"
    assert output.responsibility.job_responsibilities[0].responsibility == "设计后端服务"
    assert output.experience.years_experience == 4
    assert output.education.resume_educations[0].major == "软件工程"
    assert output.industry.industry_requirements[0].industry == "互联网"


def test_dispatch_rejects_resume_without_data(job):
    empty = ResumeDetail(id="resume-1", name="李四")
    with pytest.raises(InvalidInputException):
        dispatch(make_task_meta(), job, empty)


def test_dispatch_rejects_mismatched_ids(job, resume):
    with pytest.raises(InvalidInputException):
        dispatch(make_task_meta(resume_id="other"), job, resume)


def test_dispatch_snapshot(job, resume):
    snapshot = dispatch_snapshot(job, resume)
    assert snapshot["job"]["id"] == "job-1"
    assert snapshot["resume"]["name"] == "张三"


def test_decode_node_payload(job, resume):
    output = dispatch(make_task_meta(), job, resume)
    decoded = decode_node_payload(output.model_dump(mode="json"))
    assert isinstance(decoded, DispatcherOutput)

    decoded = decode_node_payload({"kind": "skill_match", "score": 88, "missing_skills": ["Go"]})
    assert isinstance(decoded, SkillMatchDetail)
    assert decoded.missing_skills == ["Go"]


def test_decode_node_payload_without_kind():
    assert decode_node_payload(None) is None
    assert decode_node_payload({"task_id": "task-1"}) is None


def test_decode_node_payload_unknown_kind():
    with pytest.raises(ValidationError):
        decode_node_payload({"kind": "unknown", "score": 10})
