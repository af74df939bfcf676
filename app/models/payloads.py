"""
筛选流水线节点载荷模块

每个节点的输入/输出都是带 kind 标签的封闭变体集合，
节点运行记录中保存的 JSON 只作为审计快照，业务逻辑只消费这里的类型。
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field as PydanticField, TypeAdapter
from sqlmodel import Field

from .base import SQLModelBase
from .job_profile import (
    JobResponsibility,
    JobSkill,
    JobEducationRequirement,
    JobExperienceRequirement,
    JobIndustryRequirement,
)
from .resume import ResumeEducation, ResumeExperience, ResumeSkill, ResumeProject
from .weights import DimensionWeights


# ==================== 任务元数据 ====================

class TaskMetaData(SQLModelBase):
    """任务元数据，随每份简历单独记录一次"""
    kind: Literal["task_meta"] = "task_meta"
    job_id: str
    resume_id: str
    match_task_id: str
    task_resume_id: str
    dimension_weights: DimensionWeights


# ==================== Agent 输入 ====================

class BasicInfoData(SQLModelBase):
    """基本信息 Agent 输入"""
    kind: Literal["basic_info_data"] = "basic_info_data"
    job_name: str
    job_location: Optional[str] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    job_description: Optional[str] = None
    candidate_name: str
    current_city: Optional[str] = None
    highest_education: Optional[str] = None
    years_experience: Optional[float] = None


class SkillData(SQLModelBase):
    """技能 Agent 输入"""
    kind: Literal["skill_data"] = "skill_data"
    job_skills: List[JobSkill] = Field(default_factory=list)
    resume_skills: List[ResumeSkill] = Field(default_factory=list)
    resume_projects: List[ResumeProject] = Field(default_factory=list)
    resume_experiences: List[ResumeExperience] = Field(default_factory=list)


class ResponsibilityData(SQLModelBase):
    """职责 Agent 输入"""
    kind: Literal["responsibility_data"] = "responsibility_data"
    job_responsibilities: List[JobResponsibility] = Field(default_factory=list)
    resume_experiences: List[ResumeExperience] = Field(default_factory=list)
    resume_projects: List[ResumeProject] = Field(default_factory=list)


class ExperienceData(SQLModelBase):
    """经验 Agent 输入"""
    kind: Literal["experience_data"] = "experience_data"
    experience_requirements: List[JobExperienceRequirement] = Field(default_factory=list)
    resume_experiences: List[ResumeExperience] = Field(default_factory=list)
    years_experience: Optional[float] = None


class EducationData(SQLModelBase):
    """教育 Agent 输入"""
    kind: Literal["education_data"] = "education_data"
    education_requirements: List[JobEducationRequirement] = Field(default_factory=list)
    resume_educations: List[ResumeEducation] = Field(default_factory=list)
    highest_education: Optional[str] = None


class IndustryData(SQLModelBase):
    """行业 Agent 输入"""
    kind: Literal["industry_data"] = "industry_data"
    industry_requirements: List[JobIndustryRequirement] = Field(default_factory=list)
    resume_experiences: List[ResumeExperience] = Field(default_factory=list)


AgentInput = Union[BasicInfoData, SkillData, ResponsibilityData, ExperienceData, EducationData, IndustryData]


class DispatcherOutput(SQLModelBase):
    """分发器输出：六个 Agent 的窄输入"""
    kind: Literal["dispatcher_output"] = "dispatcher_output"
    basic_info: BasicInfoData
    skill: SkillData
    responsibility: ResponsibilityData
    experience: ExperienceData
    education: EducationData
    industry: IndustryData


# ==================== Agent 输出 ====================

class MatchDetailBase(SQLModelBase):
    """各维度匹配详情的公共字段"""
    score: float = Field(..., ge=0, le=100, description="维度得分")


class BasicMatchDetail(MatchDetailBase):
    kind: Literal["basic_match"] = "basic_match"
    sub_scores: Dict[str, float] = Field(default_factory=dict)
    evidence: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class MatchedSkill(SQLModelBase):
    job_skill_id: Optional[str] = None
    skill: str
    match_level: Optional[str] = None
    score: Optional[float] = None
    match_reason: Optional[str] = None
    proficiency_gap: Optional[str] = None


class SkillMatchDetail(MatchDetailBase):
    kind: Literal["skill_match"] = "skill_match"
    matched_skills: List[MatchedSkill] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    extra_skills: List[str] = Field(default_factory=list)
    strength_areas: List[str] = Field(default_factory=list)
    gap_areas: List[str] = Field(default_factory=list)


class MatchedResponsibility(SQLModelBase):
    job_responsibility_id: Optional[str] = None
    responsibility: str
    resume_experience: Optional[str] = None
    match_score: Optional[float] = None
    match_reason: Optional[str] = None
    strength_points: List[str] = Field(default_factory=list)
    weak_points: List[str] = Field(default_factory=list)


class ResponsibilityMatchDetail(MatchDetailBase):
    kind: Literal["responsibility_match"] = "responsibility_match"
    matched_responsibilities: List[MatchedResponsibility] = Field(default_factory=list)
    unmatched_responsibilities: List[str] = Field(default_factory=list)
    relevant_experiences: List[str] = Field(default_factory=list)


class YearsMatch(SQLModelBase):
    required_years: float = 0
    actual_years: float = 0
    score: Optional[float] = None
    gap: float = 0


class PositionMatch(SQLModelBase):
    company: Optional[str] = None
    position: str
    relevance: Optional[float] = None
    score: Optional[float] = None
    experience_type: Optional[str] = None


class ExperienceMatchDetail(MatchDetailBase):
    kind: Literal["experience_match"] = "experience_match"
    years_match: Optional[YearsMatch] = None
    position_matches: List[PositionMatch] = Field(default_factory=list)
    career_progression: Optional[str] = None


class DegreeMatch(SQLModelBase):
    required_degree: Optional[str] = None
    actual_degree: Optional[str] = None
    meets: bool = False
    score: Optional[float] = None


class MajorMatch(SQLModelBase):
    major: str
    relevance: float = 0
    score: Optional[float] = None


class SchoolMatch(SQLModelBase):
    school: str
    reputation: Optional[str] = None
    score: float = 0
    gpa: Optional[float] = None


class EducationMatchDetail(MatchDetailBase):
    kind: Literal["education_match"] = "education_match"
    degree_match: Optional[DegreeMatch] = None
    major_matches: List[MajorMatch] = Field(default_factory=list)
    school_matches: List[SchoolMatch] = Field(default_factory=list)


class IndustryMatch(SQLModelBase):
    industry: str
    company: Optional[str] = None
    relevance: Optional[float] = None
    score: float = 0


class IndustryMatchDetail(MatchDetailBase):
    kind: Literal["industry_match"] = "industry_match"
    industry_matches: List[IndustryMatch] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


MatchDetail = Union[
    BasicMatchDetail,
    SkillMatchDetail,
    ResponsibilityMatchDetail,
    ExperienceMatchDetail,
    EducationMatchDetail,
    IndustryMatchDetail,
]


# ==================== 聚合输出 ====================

class AggregateOutput(SQLModelBase):
    """聚合器输出"""
    kind: Literal["aggregate_output"] = "aggregate_output"
    overall_score: float = Field(..., ge=0, le=100)
    match_level: str
    dimension_scores: Dict[str, float] = Field(default_factory=dict)
    available_dimensions: List[str] = Field(default_factory=list)
    unavailable_dimensions: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    weights: DimensionWeights
    matched_at: datetime


# ==================== 标签联合 ====================

NodePayload = Annotated[
    Union[
        TaskMetaData,
        DispatcherOutput,
        BasicMatchDetail,
        SkillMatchDetail,
        ResponsibilityMatchDetail,
        ExperienceMatchDetail,
        EducationMatchDetail,
        IndustryMatchDetail,
        AggregateOutput,
    ],
    PydanticField(discriminator="kind"),
]

_node_payload_adapter = TypeAdapter(NodePayload)


def decode_node_payload(data: Optional[Dict[str, Any]]) -> Optional[NodePayload]:
    """
    将节点运行的 JSON 快照还原为类型化载荷

    不含 kind 标签的快照（如原始输入快照）返回 None
    """
    if not data or "kind" not in data:
        return None
    return _node_payload_adapter.validate_python(data)
