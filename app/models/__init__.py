"""
SQLModel 模型模块

使用 SQLModel 统一 ORM Model 和 Pydantic Schema
"""
from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse
from .weights import (
    DIMENSIONS,
    DEFAULT_DIMENSION_WEIGHTS,
    DimensionWeights,
    validate_weights,
    sanitize_weights,
    WeightSchemeType,
    WeightScheme,
    WeightPreviewRequest,
    WeightPreviewResponse,
    WeightTemplate,
    WeightTemplateCreate,
    WeightTemplateUpdate,
    WeightTemplateResponse,
)
from .job_profile import JobProfile, JobProfileCreate, JobProfileDetail
from .resume import Resume, ResumeCreate, ResumeDetail
from .payloads import (
    TaskMetaData,
    DispatcherOutput,
    BasicInfoData,
    SkillData,
    ResponsibilityData,
    ExperienceData,
    EducationData,
    IndustryData,
    BasicMatchDetail,
    SkillMatchDetail,
    ResponsibilityMatchDetail,
    ExperienceMatchDetail,
    EducationMatchDetail,
    IndustryMatchDetail,
    AggregateOutput,
    decode_node_payload,
)
from .screening import (
    TaskStatus,
    TaskResumeStatus,
    NodeRunStatus,
    NodeKey,
    MatchLevel,
    get_match_level,
    ScreeningTask,
    ScreeningTaskResume,
    ScreeningNodeRun,
    ScreeningResult,
    ScreeningRunMetric,
    ScreeningTaskCreate,
    NodeRunFilter,
    ScreeningTaskResponse,
    ScreeningTaskResumeResponse,
    ScreeningNodeRunResponse,
    ScreeningResultResponse,
    ScreeningRunMetricResponse,
    TaskProgressResponse,
    ResumeProgressResponse,
)

__all__ = [
    # Base
    "SQLModelBase",
    "TimestampMixin",
    "IDMixin",
    "TimestampResponse",
    # Weights
    "DIMENSIONS",
    "DEFAULT_DIMENSION_WEIGHTS",
    "DimensionWeights",
    "validate_weights",
    "sanitize_weights",
    "WeightSchemeType",
    "WeightScheme",
    "WeightPreviewRequest",
    "WeightPreviewResponse",
    "WeightTemplate",
    "WeightTemplateCreate",
    "WeightTemplateUpdate",
    "WeightTemplateResponse",
    # Collaborators
    "JobProfile",
    "JobProfileCreate",
    "JobProfileDetail",
    "Resume",
    "ResumeCreate",
    "ResumeDetail",
    # Payloads
    "TaskMetaData",
    "DispatcherOutput",
    "BasicInfoData",
    "SkillData",
    "ResponsibilityData",
    "ExperienceData",
    "EducationData",
    "IndustryData",
    "BasicMatchDetail",
    "SkillMatchDetail",
    "ResponsibilityMatchDetail",
    "ExperienceMatchDetail",
    "EducationMatchDetail",
    "IndustryMatchDetail",
    "AggregateOutput",
    "decode_node_payload",
    # Screening
    "TaskStatus",
    "TaskResumeStatus",
    "NodeRunStatus",
    "NodeKey",
    "MatchLevel",
    "get_match_level",
    "ScreeningTask",
    "ScreeningTaskResume",
    "ScreeningNodeRun",
    "ScreeningResult",
    "ScreeningRunMetric",
    "ScreeningTaskCreate",
    "NodeRunFilter",
    "ScreeningTaskResponse",
    "ScreeningTaskResumeResponse",
    "ScreeningNodeRunResponse",
    "ScreeningResultResponse",
    "ScreeningRunMetricResponse",
    "TaskProgressResponse",
    "ResumeProgressResponse",
]
