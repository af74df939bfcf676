"""
简历筛选任务模型模块 - SQLModel 版本

任务、任务-简历关联、节点运行账本、筛选结果、运行指标
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum
from sqlmodel import SQLModel, Field, Column, JSON, UniqueConstraint
from sqlalchemy import Column as SAColumn, String, ForeignKey

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse
from .payloads import (
    BasicMatchDetail,
    SkillMatchDetail,
    ResponsibilityMatchDetail,
    ExperienceMatchDetail,
    EducationMatchDetail,
    IndustryMatchDetail,
)
from .weights import DimensionWeights


class TaskStatus(str, Enum):
    """任务状态枚举"""
    PENDING = "pending"
    RUNNING = "running"
    CANCELLING = "cancelling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal(cls) -> set:
        return {cls.COMPLETED.value, cls.FAILED.value, cls.CANCELLED.value}


class TaskResumeStatus(str, Enum):
    """任务内单份简历的状态枚举"""
    PENDING = "pending"
    DISPATCHING = "dispatching"
    SCORING = "scoring"
    AGGREGATING = "aggregating"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal(cls) -> set:
        return {cls.COMPLETED.value, cls.FAILED.value, cls.CANCELLED.value}


class NodeRunStatus(str, Enum):
    """节点运行状态枚举"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class NodeKey(str, Enum):
    """流水线节点"""
    TASK_META = "TaskMetaDataNode"
    DISPATCHER = "DispatcherNode"
    BASIC_INFO = "BasicInfoAgent"
    SKILL = "SkillAgent"
    RESPONSIBILITY = "ResponsibilityAgent"
    EXPERIENCE = "ExperienceAgent"
    EDUCATION = "EducationAgent"
    INDUSTRY = "IndustryAgent"
    AGGREGATOR = "AggregatorAgent"


class MatchLevel(str, Enum):
    """匹配等级"""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


def get_match_level(score: float) -> MatchLevel:
    """
    分数映射匹配等级

    [90,100] excellent，[75,90) good，[60,75) fair，[0,60) poor
    """
    if score >= 90:
        return MatchLevel.EXCELLENT
    if score >= 75:
        return MatchLevel.GOOD
    if score >= 60:
        return MatchLevel.FAIR
    return MatchLevel.POOR


def _task_fk() -> SAColumn:
    return SAColumn(
        String,
        ForeignKey("screening_tasks.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )


# ==================== 表模型 ====================

class ScreeningTask(TimestampMixin, IDMixin, SQLModel, table=True):
    """简历筛选任务表模型"""
    __tablename__ = "screening_tasks"

    job_position_id: str = Field(..., index=True, description="岗位画像ID")
    created_by: Optional[str] = Field(None, index=True, description="创建人")
    status: str = Field(TaskStatus.PENDING.value, index=True, description="任务状态")
    notes: Optional[str] = Field(None, description="备注")
    error_message: Optional[str] = Field(None, description="错误信息")

    # 创建时的配置快照
    dimension_weights: dict = Field(default_factory=dict, sa_column=Column(JSON), description="维度权重快照")
    llm_config: Optional[dict] = Field(default=None, sa_column=Column(JSON), description="LLM 配置快照")
    agent_version: Optional[str] = Field(None, max_length=20, description="匹配 Agent 版本")

    # 进度计数
    resume_total: int = Field(0, ge=0, description="简历总数")
    resume_processed: int = Field(0, ge=0, description="已处理数")
    resume_succeeded: int = Field(0, ge=0, description="成功数")
    resume_failed: int = Field(0, ge=0, description="失败数")

    started_at: Optional[datetime] = Field(None, description="开始时间")
    finished_at: Optional[datetime] = Field(None, description="结束时间")

    def weights(self) -> DimensionWeights:
        return DimensionWeights.model_validate(self.dimension_weights or {})

    def __repr__(self) -> str:
        return f"<ScreeningTask(id={self.id}, status={self.status})>"


class ScreeningTaskResume(TimestampMixin, IDMixin, SQLModel, table=True):
    """任务-简历关联表模型"""
    __tablename__ = "screening_task_resumes"
    __table_args__ = (
        UniqueConstraint("task_id", "resume_id", name="uq_screening_task_resume"),
    )

    task_id: str = Field(sa_column=_task_fk(), description="任务ID")
    resume_id: str = Field(..., index=True, description="简历ID")
    status: str = Field(TaskResumeStatus.PENDING.value, index=True, description="处理状态")
    ranking: Optional[int] = Field(None, description="任务内排名")
    score: Optional[float] = Field(None, ge=0, le=100, description="综合得分")
    error_message: Optional[str] = Field(None, description="最近一次失败原因")
    processed_at: Optional[datetime] = Field(None, description="处理完成时间")

    def __repr__(self) -> str:
        return f"<ScreeningTaskResume(task_id={self.task_id}, resume_id={self.resume_id}, status={self.status})>"


class ScreeningNodeRun(TimestampMixin, IDMixin, SQLModel, table=True):
    """
    节点运行账本

    每个 (task_resume_id, node_key, attempt_no) 一行，重试追加新行而不是覆盖
    """
    __tablename__ = "screening_node_runs"
    __table_args__ = (
        UniqueConstraint("task_resume_id", "node_key", "attempt_no", name="uq_node_run_attempt"),
    )

    task_id: str = Field(sa_column=_task_fk(), description="任务ID")
    task_resume_id: str = Field(..., index=True, description="任务简历ID")
    node_key: str = Field(..., max_length=50, index=True, description="节点标识")
    status: str = Field(NodeRunStatus.RUNNING.value, index=True, description="运行状态")
    attempt_no: int = Field(1, ge=1, description="尝试次数")
    trace_id: Optional[str] = Field(None, description="链路追踪ID")

    llm_model: Optional[str] = Field(None, description="模型名称")
    llm_provider: Optional[str] = Field(None, description="模型提供方")

    input_payload: Optional[dict] = Field(default=None, sa_column=Column(JSON), description="输入快照")
    output_payload: Optional[dict] = Field(default=None, sa_column=Column(JSON), description="输出快照")
    error_message: Optional[str] = Field(None, description="错误信息")

    tokens_input: int = Field(0, ge=0, description="输入 token")
    tokens_output: int = Field(0, ge=0, description="输出 token")
    total_cost: float = Field(0, ge=0, description="成本")

    started_at: Optional[datetime] = Field(None, description="开始时间")
    finished_at: Optional[datetime] = Field(None, description="结束时间")
    duration_ms: Optional[int] = Field(None, description="耗时(毫秒)")

    def __repr__(self) -> str:
        return f"<ScreeningNodeRun(node_key={self.node_key}, attempt_no={self.attempt_no}, status={self.status})>"


class ScreeningResult(TimestampMixin, IDMixin, SQLModel, table=True):
    """单份简历的最终匹配结果"""
    __tablename__ = "screening_results"
    __table_args__ = (
        UniqueConstraint("task_id", "resume_id", name="uq_screening_result_task_resume"),
    )

    task_id: str = Field(sa_column=_task_fk(), description="任务ID")
    task_resume_id: str = Field(..., index=True, description="任务简历ID")
    job_position_id: str = Field(..., index=True, description="岗位画像ID")
    resume_id: str = Field(..., index=True, description="简历ID")

    overall_score: float = Field(..., ge=0, le=100, description="综合得分")
    match_level: str = Field(..., max_length=20, index=True, description="匹配等级")
    dimension_scores: dict = Field(default_factory=dict, sa_column=Column(JSON), description="可用维度得分")

    basic_detail: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    skill_detail: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    responsibility_detail: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    experience_detail: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    education_detail: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    industry_detail: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    recommendations: list = Field(default_factory=list, sa_column=Column(JSON), description="推荐建议")
    trace_id: Optional[str] = Field(None, description="链路追踪ID")
    runtime_metadata: Optional[dict] = Field(default=None, sa_column=Column(JSON), description="运行元数据")
    matched_at: datetime = Field(..., description="匹配时间")

    def __repr__(self) -> str:
        return f"<ScreeningResult(resume_id={self.resume_id}, overall_score={self.overall_score})>"


class ScreeningRunMetric(TimestampMixin, IDMixin, SQLModel, table=True):
    """任务级运行指标"""
    __tablename__ = "screening_run_metrics"

    task_id: str = Field(
        sa_column=SAColumn(String, ForeignKey("screening_tasks.id", ondelete="CASCADE"), unique=True, index=True, nullable=False),
        description="任务ID"
    )
    avg_score: float = Field(0, description="平均分")
    histogram: dict = Field(default_factory=dict, sa_column=Column(JSON), description="匹配等级分布")
    tokens_input: int = Field(0, description="输入 token 合计")
    tokens_output: int = Field(0, description="输出 token 合计")
    total_cost: float = Field(0, description="成本合计")


# ==================== 请求 Schema ====================

class ScreeningTaskCreate(SQLModelBase):
    """创建筛选任务请求"""
    job_position_id: str = Field(..., min_length=1, description="岗位画像ID")
    resume_ids: List[str] = Field(default_factory=list, description="简历ID列表")
    dimension_weights: Optional[DimensionWeights] = Field(None, description="自定义维度权重")
    weight_template_id: Optional[str] = Field(None, description="权重模板ID")
    created_by: Optional[str] = Field(None, description="创建人")
    notes: Optional[str] = Field(None, description="备注")
    agent_version: Optional[str] = Field(None, description="期望的匹配 Agent 版本")


class NodeRunFilter(SQLModelBase):
    """节点运行记录过滤条件"""
    task_id: Optional[str] = None
    task_resume_id: Optional[str] = None
    node_key: Optional[str] = None
    status: Optional[str] = None


# ==================== 响应 Schema ====================

class ScreeningTaskResponse(TimestampResponse):
    """筛选任务响应"""
    job_position_id: str
    created_by: Optional[str] = None
    status: str
    notes: Optional[str] = None
    error_message: Optional[str] = None
    dimension_weights: DimensionWeights
    llm_config: Optional[Dict[str, Any]] = None
    agent_version: Optional[str] = None
    resume_total: int
    resume_processed: int
    resume_succeeded: int
    resume_failed: int
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class ScreeningTaskResumeResponse(TimestampResponse):
    """任务简历响应"""
    task_id: str
    resume_id: str
    status: str
    ranking: Optional[int] = None
    score: Optional[float] = None
    error_message: Optional[str] = None
    processed_at: Optional[datetime] = None


class ScreeningNodeRunResponse(TimestampResponse):
    """节点运行记录响应"""
    task_id: str
    task_resume_id: str
    node_key: str
    status: str
    attempt_no: int
    trace_id: Optional[str] = None
    llm_model: Optional[str] = None
    llm_provider: Optional[str] = None
    input_payload: Optional[Dict[str, Any]] = None
    output_payload: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    tokens_input: int = 0
    tokens_output: int = 0
    total_cost: float = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_ms: Optional[int] = None


class ScreeningResultResponse(TimestampResponse):
    """筛选结果响应"""
    task_id: str
    task_resume_id: str
    job_position_id: str
    resume_id: str
    overall_score: float
    match_level: str
    dimension_scores: Dict[str, float] = Field(default_factory=dict)
    basic_detail: Optional[BasicMatchDetail] = None
    skill_detail: Optional[SkillMatchDetail] = None
    responsibility_detail: Optional[ResponsibilityMatchDetail] = None
    experience_detail: Optional[ExperienceMatchDetail] = None
    education_detail: Optional[EducationMatchDetail] = None
    industry_detail: Optional[IndustryMatchDetail] = None
    recommendations: List[str] = Field(default_factory=list)
    trace_id: Optional[str] = None
    runtime_metadata: Optional[Dict[str, Any]] = None
    matched_at: datetime


class ScreeningRunMetricResponse(TimestampResponse):
    """运行指标响应"""
    task_id: str
    avg_score: float
    histogram: Dict[str, int] = Field(default_factory=dict)
    tokens_input: int
    tokens_output: int
    total_cost: float


class TaskProgressResponse(SQLModelBase):
    """任务进度响应"""
    task_id: str
    status: str
    resume_total: int
    resume_processed: int
    resume_succeeded: int
    resume_failed: int
    progress_percent: float
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    estimated_finish: Optional[datetime] = None
    running_resumes: List[Dict[str, Any]] = Field(default_factory=list)


class ResumeProgressResponse(SQLModelBase):
    """单份简历进度响应"""
    task_id: str
    resume_id: str
    task_resume_id: str
    status: str
    score: Optional[float] = None
    ranking: Optional[int] = None
    error_message: Optional[str] = None
    processed_at: Optional[datetime] = None
    current_node: Optional[str] = None
    created_at: datetime
    updated_at: datetime
