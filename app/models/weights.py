"""
维度权重与权重模板模型模块

DimensionWeights 为不可变配置对象，任务创建时注入并快照到任务上
"""
from enum import Enum
from typing import Dict, List, Optional
from sqlmodel import SQLModel, Field, Column, JSON
from pydantic import ConfigDict

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse


# 维度顺序，与评分 Agent 一一对应
DIMENSIONS: List[str] = [
    "skill",
    "responsibility",
    "experience",
    "education",
    "industry",
    "basic",
]

# 权重总和允许的浮点误差
WEIGHT_SUM_EPSILON = 1e-4


class DimensionWeights(SQLModelBase):
    """六个维度的权重，各自为 [0, 1] 之间的比例"""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    skill: float = Field(0.35, description="技能权重")
    responsibility: float = Field(0.20, description="职责权重")
    experience: float = Field(0.20, description="经验权重")
    education: float = Field(0.15, description="教育权重")
    industry: float = Field(0.07, description="行业权重")
    basic: float = Field(0.03, description="基本信息权重")

    def total(self) -> float:
        return sum(getattr(self, d) for d in DIMENSIONS)

    def get(self, dimension: str) -> float:
        return getattr(self, dimension)

    def as_dict(self) -> Dict[str, float]:
        return {d: getattr(self, d) for d in DIMENSIONS}


DEFAULT_DIMENSION_WEIGHTS = DimensionWeights()


def validate_weights(weights: DimensionWeights) -> DimensionWeights:
    """
    校验权重配置

    各维度必须在 [0, 1] 内，总和必须等于 1.0（允许浮点误差）

    Raises:
        ValueError: 权重非法
    """
    for dimension in DIMENSIONS:
        value = weights.get(dimension)
        if value < 0 or value > 1:
            raise ValueError(f"{dimension} 权重必须在 0 到 1 之间")
    total = weights.total()
    if abs(total - 1.0) > WEIGHT_SUM_EPSILON:
        raise ValueError(f"权重总和必须等于 1.0，当前总和为 {total:.6f}")
    return weights


# 单个维度的最低权重，非零权重低于它时抬到该值
WEIGHT_FLOOR = 0.03


def sanitize_weights(values: Dict[str, float]) -> DimensionWeights:
    """
    清洗模型给出的权重

    负值置 0，过小的非零值抬到 WEIGHT_FLOOR，再按比例归一化；
    全部接近 0 时退回默认权重
    """
    cleaned: Dict[str, float] = {}
    for dimension in DIMENSIONS:
        value = max(float(values.get(dimension) or 0.0), 0.0)
        if 0 < value < WEIGHT_FLOOR:
            value = WEIGHT_FLOOR
        cleaned[dimension] = value

    total = sum(cleaned.values())
    if total < 0.01:
        return DEFAULT_DIMENSION_WEIGHTS
    return DimensionWeights(**{d: value / total for d, value in cleaned.items()})


# ==================== 表模型 ====================

class WeightTemplate(TimestampMixin, IDMixin, SQLModel, table=True):
    """权重模板表模型"""
    __tablename__ = "weight_templates"

    name: str = Field(..., max_length=100, unique=True, index=True, description="模板名称")
    description: Optional[str] = Field(None, description="模板描述")
    weights: dict = Field(default_factory=dict, sa_column=Column(JSON), description="维度权重")
    created_by: Optional[str] = Field(None, index=True, description="创建人")

    def to_weights(self) -> DimensionWeights:
        return DimensionWeights.model_validate(self.weights or {})

    def __repr__(self) -> str:
        return f"<WeightTemplate(id={self.id}, name={self.name})>"


# ==================== 请求 Schema ====================

class WeightTemplateCreate(SQLModelBase):
    """创建权重模板请求"""
    name: str = Field(..., min_length=1, max_length=100, description="模板名称")
    description: Optional[str] = Field(None, description="模板描述")
    weights: DimensionWeights = Field(..., description="维度权重")
    created_by: Optional[str] = Field(None, description="创建人")


class WeightTemplateUpdate(SQLModelBase):
    """更新权重模板请求"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    weights: Optional[DimensionWeights] = None


# ==================== 响应 Schema ====================

class WeightTemplateResponse(TimestampResponse):
    """权重模板响应"""
    name: str
    description: Optional[str] = None
    weights: DimensionWeights
    created_by: Optional[str] = None


# ==================== 权重预览 ====================

class WeightSchemeType(str, Enum):
    """预览方案类型，顺序固定"""
    DEFAULT = "default"
    FRESH_GRADUATE = "fresh_graduate"
    EXPERIENCED = "experienced"


class WeightScheme(SQLModelBase):
    """一套推荐权重及其理由"""
    type: WeightSchemeType
    weights: DimensionWeights
    rationale: List[str] = Field(default_factory=list)


class WeightPreviewRequest(SQLModelBase):
    """权重预览请求"""
    job_position_id: str = Field(..., description="岗位画像ID")


class WeightPreviewResponse(SQLModelBase):
    """权重预览响应，fallback 为 True 表示模型推理失败、返回的是默认权重"""
    job_position_id: str
    schemes: List[WeightScheme]
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    agent_version: str
    fallback: bool = False
