"""
岗位画像模型模块 - SQLModel 版本

岗位画像由外部岗位服务维护，筛选引擎只读取其详情投影 JobProfileDetail
"""
from typing import Optional, List
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin, new_id


# ==================== 嵌套 Schema ====================

class JobResponsibility(SQLModelBase):
    """岗位职责"""
    id: str = Field(default_factory=new_id)
    responsibility: str = Field(..., min_length=1, description="职责描述")


class JobSkill(SQLModelBase):
    """岗位技能要求"""
    id: str = Field(default_factory=new_id)
    skill: str = Field(..., min_length=1, description="技能名称")
    type: str = Field("required", description="required 必备 / bonus 加分")


class JobEducationRequirement(SQLModelBase):
    """学历要求"""
    id: str = Field(default_factory=new_id)
    education_type: str = Field(..., description="学历层次，如 本科/硕士")
    major: Optional[str] = Field(None, description="专业要求")


class JobExperienceRequirement(SQLModelBase):
    """经验要求"""
    id: str = Field(default_factory=new_id)
    experience_type: str = Field("work", description="经验类型")
    min_years: float = Field(0, ge=0, description="最低年限")
    ideal_years: Optional[float] = Field(None, ge=0, description="理想年限")


class JobIndustryRequirement(SQLModelBase):
    """行业要求"""
    id: str = Field(default_factory=new_id)
    industry: str = Field(..., description="行业")
    company_name: Optional[str] = Field(None, description="目标公司")


# ==================== 基础字段定义 ====================

class JobProfileBase(SQLModelBase):
    """岗位画像基础字段"""
    name: str = Field(..., min_length=1, max_length=100, description="岗位名称", index=True)
    department: Optional[str] = Field(None, max_length=100, description="所属部门")
    location: Optional[str] = Field(None, max_length=100, description="工作地点")
    salary_min: Optional[float] = Field(None, ge=0, description="最低薪资(K)")
    salary_max: Optional[float] = Field(None, ge=0, description="最高薪资(K)")
    description: Optional[str] = Field(None, description="岗位描述/JD")


# ==================== 表模型 ====================

class JobProfile(JobProfileBase, TimestampMixin, IDMixin, table=True):
    """岗位画像表模型"""
    __tablename__ = "job_profiles"

    responsibilities: list = Field(default_factory=list, sa_column=Column(JSON), description="岗位职责")
    skills: list = Field(default_factory=list, sa_column=Column(JSON), description="技能要求")
    education_requirements: list = Field(default_factory=list, sa_column=Column(JSON), description="学历要求")
    experience_requirements: list = Field(default_factory=list, sa_column=Column(JSON), description="经验要求")
    industry_requirements: list = Field(default_factory=list, sa_column=Column(JSON), description="行业要求")

    def __repr__(self) -> str:
        return f"<JobProfile(id={self.id}, name={self.name})>"


# ==================== 请求 Schema ====================

class JobProfileCreate(JobProfileBase):
    """创建岗位画像请求"""
    responsibilities: List[JobResponsibility] = Field(default_factory=list)
    skills: List[JobSkill] = Field(default_factory=list)
    education_requirements: List[JobEducationRequirement] = Field(default_factory=list)
    experience_requirements: List[JobExperienceRequirement] = Field(default_factory=list)
    industry_requirements: List[JobIndustryRequirement] = Field(default_factory=list)


# ==================== 响应 Schema ====================

class JobProfileDetail(JobProfileCreate):
    """岗位画像详情（筛选引擎消费的数据契约）"""
    id: str
