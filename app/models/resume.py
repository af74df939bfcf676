"""
简历模型模块 - SQLModel 版本

简历解析由外部服务完成，筛选引擎只读取结构化后的 ResumeDetail
"""
from typing import Optional, List
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin


# ==================== 嵌套 Schema ====================

class ResumeEducation(SQLModelBase):
    """教育经历"""
    school: str = Field(..., description="学校")
    degree: Optional[str] = Field(None, description="学历")
    major: Optional[str] = Field(None, description="专业")
    gpa: Optional[float] = Field(None, ge=0, description="GPA")
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class ResumeExperience(SQLModelBase):
    """工作/实习/项目经历"""
    company: Optional[str] = Field(None, description="公司")
    position: Optional[str] = Field(None, description="职位")
    title: Optional[str] = Field(None, description="职级/头衔")
    industry: Optional[str] = Field(None, description="所属行业")
    experience_type: str = Field("work", description="work/internship/...")
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    description: Optional[str] = Field(None, description="经历描述")


class ResumeSkill(SQLModelBase):
    """技能"""
    skill_name: str = Field(..., description="技能名称")
    level: Optional[str] = Field(None, description="熟练程度")
    description: Optional[str] = None


class ResumeProject(SQLModelBase):
    """项目经历"""
    name: str = Field(..., description="项目名称")
    role: Optional[str] = Field(None, description="担任角色")
    description: Optional[str] = None
    technologies: List[str] = Field(default_factory=list, description="技术栈")


# ==================== 基础字段定义 ====================

class ResumeBase(SQLModelBase):
    """简历基础字段"""
    name: str = Field(..., min_length=1, max_length=50, description="候选人姓名", index=True)
    email: Optional[str] = Field(None, max_length=100, description="邮箱")
    phone: Optional[str] = Field(None, max_length=20, description="电话")
    current_city: Optional[str] = Field(None, max_length=50, description="当前城市")
    highest_education: Optional[str] = Field(None, max_length=20, description="最高学历")
    years_experience: Optional[float] = Field(None, ge=0, description="工作年限")


# ==================== 表模型 ====================

class Resume(ResumeBase, TimestampMixin, IDMixin, table=True):
    """简历表模型"""
    __tablename__ = "resumes"

    educations: list = Field(default_factory=list, sa_column=Column(JSON), description="教育经历")
    experiences: list = Field(default_factory=list, sa_column=Column(JSON), description="工作经历")
    skills: list = Field(default_factory=list, sa_column=Column(JSON), description="技能")
    projects: list = Field(default_factory=list, sa_column=Column(JSON), description="项目经历")

    def __repr__(self) -> str:
        return f"<Resume(id={self.id}, name={self.name})>"


# ==================== 请求 Schema ====================

class ResumeCreate(ResumeBase):
    """创建简历请求"""
    educations: List[ResumeEducation] = Field(default_factory=list)
    experiences: List[ResumeExperience] = Field(default_factory=list)
    skills: List[ResumeSkill] = Field(default_factory=list)
    projects: List[ResumeProject] = Field(default_factory=list)


# ==================== 响应 Schema ====================

class ResumeDetail(ResumeCreate):
    """简历详情（筛选引擎消费的数据契约）"""
    id: str

    def has_usable_data(self) -> bool:
        """是否包含可供评分的结构化数据"""
        return bool(
            self.educations
            or self.experiences
            or self.skills
            or self.projects
            or self.years_experience
        )
