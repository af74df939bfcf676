"""
六个维度的评分 Agent
"""
from typing import Dict, Optional

from app.models.payloads import (
    BasicMatchDetail,
    SkillMatchDetail,
    ResponsibilityMatchDetail,
    ExperienceMatchDetail,
    EducationMatchDetail,
    IndustryMatchDetail,
)
from app.models.screening import NodeKey
from .base import ScoringAgent
from .llm_client import LLMClient


class BasicInfoAgent(ScoringAgent):
    """地点、薪资、职能等基本信息匹配"""
    name = NodeKey.BASIC_INFO.value
    dimension = "basic"
    detail_model = BasicMatchDetail
    prompt_key = "basic_info"


class SkillAgent(ScoringAgent):
    """技能匹配"""
    name = NodeKey.SKILL.value
    dimension = "skill"
    detail_model = SkillMatchDetail
    prompt_key = "skill"


class ResponsibilityAgent(ScoringAgent):
    """岗位职责覆盖度"""
    name = NodeKey.RESPONSIBILITY.value
    dimension = "responsibility"
    detail_model = ResponsibilityMatchDetail
    prompt_key = "responsibility"


class ExperienceAgent(ScoringAgent):
    """工作年限与职位相关性"""
    name = NodeKey.EXPERIENCE.value
    dimension = "experience"
    detail_model = ExperienceMatchDetail
    prompt_key = "experience"


class EducationAgent(ScoringAgent):
    """学历、专业、院校"""
    name = NodeKey.EDUCATION.value
    dimension = "education"
    detail_model = EducationMatchDetail
    prompt_key = "education"


class IndustryAgent(ScoringAgent):
    """行业背景"""
    name = NodeKey.INDUSTRY.value
    dimension = "industry"
    detail_model = IndustryMatchDetail
    prompt_key = "industry"


AGENT_CLASSES = (
    BasicInfoAgent,
    SkillAgent,
    ResponsibilityAgent,
    ExperienceAgent,
    EducationAgent,
    IndustryAgent,
)


def build_default_agents(llm: Optional[LLMClient] = None) -> Dict[str, ScoringAgent]:
    """按节点名构建全部评分 Agent，共享同一个 LLM 客户端"""
    return {cls.name: cls(llm) for cls in AGENT_CLASSES}
