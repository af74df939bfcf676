"""
LLM Agent 模块

分发器、六个维度评分 Agent、聚合器和共享的 LLM 客户端
"""
from .llm_client import LLMClient, TokenUsage, get_llm_client
from .base import ScoringAgent, AgentScore
from .scoring import (
    BasicInfoAgent,
    SkillAgent,
    ResponsibilityAgent,
    ExperienceAgent,
    EducationAgent,
    IndustryAgent,
    build_default_agents,
)
from .dispatcher import dispatch
from .aggregator import aggregate, build_recommendations

__all__ = [
    "LLMClient",
    "TokenUsage",
    "get_llm_client",
    "ScoringAgent",
    "AgentScore",
    "BasicInfoAgent",
    "SkillAgent",
    "ResponsibilityAgent",
    "ExperienceAgent",
    "EducationAgent",
    "IndustryAgent",
    "build_default_agents",
    "dispatch",
    "aggregate",
    "build_recommendations",
]
