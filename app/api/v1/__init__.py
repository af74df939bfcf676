"""
API v1 路由模块
"""
from . import screening, weight_templates, job_profiles, resumes

__all__ = [
    "screening",
    "weight_templates",
    "job_profiles",
    "resumes",
]
