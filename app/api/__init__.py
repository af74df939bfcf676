"""
API 路由模块
"""
from fastapi import APIRouter

from .v1 import screening, weight_templates, job_profiles, resumes

# 创建主路由
api_router = APIRouter()

# 注册各模块路由
api_router.include_router(
    screening.router,
    prefix="/screening",
    tags=["简历筛选"]
)
api_router.include_router(
    weight_templates.router,
    prefix="/weight-templates",
    tags=["权重模板"]
)
api_router.include_router(
    job_profiles.router,
    prefix="/job-profiles",
    tags=["岗位画像"]
)
api_router.include_router(
    resumes.router,
    prefix="/resumes",
    tags=["简历管理"]
)
