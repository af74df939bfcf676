"""
岗位画像 API 路由

岗位画像由岗位服务维护，这里只提供录入和查询
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.response import success_response, ResponseModel
from app.core.exceptions import NotFoundException
from app.crud import job_profile_crud
from app.models import JobProfileCreate, JobProfileDetail

router = APIRouter()


@router.post("", summary="创建岗位画像", response_model=ResponseModel[JobProfileDetail])
async def create_job_profile(
    data: JobProfileCreate,
    db: AsyncSession = Depends(get_db),
):
    profile = await job_profile_crud.create_profile(db, obj_in=data)
    return success_response(
        data=JobProfileDetail.model_validate(profile).model_dump(),
        message="岗位画像创建成功"
    )


@router.get("/{profile_id}", summary="获取岗位画像详情", response_model=ResponseModel[JobProfileDetail])
async def get_job_profile(
    profile_id: str,
    db: AsyncSession = Depends(get_db),
):
    detail = await job_profile_crud.get_detail(db, profile_id)
    if detail is None:
        raise NotFoundException(f"岗位画像不存在: {profile_id}")
    return success_response(data=detail.model_dump())
