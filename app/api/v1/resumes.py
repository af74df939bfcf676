"""
简历 API 路由

简历解析由外部服务完成，这里只录入和查询结构化简历
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.response import success_response, ResponseModel
from app.core.exceptions import NotFoundException
from app.crud import resume_crud
from app.models import ResumeCreate, ResumeDetail

router = APIRouter()


@router.post("", summary="创建简历", response_model=ResponseModel[ResumeDetail])
async def create_resume(
    data: ResumeCreate,
    db: AsyncSession = Depends(get_db),
):
    resume = await resume_crud.create_resume(db, obj_in=data)
    return success_response(
        data=ResumeDetail.model_validate(resume).model_dump(),
        message="简历创建成功"
    )


@router.get("/{resume_id}", summary="获取简历详情", response_model=ResponseModel[ResumeDetail])
async def get_resume(
    resume_id: str,
    db: AsyncSession = Depends(get_db),
):
    detail = await resume_crud.get_detail(db, resume_id)
    if detail is None:
        raise NotFoundException(f"简历不存在: {resume_id}")
    return success_response(data=detail.model_dump())
