"""
权重模板 API 路由
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.response import (
    success_response,
    paged_response,
    ResponseModel,
    PagedResponseModel,
    MessageResponse,
)
from app.models import (
    DEFAULT_DIMENSION_WEIGHTS,
    DimensionWeights,
    WeightTemplateCreate,
    WeightTemplateUpdate,
    WeightTemplateResponse,
)
from app.services.weight_template import WeightTemplateService

router = APIRouter()


def get_template_service(db: AsyncSession = Depends(get_db)) -> WeightTemplateService:
    return WeightTemplateService(db)


@router.get("/defaults", summary="获取默认维度权重", response_model=ResponseModel[DimensionWeights])
async def get_default_weights():
    return success_response(data=DEFAULT_DIMENSION_WEIGHTS.model_dump())


@router.get("", summary="获取权重模板列表", response_model=PagedResponseModel[WeightTemplateResponse])
async def list_templates(
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    created_by: Optional[str] = Query(None, description="创建人"),
    service: WeightTemplateService = Depends(get_template_service),
):
    skip = (page - 1) * page_size
    templates, total = await service.list_templates(created_by=created_by, skip=skip, limit=page_size)
    items = [WeightTemplateResponse.model_validate(t).model_dump() for t in templates]
    return paged_response(items, total, page, page_size)


@router.post("", summary="创建权重模板", response_model=ResponseModel[WeightTemplateResponse])
async def create_template(
    data: WeightTemplateCreate,
    service: WeightTemplateService = Depends(get_template_service),
):
    """
    创建权重模板，各维度权重在 [0, 1] 内且总和为 1
    """
    template = await service.create(data)
    return success_response(
        data=WeightTemplateResponse.model_validate(template).model_dump(),
        message="权重模板创建成功"
    )


@router.get("/{template_id}", summary="获取权重模板详情", response_model=ResponseModel[WeightTemplateResponse])
async def get_template(
    template_id: str,
    service: WeightTemplateService = Depends(get_template_service),
):
    template = await service.get(template_id)
    return success_response(data=WeightTemplateResponse.model_validate(template).model_dump())


@router.patch("/{template_id}", summary="更新权重模板", response_model=ResponseModel[WeightTemplateResponse])
async def update_template(
    template_id: str,
    data: WeightTemplateUpdate,
    service: WeightTemplateService = Depends(get_template_service),
):
    template = await service.update(template_id, data)
    return success_response(
        data=WeightTemplateResponse.model_validate(template).model_dump(),
        message="权重模板更新成功"
    )


@router.delete("/{template_id}", summary="删除权重模板", response_model=MessageResponse)
async def delete_template(
    template_id: str,
    service: WeightTemplateService = Depends(get_template_service),
):
    await service.delete(template_id)
    return success_response(message="权重模板删除成功")
