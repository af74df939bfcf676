"""
权重模板服务
"""
from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, InvalidInputException, NotFoundException
from app.crud import weight_template_crud
from app.models.weights import (
    DimensionWeights,
    WeightTemplate,
    WeightTemplateCreate,
    WeightTemplateUpdate,
    validate_weights,
)


def ensure_valid_weights(weights: DimensionWeights) -> DimensionWeights:
    """校验权重，非法时转换为业务异常"""
    try:
        return validate_weights(weights)
    except ValueError as exc:
        raise InvalidInputException(f"维度权重不合法: {exc}") from exc


class WeightTemplateService:
    """权重模板的增删改查"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, template_id: str) -> WeightTemplate:
        template = await weight_template_crud.get(self.db, template_id)
        if template is None:
            raise NotFoundException(f"权重模板不存在: {template_id}")
        return template

    async def get_weights(self, template_id: str) -> DimensionWeights:
        """获取模板中的权重"""
        template = await self.get(template_id)
        return template.to_weights()

    async def list_templates(
        self,
        *,
        created_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[WeightTemplate], int]:
        return await weight_template_crud.list_templates(
            self.db, created_by=created_by, skip=skip, limit=limit
        )

    async def create(self, data: WeightTemplateCreate) -> WeightTemplate:
        """
        创建模板

        Raises:
            InvalidInputException: 权重不合法
            ConflictException: 名称已存在
        """
        ensure_valid_weights(data.weights)
        if await weight_template_crud.get_by_name(self.db, data.name):
            raise ConflictException(f"权重模板名称已存在: {data.name}")
        template = await weight_template_crud.create_template(self.db, obj_in=data)
        logger.info("创建权重模板: {} ({})", template.name, template.id)
        return template

    async def update(self, template_id: str, data: WeightTemplateUpdate) -> WeightTemplate:
        template = await self.get(template_id)
        if data.weights is not None:
            ensure_valid_weights(data.weights)
        if data.name and data.name != template.name:
            if await weight_template_crud.get_by_name(self.db, data.name):
                raise ConflictException(f"权重模板名称已存在: {data.name}")
        return await weight_template_crud.update_template(self.db, db_obj=template, obj_in=data)

    async def delete(self, template_id: str) -> None:
        await self.get(template_id)
        await weight_template_crud.delete(self.db, id=template_id)
        logger.info("删除权重模板: {}", template_id)
