"""
权重模板 CRUD 操作
"""
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.weights import WeightTemplate, WeightTemplateCreate, WeightTemplateUpdate
from .base import CRUDBase


class CRUDWeightTemplate(CRUDBase[WeightTemplate]):
    """权重模板 CRUD 操作类"""

    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[WeightTemplate]:
        """根据名称查找"""
        result = await db.execute(
            select(self.model).where(self.model.name == name)
        )
        return result.scalar_one_or_none()

    async def list_templates(
        self,
        db: AsyncSession,
        *,
        created_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> tuple[List[WeightTemplate], int]:
        """分页获取模板列表"""
        where = [self.model.created_by == created_by] if created_by else []
        items = await self.get_multi(db, skip=skip, limit=limit, where=where)
        total = await self.count(db, where=where)
        return items, total

    async def create_template(
        self,
        db: AsyncSession,
        *,
        obj_in: WeightTemplateCreate
    ) -> WeightTemplate:
        """创建模板"""
        return await self.create(db, obj_in=obj_in.model_dump(mode="json"))

    async def update_template(
        self,
        db: AsyncSession,
        *,
        db_obj: WeightTemplate,
        obj_in: WeightTemplateUpdate
    ) -> WeightTemplate:
        """更新模板"""
        update_data = {
            k: v for k, v in obj_in.model_dump(mode="json", exclude_unset=True).items()
            if v is not None
        }
        return await self.update(db, db_obj=db_obj, obj_in=update_data)


weight_template_crud = CRUDWeightTemplate(WeightTemplate)
