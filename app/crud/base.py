"""
CRUD 基类模块 - SQLModel 简化版

直接使用 SQLModel 对象，无需 model_dump() 转换
"""
from typing import Generic, TypeVar, Type, Optional, List, Any, Dict, Sequence
from sqlalchemy import select, func, delete as sa_delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from app.models.base import utc_now

ModelType = TypeVar("ModelType", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=SQLModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=SQLModel)


class CRUDBase(Generic[ModelType]):
    """
    CRUD 基类 - 简化版

    直接操作 SQLModel 对象，减少样板代码
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: str) -> Optional[ModelType]:
        """根据 ID 获取单条记录"""
        result = await db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_multi(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        order_by: Any = None,
        where: Sequence[Any] = (),
    ) -> List[ModelType]:
        """获取多条记录（分页），where 为 SQLAlchemy 条件列表"""
        query = select(self.model).where(*where)
        if order_by is not None:
            query = query.order_by(order_by)
        else:
            query = query.order_by(self.model.created_at.desc())
        query = query.offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count(self, db: AsyncSession, *, where: Sequence[Any] = ()) -> int:
        """获取记录数"""
        result = await db.execute(
            select(func.count()).select_from(self.model).where(*where)
        )
        return result.scalar() or 0

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: CreateSchemaType | Dict[str, Any]
    ) -> ModelType:
        """
        创建记录

        SQLModel 可以直接从 Schema 创建 Model
        """
        # 如果传入的是 dict，直接使用；否则转换
        if isinstance(obj_in, dict):
            db_obj = self.model(**obj_in)
        else:
            db_obj = self.model.model_validate(obj_in)

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: UpdateSchemaType | Dict[str, Any]
    ) -> ModelType:
        """
        更新记录

        支持传入 Schema 或 dict；dict 中显式给出的 None 会写入
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = {
                k: v for k, v in obj_in.model_dump(exclude_unset=True).items()
                if v is not None
            }

        for field, value in update_data.items():
            setattr(db_obj, field, value)
        if hasattr(db_obj, "updated_at"):
            db_obj.updated_at = utc_now()

        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def delete(self, db: AsyncSession, *, id: str) -> bool:
        """删除记录"""
        obj = await self.get(db, id)
        if obj:
            await db.delete(obj)
            await db.flush()
            return True
        return False

    async def delete_where(self, db: AsyncSession, *where: Any) -> int:
        """按条件批量删除，返回删除行数"""
        result = await db.execute(sa_delete(self.model).where(*where))
        return result.rowcount or 0
