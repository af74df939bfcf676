"""
简历 CRUD 操作
"""
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.resume import Resume, ResumeCreate, ResumeDetail
from .base import CRUDBase


class CRUDResume(CRUDBase[Resume]):
    """简历 CRUD 操作类"""

    async def create_resume(
        self,
        db: AsyncSession,
        *,
        obj_in: ResumeCreate
    ) -> Resume:
        """创建简历（嵌套结构以 JSON 存储）"""
        return await self.create(db, obj_in=obj_in.model_dump(mode="json"))

    async def get_detail(self, db: AsyncSession, id: str) -> Optional[ResumeDetail]:
        """获取简历详情投影"""
        resume = await self.get(db, id)
        if resume is None:
            return None
        return ResumeDetail.model_validate(resume)

    async def get_existing_ids(self, db: AsyncSession, ids: List[str]) -> set:
        """返回 ids 中实际存在的简历 ID"""
        if not ids:
            return set()
        result = await db.execute(
            select(self.model.id).where(self.model.id.in_(ids))
        )
        return set(result.scalars().all())


resume_crud = CRUDResume(Resume)
