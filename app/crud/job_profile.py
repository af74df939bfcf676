"""
岗位画像 CRUD 操作
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.job_profile import JobProfile, JobProfileCreate, JobProfileDetail
from .base import CRUDBase


class CRUDJobProfile(CRUDBase[JobProfile]):
    """岗位画像 CRUD 操作类"""

    async def create_profile(
        self,
        db: AsyncSession,
        *,
        obj_in: JobProfileCreate
    ) -> JobProfile:
        """创建岗位画像"""
        return await self.create(db, obj_in=obj_in.model_dump(mode="json"))

    async def get_detail(self, db: AsyncSession, id: str) -> Optional[JobProfileDetail]:
        """获取岗位画像详情投影"""
        profile = await self.get(db, id)
        if profile is None:
            return None
        return JobProfileDetail.model_validate(profile)


job_profile_crud = CRUDJobProfile(JobProfile)
