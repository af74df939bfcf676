"""
筛选任务 CRUD 操作

任务、任务简历、筛选结果、运行指标
"""
from typing import Optional, List, Dict, Any, Sequence
from sqlalchemy import select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utc_now
from app.models.screening import (
    ScreeningTask,
    ScreeningTaskResume,
    ScreeningNodeRun,
    ScreeningResult,
    ScreeningRunMetric,
    TaskResumeStatus,
)
from .base import CRUDBase


class CRUDScreeningTask(CRUDBase[ScreeningTask]):
    """筛选任务 CRUD 操作类"""

    async def list_tasks(
        self,
        db: AsyncSession,
        *,
        job_position_id: Optional[str] = None,
        status: Optional[str] = None,
        created_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> tuple[List[ScreeningTask], int]:
        """按岗位、状态、创建人筛选任务"""
        where = []
        if job_position_id:
            where.append(self.model.job_position_id == job_position_id)
        if status:
            where.append(self.model.status == status)
        if created_by:
            where.append(self.model.created_by == created_by)
        items = await self.get_multi(db, skip=skip, limit=limit, where=where)
        total = await self.count(db, where=where)
        return items, total

    async def increment_counters(
        self,
        db: AsyncSession,
        task_id: str,
        *,
        succeeded: bool
    ) -> None:
        """
        简历到达终态时原子地累加计数

        processed 与 succeeded/failed 在同一条 UPDATE 中变更
        """
        values = {
            "resume_processed": self.model.resume_processed + 1,
            "updated_at": utc_now(),
        }
        if succeeded:
            values["resume_succeeded"] = self.model.resume_succeeded + 1
        else:
            values["resume_failed"] = self.model.resume_failed + 1
        await db.execute(
            sa_update(self.model)
            .where(self.model.id == task_id)
            .where(self.model.resume_processed < self.model.resume_total)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def transition(
        self,
        db: AsyncSession,
        task: ScreeningTask,
        from_statuses: Sequence[str],
        **values: Any
    ) -> bool:
        """
        条件状态流转：仅当数据库中的状态仍在 from_statuses 内时更新

        未命中时刷新 task，调用方可读到实际状态
        """
        values.setdefault("updated_at", utc_now())
        result = await db.execute(
            sa_update(self.model)
            .where(self.model.id == task.id)
            .where(self.model.status.in_(list(from_statuses)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await db.refresh(task)
        return bool(result.rowcount)

    async def delete_cascade(self, db: AsyncSession, task_id: str) -> None:
        """删除任务及其全部关联数据"""
        for model in (ScreeningNodeRun, ScreeningResult, ScreeningRunMetric, ScreeningTaskResume):
            await self.delete_where(db, model.task_id == task_id)
        await self.delete_where(db, self.model.id == task_id)


class CRUDTaskResume(CRUDBase[ScreeningTaskResume]):
    """任务简历 CRUD 操作类"""

    async def get_by_task_and_resume(
        self,
        db: AsyncSession,
        task_id: str,
        resume_id: str
    ) -> Optional[ScreeningTaskResume]:
        result = await db.execute(
            select(self.model).where(
                self.model.task_id == task_id,
                self.model.resume_id == resume_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_task(
        self,
        db: AsyncSession,
        task_id: str,
        *,
        status: Optional[str] = None
    ) -> List[ScreeningTaskResume]:
        """获取任务下的简历，按创建顺序"""
        query = select(self.model).where(self.model.task_id == task_id)
        if status:
            query = query.where(self.model.status == status)
        result = await db.execute(query.order_by(self.model.created_at, self.model.id))
        return list(result.scalars().all())

    async def create_for_task(
        self,
        db: AsyncSession,
        task_id: str,
        resume_ids: List[str]
    ) -> List[ScreeningTaskResume]:
        """为任务批量创建 pending 状态的简历关联"""
        rows = [
            ScreeningTaskResume(task_id=task_id, resume_id=resume_id)
            for resume_id in resume_ids
        ]
        db.add_all(rows)
        await db.flush()
        return rows

    async def cancel_unfinished(
        self,
        db: AsyncSession,
        task_id: str,
        *,
        message: str = "任务已被取消",
        include_in_flight: bool = False
    ) -> int:
        """
        将尚未开始打分的简历标记为 cancelled

        include_in_flight 为 True 时一并处理打分、聚合中的简历（没有运行器收尾的情况）
        """
        statuses = [TaskResumeStatus.PENDING.value, TaskResumeStatus.DISPATCHING.value]
        if include_in_flight:
            statuses += [TaskResumeStatus.SCORING.value, TaskResumeStatus.AGGREGATING.value]
        result = await db.execute(
            sa_update(self.model)
            .where(self.model.task_id == task_id)
            .where(self.model.status.in_(statuses))
            .values(
                status=TaskResumeStatus.CANCELLED.value,
                error_message=message,
                processed_at=utc_now(),
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def set_rankings(self, db: AsyncSession, rankings: Dict[str, int]) -> None:
        """批量写入排名，rankings 为 task_resume_id -> 名次"""
        for task_resume_id, ranking in rankings.items():
            await db.execute(
                sa_update(self.model)
                .where(self.model.id == task_resume_id)
                .values(ranking=ranking)
                .execution_options(synchronize_session=False)
            )


class CRUDScreeningResult(CRUDBase[ScreeningResult]):
    """筛选结果 CRUD 操作类"""

    async def get_by_task_and_resume(
        self,
        db: AsyncSession,
        task_id: str,
        resume_id: str
    ) -> Optional[ScreeningResult]:
        result = await db.execute(
            select(self.model).where(
                self.model.task_id == task_id,
                self.model.resume_id == resume_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_results(
        self,
        db: AsyncSession,
        *,
        task_id: Optional[str] = None,
        resume_id: Optional[str] = None,
        min_score: Optional[float] = None,
        max_score: Optional[float] = None,
        match_level: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> tuple[List[ScreeningResult], int]:
        """按分数区间、匹配等级过滤，按综合分降序"""
        where = []
        if task_id:
            where.append(self.model.task_id == task_id)
        if resume_id:
            where.append(self.model.resume_id == resume_id)
        if min_score is not None:
            where.append(self.model.overall_score >= min_score)
        if max_score is not None:
            where.append(self.model.overall_score <= max_score)
        if match_level:
            where.append(self.model.match_level == match_level)
        items = await self.get_multi(
            db,
            skip=skip,
            limit=limit,
            where=where,
            order_by=self.model.overall_score.desc(),
        )
        total = await self.count(db, where=where)
        return items, total

    async def ranked_for_task(self, db: AsyncSession, task_id: str) -> List[ScreeningResult]:
        """任务内全部结果，分数相同按匹配时间先后"""
        result = await db.execute(
            select(self.model)
            .where(self.model.task_id == task_id)
            .order_by(self.model.overall_score.desc(), self.model.matched_at)
        )
        return list(result.scalars().all())


class CRUDRunMetric(CRUDBase[ScreeningRunMetric]):
    """运行指标 CRUD 操作类"""

    async def get_by_task(self, db: AsyncSession, task_id: str) -> Optional[ScreeningRunMetric]:
        result = await db.execute(
            select(self.model).where(self.model.task_id == task_id)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        db: AsyncSession,
        task_id: str,
        values: Dict[str, Any]
    ) -> ScreeningRunMetric:
        """每个任务一行，存在则覆盖"""
        metric = await self.get_by_task(db, task_id)
        if metric is None:
            return await self.create(db, obj_in={"task_id": task_id, **values})
        return await self.update(db, db_obj=metric, obj_in=values)


screening_crud = CRUDScreeningTask(ScreeningTask)
task_resume_crud = CRUDTaskResume(ScreeningTaskResume)
result_crud = CRUDScreeningResult(ScreeningResult)
run_metric_crud = CRUDRunMetric(ScreeningRunMetric)
