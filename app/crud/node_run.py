"""
节点运行账本 CRUD 操作

每次尝试插入新行，(task_resume_id, node_key, attempt_no) 唯一
"""
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, InvalidStateException
from app.models.base import utc_now
from app.models.screening import ScreeningNodeRun, NodeRunStatus, NodeRunFilter, NodeKey
from .base import CRUDBase


def _duration_ms(started_at: Optional[datetime], finished_at: datetime) -> Optional[int]:
    if started_at is None:
        return None
    # SQLite 取回的时间不带时区
    if started_at.tzinfo is None and finished_at.tzinfo is not None:
        finished_at = finished_at.replace(tzinfo=None)
    return max(int((finished_at - started_at).total_seconds() * 1000), 0)


class CRUDNodeRun(CRUDBase[ScreeningNodeRun]):
    """节点运行 CRUD 操作类"""

    async def get_attempt(
        self,
        db: AsyncSession,
        task_resume_id: str,
        node_key: str,
        attempt_no: int
    ) -> Optional[ScreeningNodeRun]:
        """按幂等键获取"""
        result = await db.execute(
            select(self.model).where(
                self.model.task_resume_id == task_resume_id,
                self.model.node_key == node_key,
                self.model.attempt_no == attempt_no,
            )
        )
        return result.scalar_one_or_none()

    async def next_attempt_no(
        self,
        db: AsyncSession,
        task_resume_id: str,
        node_key: str
    ) -> int:
        """下一次尝试的序号：已有最大序号 + 1"""
        result = await db.execute(
            select(func.max(self.model.attempt_no)).where(
                self.model.task_resume_id == task_resume_id,
                self.model.node_key == node_key,
            )
        )
        return (result.scalar() or 0) + 1

    async def start_run(
        self,
        db: AsyncSession,
        *,
        task_id: str,
        task_resume_id: str,
        node_key: str,
        attempt_no: int,
        input_payload: Optional[Dict[str, Any]] = None,
        trace_id: Optional[str] = None,
        llm_model: Optional[str] = None,
        llm_provider: Optional[str] = None,
    ) -> ScreeningNodeRun:
        """
        登记一次节点尝试（状态 running）

        Raises:
            ConflictException: 同一幂等键已存在
        """
        if await self.get_attempt(db, task_resume_id, node_key, attempt_no):
            raise ConflictException(
                f"节点运行已存在: {node_key} 第 {attempt_no} 次尝试"
            )
        try:
            return await self.create(db, obj_in={
                "task_id": task_id,
                "task_resume_id": task_resume_id,
                "node_key": node_key,
                "attempt_no": attempt_no,
                "status": NodeRunStatus.RUNNING.value,
                "input_payload": input_payload,
                "trace_id": trace_id,
                "llm_model": llm_model,
                "llm_provider": llm_provider,
                "started_at": utc_now(),
            })
        except IntegrityError as exc:
            raise ConflictException(
                f"节点运行已存在: {node_key} 第 {attempt_no} 次尝试"
            ) from exc

    async def finish_run(
        self,
        db: AsyncSession,
        *,
        node_run: ScreeningNodeRun,
        status: NodeRunStatus,
        output_payload: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
        tokens_input: int = 0,
        tokens_output: int = 0,
        total_cost: float = 0.0,
        llm_model: Optional[str] = None,
    ) -> ScreeningNodeRun:
        """
        将一次尝试更新为终态，每次尝试只能更新一次

        Raises:
            InvalidStateException: 该尝试已是终态
        """
        if node_run.status in (NodeRunStatus.COMPLETED.value, NodeRunStatus.FAILED.value):
            raise InvalidStateException(
                f"节点运行已结束: {node_run.node_key} 第 {node_run.attempt_no} 次尝试"
            )
        finished_at = utc_now()
        update_data = {
            "status": status.value,
            "output_payload": output_payload,
            "error_message": error_message,
            "tokens_input": tokens_input,
            "tokens_output": tokens_output,
            "total_cost": total_cost,
            "finished_at": finished_at,
            "duration_ms": _duration_ms(node_run.started_at, finished_at),
        }
        if llm_model:
            update_data["llm_model"] = llm_model
        return await self.update(db, db_obj=node_run, obj_in=update_data)

    def _filter_conditions(self, filters: NodeRunFilter) -> list:
        conditions = []
        if filters.task_id:
            conditions.append(self.model.task_id == filters.task_id)
        if filters.task_resume_id:
            conditions.append(self.model.task_resume_id == filters.task_resume_id)
        if filters.node_key:
            conditions.append(self.model.node_key == filters.node_key)
        if filters.status:
            conditions.append(self.model.status == filters.status)
        return conditions

    async def list_runs(
        self,
        db: AsyncSession,
        filters: NodeRunFilter,
        *,
        skip: int = 0,
        limit: int = 100
    ) -> tuple[List[ScreeningNodeRun], int]:
        """按条件分页查询节点运行记录"""
        where = self._filter_conditions(filters)
        query = (
            select(self.model)
            .where(*where)
            .order_by(self.model.created_at, self.model.node_key, self.model.attempt_no)
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(query)
        total = await self.count(db, where=where)
        return list(result.scalars().all()), total

    async def list_for_task_resume(
        self,
        db: AsyncSession,
        task_resume_id: str,
        node_key: Optional[str] = None
    ) -> List[ScreeningNodeRun]:
        """获取某份简历的全部节点运行（按节点、尝试序号排序）"""
        query = select(self.model).where(self.model.task_resume_id == task_resume_id)
        if node_key:
            query = query.where(self.model.node_key == node_key)
        result = await db.execute(
            query.order_by(self.model.node_key, self.model.attempt_no)
        )
        return list(result.scalars().all())

    async def usage_totals(self, db: AsyncSession, task_id: str) -> Tuple[int, int, float]:
        """任务内全部节点运行的 token 与成本合计"""
        result = await db.execute(
            select(
                func.coalesce(func.sum(self.model.tokens_input), 0),
                func.coalesce(func.sum(self.model.tokens_output), 0),
                func.coalesce(func.sum(self.model.total_cost), 0.0),
            ).where(self.model.task_id == task_id)
        )
        tokens_input, tokens_output, total_cost = result.one()
        return int(tokens_input), int(tokens_output), round(float(total_cost), 6)

    async def latest_by_node(
        self,
        db: AsyncSession,
        task_resume_id: str
    ) -> Dict[str, Optional[ScreeningNodeRun]]:
        """每个节点的最新一次尝试，未运行的节点为 None"""
        latest: Dict[str, Optional[ScreeningNodeRun]] = {key.value: None for key in NodeKey}
        for run in await self.list_for_task_resume(db, task_resume_id):
            current = latest.get(run.node_key)
            if current is None or run.attempt_no > current.attempt_no:
                latest[run.node_key] = run
        return latest


node_run_crud = CRUDNodeRun(ScreeningNodeRun)
