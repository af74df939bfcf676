"""
筛选任务服务

任务的创建、启动、取消、删除及各类查询。
运行器在后台执行流水线，这里只负责状态流转和校验。
"""
from datetime import timezone
from typing import Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.llm_client import get_llm_client
from app.core.config import settings
from app.core.exceptions import InvalidInputException, InvalidStateException, NotFoundException
from app.core.progress_cache import ProgressCache, progress_cache
from app.crud import (
    job_profile_crud,
    node_run_crud,
    resume_crud,
    result_crud,
    run_metric_crud,
    screening_crud,
    task_resume_crud,
)
from app.models.base import utc_now
from app.models.screening import (
    NodeRunFilter,
    ScreeningNodeRun,
    ScreeningResult,
    ScreeningRunMetric,
    ScreeningTask,
    ScreeningTaskCreate,
    ScreeningTaskResume,
    TaskProgressResponse,
    ResumeProgressResponse,
    TaskStatus,
)
from app.models.weights import DEFAULT_DIMENSION_WEIGHTS, DimensionWeights
from app.services.weight_template import WeightTemplateService, ensure_valid_weights
from .cancellation import CancelRegistry, cancel_registry


def _as_aware(value):
    # SQLite 取回的时间不带时区，统一按 UTC 处理
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ScreeningService:
    """筛选任务编排服务"""

    def __init__(
        self,
        db: AsyncSession,
        *,
        cancels: Optional[CancelRegistry] = None,
        progress: Optional[ProgressCache] = None,
    ):
        self.db = db
        self.cancels = cancels or cancel_registry
        self.progress = progress or progress_cache

    # ==================== 状态流转 ====================

    async def resolve_weights(
        self,
        weights: Optional[DimensionWeights],
        weight_template_id: Optional[str],
    ) -> DimensionWeights:
        """
        权重优先级：显式权重 > 模板 > 默认

        Raises:
            InvalidInputException: 权重不合法
            NotFoundException: 模板不存在
        """
        if weights is not None:
            return ensure_valid_weights(weights)
        if weight_template_id:
            template_weights = await WeightTemplateService(self.db).get_weights(weight_template_id)
            return ensure_valid_weights(template_weights)
        return DEFAULT_DIMENSION_WEIGHTS

    async def create_task(self, data: ScreeningTaskCreate) -> ScreeningTask:
        """
        创建筛选任务（pending），每份简历一条 pending 关联

        Raises:
            InvalidInputException: 简历列表为空或重复、岗位或简历不存在、权重非法、Agent 版本不一致
            NotFoundException: 权重模板不存在
        """
        if not data.resume_ids:
            raise InvalidInputException("简历列表不能为空")
        if len(set(data.resume_ids)) != len(data.resume_ids):
            raise InvalidInputException("简历列表包含重复的简历")
        if data.agent_version and data.agent_version != settings.screening_agent_version:
            raise InvalidInputException(
                f"匹配 Agent 版本不一致: 期望 {data.agent_version}，"
                f"当前 {settings.screening_agent_version}"
            )

        if await job_profile_crud.get(self.db, data.job_position_id) is None:
            raise InvalidInputException(f"岗位画像不存在: {data.job_position_id}")
        existing = await resume_crud.get_existing_ids(self.db, data.resume_ids)
        missing = [resume_id for resume_id in data.resume_ids if resume_id not in existing]
        if missing:
            raise InvalidInputException(f"简历不存在: {', '.join(missing)}")

        weights = await self.resolve_weights(data.dimension_weights, data.weight_template_id)

        task = await screening_crud.create(self.db, obj_in={
            "job_position_id": data.job_position_id,
            "created_by": data.created_by,
            "notes": data.notes,
            "status": TaskStatus.PENDING.value,
            "dimension_weights": weights.as_dict(),
            "llm_config": get_llm_client().snapshot(),
            "agent_version": settings.screening_agent_version,
            "resume_total": len(data.resume_ids),
        })
        await task_resume_crud.create_for_task(self.db, task.id, data.resume_ids)
        logger.info(
            "创建筛选任务 {}: 岗位 {}, {} 份简历", task.id, data.job_position_id, len(data.resume_ids)
        )
        return task

    async def start_task(self, task_id: str) -> ScreeningTask:
        """
        pending -> running，调用方负责提交事务后调度运行器

        Raises:
            InvalidStateException: 任务不是 pending
        """
        task = await self.get_task(task_id)
        if task.status != TaskStatus.PENDING.value:
            raise InvalidStateException(
                f"只有待执行的任务可以启动，当前状态: {task.status}",
                data={"status": task.status},
            )
        task = await screening_crud.update(self.db, db_obj=task, obj_in={
            "status": TaskStatus.RUNNING.value,
            "started_at": utc_now(),
        })
        logger.info("启动筛选任务 {}", task_id)
        return task

    async def cancel_task(self, task_id: str) -> ScreeningTask:
        """
        取消任务

        running 且有运行器时进入 cancelling，由运行器收尾为 cancelled；
        pending 或没有运行器时直接 cancelled。已完成的简历保留结果。

        Raises:
            InvalidStateException: 任务已结束或正在取消
        """
        task = await self.get_task(task_id)
        cancellable = (TaskStatus.PENDING.value, TaskStatus.RUNNING.value)
        if task.status not in cancellable:
            raise self._cannot_cancel(task)

        # 先落库 cancelling 再通知运行器，运行器已写入终态时条件更新不会覆盖它
        if task.status == TaskStatus.RUNNING.value and self.cancels.is_attached(task_id):
            if not await screening_crud.transition(
                self.db, task, [TaskStatus.RUNNING.value], status=TaskStatus.CANCELLING.value
            ):
                raise self._cannot_cancel(task)
            if self.cancels.request_cancel(task_id):
                logger.info("筛选任务 {} 取消中，等待运行器收尾", task_id)
                return task
            cancellable = (TaskStatus.CANCELLING.value,)

        if not await screening_crud.transition(
            self.db, task, cancellable,
            status=TaskStatus.CANCELLED.value,
            finished_at=utc_now(),
        ):
            raise self._cannot_cancel(task)
        await task_resume_crud.cancel_unfinished(self.db, task_id, include_in_flight=True)
        self.progress.remove(task_id)
        logger.info("筛选任务 {} 已取消", task_id)
        return task

    @staticmethod
    def _cannot_cancel(task: ScreeningTask) -> InvalidStateException:
        return InvalidStateException(
            f"当前状态不允许取消: {task.status}",
            data={"status": task.status},
        )

    async def delete_task(self, task_id: str) -> None:
        """
        删除已结束的任务及其全部关联数据

        Raises:
            InvalidStateException: 任务未结束
        """
        task = await self.get_task(task_id)
        if task.status not in TaskStatus.terminal():
            raise InvalidStateException(
                f"只能删除已结束的任务，当前状态: {task.status}",
                data={"status": task.status},
            )
        await screening_crud.delete_cascade(self.db, task_id)
        logger.info("删除筛选任务 {}", task_id)

    # ==================== 查询 ====================

    async def get_task(self, task_id: str) -> ScreeningTask:
        task = await screening_crud.get(self.db, task_id)
        if task is None:
            raise NotFoundException(f"筛选任务不存在: {task_id}")
        return task

    async def list_tasks(
        self,
        *,
        job_position_id: Optional[str] = None,
        status: Optional[str] = None,
        created_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ScreeningTask], int]:
        return await screening_crud.list_tasks(
            self.db,
            job_position_id=job_position_id,
            status=status,
            created_by=created_by,
            skip=skip,
            limit=limit,
        )

    async def get_task_progress(self, task_id: str) -> TaskProgressResponse:
        """
        任务进度

        运行中时根据已处理简历的平均耗时估算完成时间
        """
        task = await self.get_task(task_id)
        percent = 0.0
        if task.resume_total:
            percent = round(task.resume_processed / task.resume_total * 100, 2)

        estimated_finish = None
        started_at = _as_aware(task.started_at)
        if task.status == TaskStatus.RUNNING.value and started_at and task.resume_processed:
            now = utc_now()
            per_resume = (now - started_at) / task.resume_processed
            remaining = task.resume_total - task.resume_processed
            estimated_finish = now + per_resume * remaining

        return TaskProgressResponse(
            task_id=task.id,
            status=task.status,
            resume_total=task.resume_total,
            resume_processed=task.resume_processed,
            resume_succeeded=task.resume_succeeded,
            resume_failed=task.resume_failed,
            progress_percent=percent,
            started_at=task.started_at,
            finished_at=task.finished_at,
            estimated_finish=estimated_finish,
            running_resumes=[stage.to_dict() for stage in self.progress.get(task_id)],
        )

    async def get_task_resume(self, task_id: str, resume_id: str) -> ScreeningTaskResume:
        await self.get_task(task_id)
        task_resume = await task_resume_crud.get_by_task_and_resume(self.db, task_id, resume_id)
        if task_resume is None:
            raise NotFoundException(f"任务 {task_id} 中不存在简历 {resume_id}")
        return task_resume

    async def get_resume_progress(self, task_id: str, resume_id: str) -> ResumeProgressResponse:
        """单份简历的状态与当前所在节点"""
        task_resume = await self.get_task_resume(task_id, resume_id)
        current_node = None
        for stage in self.progress.get(task_id):
            if stage.resume_id == resume_id:
                current_node = stage.node_key or None
                break
        return ResumeProgressResponse(
            task_id=task_id,
            resume_id=resume_id,
            task_resume_id=task_resume.id,
            status=task_resume.status,
            score=task_resume.score,
            ranking=task_resume.ranking,
            error_message=task_resume.error_message,
            processed_at=task_resume.processed_at,
            current_node=current_node,
            created_at=task_resume.created_at,
            updated_at=task_resume.updated_at,
        )

    async def list_task_resumes(
        self,
        task_id: str,
        status: Optional[str] = None,
    ) -> List[ScreeningTaskResume]:
        await self.get_task(task_id)
        return await task_resume_crud.list_by_task(self.db, task_id, status=status)

    async def get_node_runs(
        self,
        task_id: str,
        resume_id: str,
    ) -> Dict[str, Optional[ScreeningNodeRun]]:
        """每个节点的最新一次尝试，未运行的节点为 None"""
        task_resume = await self.get_task_resume(task_id, resume_id)
        return await node_run_crud.latest_by_node(self.db, task_resume.id)

    async def list_node_runs(
        self,
        filters: NodeRunFilter,
        *,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ScreeningNodeRun], int]:
        return await node_run_crud.list_runs(self.db, filters, skip=skip, limit=limit)

    async def search_results(
        self,
        *,
        task_id: Optional[str] = None,
        resume_id: Optional[str] = None,
        min_score: Optional[float] = None,
        max_score: Optional[float] = None,
        match_level: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ScreeningResult], int]:
        """
        跨任务检索匹配结果，按综合分降序

        常用于查看同一份简历在不同任务中的得分

        Raises:
            InvalidInputException: 最低分大于最高分
        """
        if min_score is not None and max_score is not None and min_score > max_score:
            raise InvalidInputException("最低分不能大于最高分")
        return await result_crud.list_results(
            self.db,
            task_id=task_id,
            resume_id=resume_id,
            min_score=min_score,
            max_score=max_score,
            match_level=match_level,
            skip=skip,
            limit=limit,
        )

    async def list_results(
        self,
        task_id: str,
        *,
        min_score: Optional[float] = None,
        max_score: Optional[float] = None,
        match_level: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ScreeningResult], int]:
        await self.get_task(task_id)
        return await self.search_results(
            task_id=task_id,
            min_score=min_score,
            max_score=max_score,
            match_level=match_level,
            skip=skip,
            limit=limit,
        )

    async def get_result(self, task_id: str, resume_id: str) -> ScreeningResult:
        await self.get_task(task_id)
        result = await result_crud.get_by_task_and_resume(self.db, task_id, resume_id)
        if result is None:
            raise NotFoundException(f"简历 {resume_id} 暂无匹配结果")
        return result

    async def get_metrics(self, task_id: str) -> ScreeningRunMetric:
        await self.get_task(task_id)
        metric = await run_metric_crud.get_by_task(self.db, task_id)
        if metric is None:
            raise NotFoundException(f"任务 {task_id} 暂无运行指标")
        return metric
