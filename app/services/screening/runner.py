"""
筛选任务运行器

后台执行一个任务内全部简历的评分流水线：
TaskMetaData -> Dispatcher -> 六个评分 Agent 并发 -> Aggregator -> 结果落库

所有数据库访问都经过同一把 asyncio.Lock，每次使用独立的短事务；
LLM 调用在锁外进行。
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Set, Tuple

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.agents.aggregator import aggregate
from app.agents.base import AgentScore, ScoringAgent
from app.agents.dispatcher import dispatch, dispatch_snapshot
from app.agents.scoring import build_default_agents
from app.core.config import settings
from app.core.database import get_session_factory
from app.core.exceptions import AggregationFailure, InvalidInputException
from app.core.progress_cache import ProgressCache, progress_cache
from app.crud import (
    job_profile_crud,
    node_run_crud,
    resume_crud,
    screening_crud,
    task_resume_crud,
    result_crud,
)
from app.models.base import new_id, utc_now
from app.models.job_profile import JobProfileDetail
from app.models.payloads import AgentInput, DispatcherOutput, MatchDetail, TaskMetaData
from app.models.screening import NodeKey, NodeRunStatus, TaskResumeStatus, TaskStatus
from app.models.weights import DimensionWeights
from .cancellation import CancelRegistry, cancel_registry
from .collector import ResultCollector

# 评分 Agent 节点 -> DispatcherOutput 字段
AGENT_INPUT_FIELDS: Dict[str, str] = {
    NodeKey.BASIC_INFO.value: "basic_info",
    NodeKey.SKILL.value: "skill",
    NodeKey.RESPONSIBILITY.value: "responsibility",
    NodeKey.EXPERIENCE.value: "experience",
    NodeKey.EDUCATION.value: "education",
    NodeKey.INDUSTRY.value: "industry",
}


@dataclass
class _TaskContext:
    task_id: str
    job: JobProfileDetail
    weights: DimensionWeights
    cancel_event: asyncio.Event
    agent_version: Optional[str] = None


@dataclass
class _ResumeContext:
    task_resume_id: str
    resume_id: str
    trace_id: str
    # 已登记但尚未结束的节点运行
    open_node_runs: Set[str] = field(default_factory=set)


class ScreeningRunner:
    """
    任务运行器

    一个运行器可以依次或并发运行多个任务，写入串行化在同一把锁上
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        agents: Mapping[str, ScoringAgent],
        *,
        max_workers: Optional[int] = None,
        agent_timeout: Optional[float] = None,
        max_retry: Optional[int] = None,
        retry_delay: Optional[float] = None,
        require_all_dimensions: Optional[bool] = None,
        fail_when_all_resumes_fail: Optional[bool] = None,
        cancels: Optional[CancelRegistry] = None,
        progress: Optional[ProgressCache] = None,
    ):
        missing = set(AGENT_INPUT_FIELDS) - set(agents)
        if missing:
            raise ValueError(f"缺少评分 Agent: {', '.join(sorted(missing))}")

        self.session_factory = session_factory
        self.agents = dict(agents)
        self.max_workers = max_workers or settings.screening_max_workers
        self.agent_timeout = agent_timeout or settings.screening_agent_timeout
        self.max_retry = max_retry or settings.screening_agent_max_retry
        self.retry_delay = settings.screening_agent_retry_delay if retry_delay is None else retry_delay
        self.require_all_dimensions = (
            settings.screening_require_all_dimensions
            if require_all_dimensions is None else require_all_dimensions
        )
        self.fail_when_all_resumes_fail = (
            settings.screening_fail_task_when_all_resumes_fail
            if fail_when_all_resumes_fail is None else fail_when_all_resumes_fail
        )
        self.cancels = cancels or cancel_registry
        self.progress = progress or progress_cache
        self.collector = ResultCollector()
        self._write_lock = asyncio.Lock()

    # ==================== 事务 ====================

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[AsyncSession]:
        """单写者事务：持锁、开会话、成功提交、失败回滚"""
        async with self._write_lock:
            async with self.session_factory() as db:
                try:
                    yield db
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[AsyncSession]:
        """只读会话同样持锁，避免与写事务交错"""
        async with self._write_lock:
            async with self.session_factory() as db:
                yield db

    # ==================== 任务 ====================

    async def run(self, task_id: str) -> None:
        """
        运行整个任务（后台任务入口）

        未预期的异常会把任务标记为 failed，不会向外抛出
        """
        cancel_event = self.cancels.attach(task_id)
        try:
            await self._run_task(task_id, cancel_event)
        except Exception as exc:
            logger.exception("筛选任务 {} 运行异常", task_id)
            await self._fail_task(task_id, f"任务运行异常: {exc}")
        finally:
            self.cancels.detach(task_id)
            self.progress.remove(task_id)

    async def _run_task(self, task_id: str, cancel_event: asyncio.Event) -> None:
        async with self._read() as db:
            task = await screening_crud.get(db, task_id)
            if task is None:
                logger.warning("筛选任务不存在，跳过运行: {}", task_id)
                return
            if task.status not in (TaskStatus.RUNNING.value, TaskStatus.CANCELLING.value):
                logger.warning("筛选任务 {} 状态为 {}，跳过运行", task_id, task.status)
                return
            if task.status == TaskStatus.CANCELLING.value:
                cancel_event.set()
            job = await job_profile_crud.get_detail(db, task.job_position_id)
            weights = task.weights()
            agent_version = task.agent_version
            pending = await task_resume_crud.list_by_task(
                db, task_id, status=TaskResumeStatus.PENDING.value
            )
            resumes = [(tr.id, tr.resume_id) for tr in pending]

        if job is None:
            await self._fail_task(task_id, "岗位画像不存在，任务无法执行")
            return

        ctx = _TaskContext(
            task_id=task_id,
            job=job,
            weights=weights,
            cancel_event=cancel_event,
            agent_version=agent_version,
        )
        logger.info("筛选任务 {} 开始运行: {} 份简历, 并发 {}", task_id, len(resumes), self.max_workers)

        semaphore = asyncio.Semaphore(self.max_workers)

        async def worker(task_resume_id: str, resume_id: str) -> None:
            async with semaphore:
                if cancel_event.is_set():
                    return
                resume_ctx = _ResumeContext(
                    task_resume_id=task_resume_id,
                    resume_id=resume_id,
                    trace_id=new_id(),
                )
                await self._process_resume(ctx, resume_ctx)

        results = await asyncio.gather(
            *(worker(tr_id, resume_id) for tr_id, resume_id in resumes),
            return_exceptions=True,
        )
        for (_, resume_id), result in zip(resumes, results):
            if isinstance(result, Exception):
                logger.opt(exception=result).error("简历 {} 收尾失败", resume_id)
        await self._finalize(ctx)

    async def _finalize(self, ctx: _TaskContext) -> None:
        """写入排名并决定任务终态"""
        async with self._write() as db:
            await self.collector.apply_rankings(db, ctx.task_id)
            await self.collector.refresh_metrics(db, ctx.task_id)
            task = await screening_crud.get(db, ctx.task_id)
            error_message = None
            if ctx.cancel_event.is_set() or task.status == TaskStatus.CANCELLING.value:
                await task_resume_crud.cancel_unfinished(db, ctx.task_id)
                status = TaskStatus.CANCELLED
            elif (
                self.fail_when_all_resumes_fail
                and task.resume_processed > 0
                and task.resume_succeeded == 0
            ):
                status = TaskStatus.FAILED
                error_message = "全部简历处理失败"
            else:
                status = TaskStatus.COMPLETED
            finished = await screening_crud.transition(
                db, task, [TaskStatus.RUNNING.value, TaskStatus.CANCELLING.value],
                status=status.value,
                error_message=error_message,
                finished_at=utc_now(),
            )
        if not finished:
            logger.warning("筛选任务 {} 已处于 {}，不再更新终态", ctx.task_id, task.status)
            return
        logger.info(
            "筛选任务 {} 结束: status={}, processed={}/{}, succeeded={}, failed={}",
            ctx.task_id,
            status.value,
            task.resume_processed,
            task.resume_total,
            task.resume_succeeded,
            task.resume_failed,
        )

    async def _fail_task(self, task_id: str, message: str) -> None:
        async with self._write() as db:
            task = await screening_crud.get(db, task_id)
            if task is None:
                return
            failed = await screening_crud.transition(
                db, task, [TaskStatus.RUNNING.value, TaskStatus.CANCELLING.value],
                status=TaskStatus.FAILED.value,
                error_message=message,
                finished_at=utc_now(),
            )
            if failed:
                await task_resume_crud.cancel_unfinished(db, task_id, message=message)
        if failed:
            logger.error("筛选任务 {} 失败: {}", task_id, message)

    # ==================== 单份简历 ====================

    async def _process_resume(self, ctx: _TaskContext, rc: _ResumeContext) -> None:
        """处理一份简历；意外异常只让这份简历失败，不影响同任务的其他简历"""
        try:
            await self._score_resume(ctx, rc)
        except Exception as exc:
            logger.exception("简历 {} 处理异常", rc.resume_id)
            await self._abort_resume(ctx, rc, f"简历处理异常: {exc}")

    async def _score_resume(self, ctx: _TaskContext, rc: _ResumeContext) -> None:
        await self._set_resume_status(ctx, rc, TaskResumeStatus.DISPATCHING)

        task_meta = TaskMetaData(
            job_id=ctx.job.id,
            resume_id=rc.resume_id,
            match_task_id=ctx.task_id,
            task_resume_id=rc.task_resume_id,
            dimension_weights=ctx.weights,
        )
        await self._record_node(
            ctx, rc, NodeKey.TASK_META,
            input_payload={"task_id": ctx.task_id, "resume_id": rc.resume_id},
            output_payload=task_meta.model_dump(mode="json"),
        )

        dispatched = await self._run_dispatcher(ctx, rc, task_meta)
        if dispatched is None:
            return

        if ctx.cancel_event.is_set():
            await self._finish_resume(ctx, rc, TaskResumeStatus.CANCELLED, error_message="任务已被取消")
            logger.info("任务 {} 已取消，简历 {} 未进入打分", ctx.task_id, rc.resume_id)
            return

        await self._set_resume_status(ctx, rc, TaskResumeStatus.SCORING)
        outcomes = await asyncio.gather(*(
            self._run_agent(ctx, rc, agent, getattr(dispatched, AGENT_INPUT_FIELDS[node_key]))
            for node_key, agent in self.agents.items()
        ))

        if not any(attempted for _, _, attempted in outcomes):
            await self._finish_resume(ctx, rc, TaskResumeStatus.CANCELLED, error_message="任务已被取消")
            return

        details: Dict[str, MatchDetail] = {}
        usage = {"tokens_input": 0, "tokens_output": 0, "total_cost": 0.0}
        for agent, outcome, _ in outcomes:
            if outcome is None:
                continue
            details[agent.dimension] = outcome.detail
            usage["tokens_input"] += outcome.usage.input_tokens
            usage["tokens_output"] += outcome.usage.output_tokens
            usage["total_cost"] += outcome.usage.cost

        await self._set_resume_status(ctx, rc, TaskResumeStatus.AGGREGATING)
        await self._run_aggregator(ctx, rc, task_meta, details, usage)

    async def _abort_resume(self, ctx: _TaskContext, rc: _ResumeContext, message: str) -> None:
        """关闭未结束的节点运行，并在简历尚未到达终态时记为失败"""
        for node_run_id in list(rc.open_node_runs):
            await self._finish_node(rc, node_run_id, NodeRunStatus.FAILED, error_message=message)
        async with self._read() as db:
            task_resume = await task_resume_crud.get(db, rc.task_resume_id)
            finished = task_resume.status in TaskResumeStatus.terminal()
        if not finished:
            await self._finish_resume(ctx, rc, TaskResumeStatus.FAILED, error_message=message)

    async def _run_dispatcher(
        self,
        ctx: _TaskContext,
        rc: _ResumeContext,
        task_meta: TaskMetaData,
    ) -> Optional[DispatcherOutput]:
        resume = None
        load_error = None
        try:
            async with self._read() as db:
                resume = await resume_crud.get_detail(db, rc.resume_id)
        except ValidationError as exc:
            load_error = f"简历数据格式不正确: {exc.error_count()} 个字段校验失败"

        input_payload: Dict[str, Any]
        if resume is None:
            input_payload = {"job": ctx.job.model_dump(mode="json"), "resume_id": rc.resume_id}
        else:
            input_payload = dispatch_snapshot(ctx.job, resume)

        node_run_id = await self._start_node(ctx, rc, NodeKey.DISPATCHER.value, input_payload)
        try:
            if load_error:
                raise InvalidInputException(load_error)
            if resume is None:
                raise InvalidInputException(f"简历不存在: {rc.resume_id}")
            dispatched = dispatch(task_meta, ctx.job, resume)
        except InvalidInputException as exc:
            await self._finish_node(rc, node_run_id, NodeRunStatus.FAILED, error_message=exc.message)
            await self._finish_resume(ctx, rc, TaskResumeStatus.FAILED, error_message=exc.message)
            logger.warning("简历 {} 分发失败: {}", rc.resume_id, exc.message)
            return None

        await self._finish_node(
            rc,
            node_run_id,
            NodeRunStatus.COMPLETED,
            output_payload=dispatched.model_dump(mode="json"),
        )
        return dispatched

    async def _run_agent(
        self,
        ctx: _TaskContext,
        rc: _ResumeContext,
        agent: ScoringAgent,
        payload: AgentInput,
    ) -> Tuple[ScoringAgent, Optional[AgentScore], bool]:
        """
        执行一个评分 Agent，失败时追加新的尝试直到用尽重试次数

        用尽后该维度视为不可用（而不是 0 分）。每次尝试前检查取消标记；
        返回值的第三项表示是否至少发起过一次尝试
        """
        input_payload = payload.model_dump(mode="json")
        attempted = False
        for attempt in range(1, self.max_retry + 1):
            if ctx.cancel_event.is_set():
                logger.info("任务 {} 已取消，{} 不再发起尝试", ctx.task_id, agent.name)
                return agent, None, attempted
            if attempt > 1 and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)

            attempted = True
            self.progress.update(ctx.task_id, rc.resume_id, TaskResumeStatus.SCORING.value, agent.name)
            node_run_id = await self._start_node(
                ctx, rc, agent.name, input_payload,
                llm_model=agent.model_name,
                llm_provider=agent.provider,
            )
            try:
                outcome = await asyncio.wait_for(agent.score(payload), timeout=self.agent_timeout)
            except asyncio.TimeoutError:
                error_message = f"{agent.name} 超时（{self.agent_timeout}s）"
            except Exception as exc:
                error_message = str(exc) or exc.__class__.__name__
            else:
                await self._finish_node(
                    rc,
                    node_run_id,
                    NodeRunStatus.COMPLETED,
                    output_payload=outcome.detail.model_dump(mode="json"),
                    tokens_input=outcome.usage.input_tokens,
                    tokens_output=outcome.usage.output_tokens,
                    total_cost=outcome.usage.cost,
                    llm_model=outcome.model_name,
                )
                return agent, outcome, attempted

            await self._finish_node(rc, node_run_id, NodeRunStatus.FAILED, error_message=error_message)
            logger.warning(
                "简历 {} 的 {} 第 {}/{} 次尝试失败: {}",
                rc.resume_id, agent.name, attempt, self.max_retry, error_message,
            )

        logger.warning("简历 {} 的 {} 重试用尽，维度不可用", rc.resume_id, agent.name)
        return agent, None, attempted

    async def _run_aggregator(
        self,
        ctx: _TaskContext,
        rc: _ResumeContext,
        task_meta: TaskMetaData,
        details: Dict[str, MatchDetail],
        usage: Dict[str, Any],
    ) -> None:
        input_payload = {
            "dimension_scores": {dimension: detail.score for dimension, detail in details.items()},
            "weights": ctx.weights.as_dict(),
        }
        node_run_id = await self._start_node(ctx, rc, NodeKey.AGGREGATOR.value, input_payload)
        try:
            output = aggregate(
                task_meta, details, ctx.weights,
                require_all=self.require_all_dimensions,
            )
        except AggregationFailure as exc:
            await self._finish_node(rc, node_run_id, NodeRunStatus.FAILED, error_message=exc.message)
            await self._finish_resume(ctx, rc, TaskResumeStatus.FAILED, error_message=exc.message)
            logger.warning("简历 {} 聚合失败: {}", rc.resume_id, exc.message)
            return

        await self._finish_node(
            rc,
            node_run_id,
            NodeRunStatus.COMPLETED,
            output_payload=output.model_dump(mode="json"),
        )

        result_values = {
            "task_id": ctx.task_id,
            "task_resume_id": rc.task_resume_id,
            "job_position_id": ctx.job.id,
            "resume_id": rc.resume_id,
            "overall_score": output.overall_score,
            "match_level": output.match_level,
            "dimension_scores": output.dimension_scores,
            "recommendations": output.recommendations,
            "trace_id": rc.trace_id,
            "runtime_metadata": {
                "available_dimensions": output.available_dimensions,
                "unavailable_dimensions": output.unavailable_dimensions,
                "agent_version": ctx.agent_version,
                "model": self._model_name(),
                **usage,
            },
            "matched_at": output.matched_at,
        }
        for dimension, detail in details.items():
            result_values[f"{dimension}_detail"] = detail.model_dump(mode="json")

        await self._finish_resume(
            ctx, rc, TaskResumeStatus.COMPLETED,
            score=output.overall_score,
            result_values=result_values,
        )
        logger.info(
            "简历 {} 评分完成: {} ({})", rc.resume_id, output.overall_score, output.match_level
        )

    def _model_name(self) -> Optional[str]:
        for agent in self.agents.values():
            if agent.model_name:
                return agent.model_name
        return None

    # ==================== 账本写入 ====================

    async def _set_resume_status(
        self,
        ctx: _TaskContext,
        rc: _ResumeContext,
        status: TaskResumeStatus,
    ) -> None:
        self.progress.update(ctx.task_id, rc.resume_id, status.value)
        async with self._write() as db:
            task_resume = await task_resume_crud.get(db, rc.task_resume_id)
            await task_resume_crud.update(db, db_obj=task_resume, obj_in={"status": status.value})

    async def _start_node(
        self,
        ctx: _TaskContext,
        rc: _ResumeContext,
        node_key: str,
        input_payload: Optional[Dict[str, Any]],
        *,
        llm_model: Optional[str] = None,
        llm_provider: Optional[str] = None,
    ) -> str:
        """登记一次节点尝试，序号为已有最大序号 + 1"""
        async with self._write() as db:
            attempt_no = await node_run_crud.next_attempt_no(db, rc.task_resume_id, node_key)
            node_run = await node_run_crud.start_run(
                db,
                task_id=ctx.task_id,
                task_resume_id=rc.task_resume_id,
                node_key=node_key,
                attempt_no=attempt_no,
                input_payload=input_payload,
                trace_id=rc.trace_id,
                llm_model=llm_model,
                llm_provider=llm_provider,
            )
        rc.open_node_runs.add(node_run.id)
        return node_run.id

    async def _finish_node(
        self,
        rc: _ResumeContext,
        node_run_id: str,
        status: NodeRunStatus,
        **fields: Any,
    ) -> None:
        async with self._write() as db:
            node_run = await node_run_crud.get(db, node_run_id)
            await node_run_crud.finish_run(db, node_run=node_run, status=status, **fields)
        rc.open_node_runs.discard(node_run_id)

    async def _record_node(
        self,
        ctx: _TaskContext,
        rc: _ResumeContext,
        node_key: NodeKey,
        *,
        input_payload: Optional[Dict[str, Any]],
        output_payload: Dict[str, Any],
    ) -> None:
        """登记一次立即完成的节点运行"""
        node_run_id = await self._start_node(ctx, rc, node_key.value, input_payload)
        await self._finish_node(rc, node_run_id, NodeRunStatus.COMPLETED, output_payload=output_payload)

    async def _finish_resume(
        self,
        ctx: _TaskContext,
        rc: _ResumeContext,
        status: TaskResumeStatus,
        *,
        score: Optional[float] = None,
        error_message: Optional[str] = None,
        result_values: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        简历到达终态：结果、简历状态、任务计数、运行指标在同一事务中写入
        """
        async with self._write() as db:
            if result_values is not None:
                await result_crud.create(db, obj_in=result_values)
            task_resume = await task_resume_crud.get(db, rc.task_resume_id)
            await task_resume_crud.update(db, db_obj=task_resume, obj_in={
                "status": status.value,
                "score": score,
                "error_message": error_message,
                "processed_at": utc_now(),
            })
            if status != TaskResumeStatus.CANCELLED:
                await screening_crud.increment_counters(
                    db, ctx.task_id, succeeded=status == TaskResumeStatus.COMPLETED
                )
            await self.collector.refresh_metrics(db, ctx.task_id)
        self.progress.finish(ctx.task_id, rc.resume_id)


def get_screening_runner() -> ScreeningRunner:
    """
    运行器依赖注入

    测试中可通过 app.dependency_overrides 替换为使用测试数据库和假 Agent 的运行器
    """
    return ScreeningRunner(get_session_factory(), build_default_agents())
