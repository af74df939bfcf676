"""
筛选任务服务测试

创建校验、权重解析、状态流转
"""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidInputException, InvalidStateException, NotFoundException
from app.crud import job_profile_crud, resume_crud, result_crud, screening_crud, task_resume_crud
from app.models import (
    DimensionWeights,
    JobProfileCreate,
    ResumeCreate,
    ScreeningTaskCreate,
    WeightTemplateCreate,
)
from app.services.screening import ScreeningService, cancel_registry
from app.services.weight_template import WeightTemplateService

CUSTOM_WEIGHTS = dict(skill=0.5, responsibility=0.2, experience=0.1, education=0.1, industry=0.05, basic=0.05)


async def seed(db: AsyncSession, resume_count: int = 2):
    job = await job_profile_crud.create_profile(db, obj_in=JobProfileCreate(name="数据工程师"))
    resume_ids = [
        (await resume_crud.create_resume(db, obj_in=ResumeCreate(name=f"候选人{i}", years_experience=3))).id
        for i in range(resume_count)
    ]
    return job.id, resume_ids


@pytest.mark.asyncio
async def test_create_task_defaults(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)

    task = await service.create_task(ScreeningTaskCreate(
        job_position_id=job_id, resume_ids=resume_ids, created_by="hr-1"
    ))

    assert task.status == "pending"
    assert task.resume_total == 2
    assert task.resume_processed == 0
    assert task.dimension_weights == DimensionWeights().as_dict()
    assert task.agent_version == settings.screening_agent_version
    assert task.llm_config["model"] == settings.llm_model
    assert "api_key" not in task.llm_config

    task_resumes = await task_resume_crud.list_by_task(db_session, task.id)
    assert [tr.resume_id for tr in task_resumes] == resume_ids
    assert all(tr.status == "pending" for tr in task_resumes)


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides,message", [
    ({"resume_ids": []}, "简历列表不能为空"),
    ({"resume_ids": ["r1", "r1"]}, "重复"),
    ({"job_position_id": "missing-job"}, "岗位画像不存在"),
    ({"resume_ids": ["missing-resume"]}, "简历不存在"),
    ({"agent_version": "0.0.1"}, "版本不一致"),
])
async def test_create_task_rejects_invalid_input(db_session: AsyncSession, overrides, message):
    job_id, resume_ids = await seed(db_session, resume_count=1)
    data = {"job_position_id": job_id, "resume_ids": resume_ids, **overrides}

    with pytest.raises(InvalidInputException) as exc_info:
        await ScreeningService(db_session).create_task(ScreeningTaskCreate(**data))
    assert message in exc_info.value.message


@pytest.mark.asyncio
async def test_weight_resolution_order(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session, resume_count=1)
    template = await WeightTemplateService(db_session).create(WeightTemplateCreate(
        name="技能优先", weights=DimensionWeights(**CUSTOM_WEIGHTS)
    ))
    service = ScreeningService(db_session)

    from_template = await service.create_task(ScreeningTaskCreate(
        job_position_id=job_id, resume_ids=resume_ids, weight_template_id=template.id
    ))
    assert from_template.dimension_weights == CUSTOM_WEIGHTS

    explicit = dict(CUSTOM_WEIGHTS, skill=0.3, responsibility=0.4)
    overridden = await service.create_task(ScreeningTaskCreate(
        job_position_id=job_id,
        resume_ids=resume_ids,
        weight_template_id=template.id,
        dimension_weights=DimensionWeights(**explicit),
    ))
    assert overridden.dimension_weights == explicit

    with pytest.raises(NotFoundException):
        await service.create_task(ScreeningTaskCreate(
            job_position_id=job_id, resume_ids=resume_ids, weight_template_id="missing"
        ))


@pytest.mark.asyncio
async def test_invalid_weights_rejected(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session, resume_count=1)
    bad = dict(CUSTOM_WEIGHTS, skill=0.9)
    with pytest.raises(InvalidInputException):
        await ScreeningService(db_session).create_task(ScreeningTaskCreate(
            job_position_id=job_id,
            resume_ids=resume_ids,
            dimension_weights=DimensionWeights(**bad),
        ))


@pytest.mark.asyncio
async def test_start_only_pending(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)
    task = await service.create_task(ScreeningTaskCreate(job_position_id=job_id, resume_ids=resume_ids))

    started = await service.start_task(task.id)
    assert started.status == "running"
    assert started.started_at is not None

    with pytest.raises(InvalidStateException) as exc_info:
        await service.start_task(task.id)
    assert exc_info.value.data == {"status": "running"}


@pytest.mark.asyncio
async def test_cancel_pending_task(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)
    task = await service.create_task(ScreeningTaskCreate(job_position_id=job_id, resume_ids=resume_ids))

    cancelled = await service.cancel_task(task.id)

    assert cancelled.status == "cancelled"
    assert cancelled.finished_at is not None
    task_resumes = await task_resume_crud.list_by_task(db_session, task.id)
    assert {tr.status for tr in task_resumes} == {"cancelled"}

    with pytest.raises(InvalidStateException):
        await service.cancel_task(task.id)
    with pytest.raises(InvalidStateException):
        await service.start_task(task.id)


@pytest.mark.asyncio
async def test_cancel_running_task_with_runner(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)
    task = await service.create_task(ScreeningTaskCreate(job_position_id=job_id, resume_ids=resume_ids))
    await service.start_task(task.id)
    event = cancel_registry.attach(task.id)

    cancelling = await service.cancel_task(task.id)

    assert cancelling.status == "cancelling"
    assert event.is_set()
    with pytest.raises(InvalidStateException):
        await service.cancel_task(task.id)


@pytest.mark.asyncio
async def test_cancel_running_task_without_runner(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)
    task = await service.create_task(ScreeningTaskCreate(job_position_id=job_id, resume_ids=resume_ids))
    await service.start_task(task.id)

    cancelled = await service.cancel_task(task.id)

    assert cancelled.status == "cancelled"


@pytest.mark.asyncio
async def test_delete_requires_terminal_status(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)
    task = await service.create_task(ScreeningTaskCreate(job_position_id=job_id, resume_ids=resume_ids))

    with pytest.raises(InvalidStateException):
        await service.delete_task(task.id)

    await service.cancel_task(task.id)
    await service.delete_task(task.id)

    with pytest.raises(NotFoundException):
        await service.get_task(task.id)
    assert await task_resume_crud.list_by_task(db_session, task.id) == []
    results, total = await result_crud.list_results(db_session, task_id=task.id)
    assert total == 0


@pytest.mark.asyncio
async def test_progress_of_pending_task(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)
    task = await service.create_task(ScreeningTaskCreate(job_position_id=job_id, resume_ids=resume_ids))

    progress = await service.get_task_progress(task.id)
    assert progress.progress_percent == 0
    assert progress.estimated_finish is None
    assert progress.running_resumes == []

    resume_progress = await service.get_resume_progress(task.id, resume_ids[0])
    assert resume_progress.status == "pending"
    assert resume_progress.current_node is None

    with pytest.raises(NotFoundException):
        await service.get_resume_progress(task.id, "missing")


@pytest.mark.asyncio
async def test_results_queries(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)
    task = await service.create_task(ScreeningTaskCreate(job_position_id=job_id, resume_ids=resume_ids))

    with pytest.raises(InvalidInputException):
        await service.list_results(task.id, min_score=80, max_score=60)
    with pytest.raises(NotFoundException):
        await service.get_result(task.id, resume_ids[0])
    with pytest.raises(NotFoundException):
        await service.get_metrics(task.id)


@pytest.mark.asyncio
async def test_cancel_does_not_overwrite_finished_task(db_session: AsyncSession, session_factory):
    """运行器先写入终态时，取消请求不会把任务改回 cancelling"""
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)
    task = await service.create_task(ScreeningTaskCreate(job_position_id=job_id, resume_ids=resume_ids))
    await service.start_task(task.id)
    await db_session.commit()
    event = cancel_registry.attach(task.id)

    # 另一个会话（运行器）已提交 completed，本会话持有的对象仍是 running
    async with session_factory() as other:
        finished = await screening_crud.get(other, task.id)
        await screening_crud.update(other, db_obj=finished, obj_in={"status": "completed"})
        await other.commit()
    assert task.status == "running"

    with pytest.raises(InvalidStateException) as exc_info:
        await service.cancel_task(task.id)

    assert exc_info.value.data == {"status": "completed"}
    assert not event.is_set()
    await db_session.commit()
    async with session_factory() as other:
        assert (await screening_crud.get(other, task.id)).status == "completed"


@pytest.mark.asyncio
async def test_status_transition_is_conditional(db_session: AsyncSession):
    job_id, resume_ids = await seed(db_session)
    service = ScreeningService(db_session)
    task = await service.create_task(ScreeningTaskCreate(job_position_id=job_id, resume_ids=resume_ids))

    assert not await screening_crud.transition(db_session, task, ["running"], status="cancelled")
    assert task.status == "pending"
    assert await screening_crud.transition(db_session, task, ["pending"], status="running")
    assert task.status == "running"
