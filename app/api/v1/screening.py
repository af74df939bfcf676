"""
简历筛选任务 API 路由
"""
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.llm_client import LLMClient, get_llm_client
from app.core.database import get_db
from app.core.response import (
    success_response,
    paged_response,
    ResponseModel,
    PagedResponseModel,
    MessageResponse,
    DictResponse,
)
from app.models import (
    NodeRunFilter,
    ScreeningTaskCreate,
    ScreeningTaskResponse,
    ScreeningTaskResumeResponse,
    ScreeningNodeRunResponse,
    ScreeningResultResponse,
    ScreeningRunMetricResponse,
    TaskProgressResponse,
    ResumeProgressResponse,
    WeightPreviewRequest,
    WeightPreviewResponse,
)
from app.services.screening import ScreeningRunner, ScreeningService, get_screening_runner
from app.services.weight_preview import WeightPreviewService

router = APIRouter()


def get_screening_service(db: AsyncSession = Depends(get_db)) -> ScreeningService:
    return ScreeningService(db)


@router.post("/tasks", summary="创建筛选任务", response_model=ResponseModel[ScreeningTaskResponse])
async def create_task(
    data: ScreeningTaskCreate,
    service: ScreeningService = Depends(get_screening_service),
):
    """
    为一个岗位画像和一批简历创建筛选任务（pending）

    权重优先级：dimension_weights > weight_template_id > 默认权重
    """
    task = await service.create_task(data)
    return success_response(
        data=ScreeningTaskResponse.model_validate(task).model_dump(),
        message="筛选任务创建成功"
    )


@router.get("/tasks", summary="获取筛选任务列表", response_model=PagedResponseModel[ScreeningTaskResponse])
async def list_tasks(
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    job_position_id: Optional[str] = Query(None, description="岗位画像ID"),
    status: Optional[str] = Query(None, description="状态筛选"),
    created_by: Optional[str] = Query(None, description="创建人"),
    service: ScreeningService = Depends(get_screening_service),
):
    skip = (page - 1) * page_size
    tasks, total = await service.list_tasks(
        job_position_id=job_position_id,
        status=status,
        created_by=created_by,
        skip=skip,
        limit=page_size,
    )
    items = [ScreeningTaskResponse.model_validate(t).model_dump() for t in tasks]
    return paged_response(items, total, page, page_size)


@router.get("/tasks/{task_id}", summary="获取筛选任务详情", response_model=ResponseModel[ScreeningTaskResponse])
async def get_task(
    task_id: str,
    service: ScreeningService = Depends(get_screening_service),
):
    task = await service.get_task(task_id)
    return success_response(data=ScreeningTaskResponse.model_validate(task).model_dump())


@router.delete("/tasks/{task_id}", summary="删除筛选任务", response_model=MessageResponse)
async def delete_task(
    task_id: str,
    service: ScreeningService = Depends(get_screening_service),
):
    """
    删除已结束的任务，同时删除其简历关联、节点运行、结果和指标
    """
    await service.delete_task(task_id)
    return success_response(message="筛选任务删除成功")


@router.post("/tasks/{task_id}/start", summary="启动筛选任务", response_model=ResponseModel[ScreeningTaskResponse])
async def start_task(
    task_id: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    runner: ScreeningRunner = Depends(get_screening_runner),
):
    """
    启动任务（后台运行），通过 /progress 接口轮询进度
    """
    service = ScreeningService(db)
    task = await service.start_task(task_id)
    data = ScreeningTaskResponse.model_validate(task).model_dump()
    # 运行器使用独立会话，调度前必须先提交状态
    await db.commit()

    background_tasks.add_task(runner.run, task_id)
    return success_response(data=data, message="筛选任务已启动")


@router.post("/tasks/{task_id}/cancel", summary="取消筛选任务", response_model=ResponseModel[ScreeningTaskResponse])
async def cancel_task(
    task_id: str,
    service: ScreeningService = Depends(get_screening_service),
):
    """
    取消任务；运行中的任务进入 cancelling，已在评分的简历会完成当前尝试
    """
    task = await service.cancel_task(task_id)
    return success_response(
        data=ScreeningTaskResponse.model_validate(task).model_dump(),
        message="筛选任务取消中" if task.status == "cancelling" else "筛选任务已取消"
    )


@router.get("/tasks/{task_id}/progress", summary="获取任务进度", response_model=ResponseModel[TaskProgressResponse])
async def get_task_progress(
    task_id: str,
    service: ScreeningService = Depends(get_screening_service),
):
    progress = await service.get_task_progress(task_id)
    return success_response(data=progress.model_dump())


@router.get("/tasks/{task_id}/resumes", summary="获取任务内简历列表", response_model=ResponseModel[list[ScreeningTaskResumeResponse]])
async def list_task_resumes(
    task_id: str,
    status: Optional[str] = Query(None, description="状态筛选"),
    service: ScreeningService = Depends(get_screening_service),
):
    task_resumes = await service.list_task_resumes(task_id, status=status)
    return success_response(
        data=[ScreeningTaskResumeResponse.model_validate(tr).model_dump() for tr in task_resumes]
    )


@router.get(
    "/tasks/{task_id}/resumes/{resume_id}/progress",
    summary="获取单份简历进度",
    response_model=ResponseModel[ResumeProgressResponse],
)
async def get_resume_progress(
    task_id: str,
    resume_id: str,
    service: ScreeningService = Depends(get_screening_service),
):
    progress = await service.get_resume_progress(task_id, resume_id)
    return success_response(data=progress.model_dump())


@router.get(
    "/tasks/{task_id}/resumes/{resume_id}/node-runs",
    summary="获取简历各节点最新运行",
    response_model=DictResponse,
)
async def get_node_runs(
    task_id: str,
    resume_id: str,
    service: ScreeningService = Depends(get_screening_service),
):
    """
    返回每个节点的最新一次尝试，尚未运行的节点为 null
    """
    latest = await service.get_node_runs(task_id, resume_id)
    data = {
        node_key: ScreeningNodeRunResponse.model_validate(run).model_dump() if run else None
        for node_key, run in latest.items()
    }
    return success_response(data=data)


@router.get(
    "/tasks/{task_id}/results",
    summary="获取任务匹配结果",
    response_model=PagedResponseModel[ScreeningResultResponse],
)
async def list_results(
    task_id: str,
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    min_score: Optional[float] = Query(None, ge=0, le=100, description="最低综合分"),
    max_score: Optional[float] = Query(None, ge=0, le=100, description="最高综合分"),
    match_level: Optional[str] = Query(None, description="匹配等级"),
    service: ScreeningService = Depends(get_screening_service),
):
    """
    按综合分降序返回结果
    """
    skip = (page - 1) * page_size
    results, total = await service.list_results(
        task_id,
        min_score=min_score,
        max_score=max_score,
        match_level=match_level,
        skip=skip,
        limit=page_size,
    )
    items = [ScreeningResultResponse.model_validate(r).model_dump() for r in results]
    return paged_response(items, total, page, page_size)


@router.get(
    "/tasks/{task_id}/results/{resume_id}",
    summary="获取单份简历匹配结果",
    response_model=ResponseModel[ScreeningResultResponse],
)
async def get_result(
    task_id: str,
    resume_id: str,
    service: ScreeningService = Depends(get_screening_service),
):
    result = await service.get_result(task_id, resume_id)
    return success_response(data=ScreeningResultResponse.model_validate(result).model_dump())


@router.get(
    "/tasks/{task_id}/metrics",
    summary="获取任务运行指标",
    response_model=ResponseModel[ScreeningRunMetricResponse],
)
async def get_metrics(
    task_id: str,
    service: ScreeningService = Depends(get_screening_service),
):
    metric = await service.get_metrics(task_id)
    return success_response(data=ScreeningRunMetricResponse.model_validate(metric).model_dump())


@router.get("/results", summary="跨任务查询匹配结果", response_model=PagedResponseModel[ScreeningResultResponse])
async def search_results(
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    task_id: Optional[str] = Query(None, description="任务ID"),
    resume_id: Optional[str] = Query(None, description="简历ID"),
    min_score: Optional[float] = Query(None, ge=0, le=100, description="最低综合分"),
    max_score: Optional[float] = Query(None, ge=0, le=100, description="最高综合分"),
    match_level: Optional[str] = Query(None, description="匹配等级"),
    service: ScreeningService = Depends(get_screening_service),
):
    """
    不限任务检索结果，如查看某份简历在各次筛选中的得分
    """
    skip = (page - 1) * page_size
    results, total = await service.search_results(
        task_id=task_id,
        resume_id=resume_id,
        min_score=min_score,
        max_score=max_score,
        match_level=match_level,
        skip=skip,
        limit=page_size,
    )
    items = [ScreeningResultResponse.model_validate(r).model_dump() for r in results]
    return paged_response(items, total, page, page_size)


@router.post("/weights/preview", summary="预览推荐权重", response_model=ResponseModel[WeightPreviewResponse])
async def preview_weights(
    data: WeightPreviewRequest,
    db: AsyncSession = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
):
    """
    根据岗位画像推荐通用、应届生、资深三套维度权重

    模型不可用时返回默认权重并将 fallback 置为 True
    """
    preview = await WeightPreviewService(db, llm).preview(data.job_position_id)
    return success_response(data=preview.model_dump(mode="json"))


@router.get("/node-runs", summary="查询节点运行记录", response_model=PagedResponseModel[ScreeningNodeRunResponse])
async def list_node_runs(
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    task_id: Optional[str] = Query(None, description="任务ID"),
    task_resume_id: Optional[str] = Query(None, description="任务简历ID"),
    node_key: Optional[str] = Query(None, description="节点标识"),
    status: Optional[str] = Query(None, description="运行状态"),
    service: ScreeningService = Depends(get_screening_service),
):
    skip = (page - 1) * page_size
    filters = NodeRunFilter(
        task_id=task_id,
        task_resume_id=task_resume_id,
        node_key=node_key,
        status=status,
    )
    runs, total = await service.list_node_runs(filters, skip=skip, limit=page_size)
    items = [ScreeningNodeRunResponse.model_validate(r).model_dump() for r in runs]
    return paged_response(items, total, page, page_size)
