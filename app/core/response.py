"""
统一响应模块

筛选引擎的所有接口都返回 {success, code, message, data} 信封；
错误由 app.core.exceptions 中的处理器用 error_response 渲染，data 携带冲突状态或校验明细
"""
from typing import Any, Dict, Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class ResponseModel(BaseModel, Generic[T]):
    """
    统一响应模型

    示例（启动任务）:
        {
            "success": true,
            "code": 200,
            "message": "筛选任务已启动",
            "data": {"id": "...", "status": "running", "resume_total": 20}
        }

    示例（状态冲突）:
        {
            "success": false,
            "code": 409,
            "message": "只有待执行的任务可以启动，当前状态: completed",
            "data": {"status": "completed"}
        }
    """
    success: bool = True
    code: int = 200
    message: str = "操作成功"
    data: Optional[T] = None


class PagedData(BaseModel, Generic[T]):
    """分页数据：任务列表、筛选结果、节点运行记录共用"""
    items: list[T]
    total: int
    page: int
    page_size: int
    pages: int


class PagedResponseModel(ResponseModel[PagedData[T]], Generic[T]):
    pass


class MessageResponse(ResponseModel[None]):
    """删除任务、删除模板等只返回提示信息的接口"""


class DictResponse(ResponseModel[Dict[str, Any]]):
    """节点运行状态表、默认权重、健康检查等以字典为数据的接口"""


def success_response(data: Any = None, message: str = "操作成功", code: int = 200) -> dict:
    return {"success": True, "code": code, "message": message, "data": data}


def error_response(message: str = "操作失败", code: int = 400, data: Any = None) -> dict:
    """错误信封，InvalidState 时 data 为 {"status": 当前状态}"""
    return {"success": False, "code": code, "message": message, "data": data}


def paged_response(
    items: list,
    total: int,
    page: int,
    page_size: int,
    message: str = "查询成功"
) -> dict:
    """分页信封，pages 按 page_size 向上取整"""
    pages = (total + page_size - 1) // page_size if page_size > 0 else 0
    return success_response(
        data={
            "items": items,
            "total": total,
            "page": page,
            "page_size": page_size,
            "pages": pages,
        },
        message=message,
    )
