"""
异常处理模块

定义业务异常和全局异常处理器
"""
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from loguru import logger

from .response import error_response


class AppException(Exception):
    """应用基础异常"""
    
    def __init__(
        self,
        message: str = "服务器内部错误",
        code: int = 500,
        data: dict = None
    ):
        self.message = message
        self.code = code
        self.data = data
        super().__init__(self.message)


class NotFoundException(AppException):
    """资源不存在异常"""
    
    def __init__(self, message: str = "资源不存在"):
        super().__init__(message=message, code=404)


class BadRequestException(AppException):
    """请求参数错误异常"""
    
    def __init__(self, message: str = "请求参数错误"):
        super().__init__(message=message, code=400)


class ConflictException(AppException):
    """资源冲突异常"""
    
    def __init__(self, message: str = "资源已存在"):
        super().__init__(message=message, code=409)


class InvalidInputException(BadRequestException):
    """请求数据不合法（如简历列表为空、权重非法）"""


class InvalidStateException(AppException):
    """非法状态流转（如启动一个运行中的任务）"""

    def __init__(self, message: str = "当前状态不允许该操作", data: dict = None):
        super().__init__(message=message, code=409, data=data)


class UpstreamAgentFailure(AppException):
    """
    单个评分 Agent 调用失败（可重试）

    由编排器捕获并记录为失败的节点运行，一般不会返回给调用方
    """

    def __init__(self, message: str = "评分 Agent 调用失败", node_key: str = None):
        self.node_key = node_key
        super().__init__(
            message=message,
            code=502,
            data={"node_key": node_key} if node_key else None,
        )


class AggregationFailure(AppException):
    """没有任何维度产出分数，聚合无法进行"""

    def __init__(self, message: str = "没有可用的维度评分，无法聚合"):
        super().__init__(message=message, code=422)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """应用异常处理器"""
    logger.warning(f"AppException: {exc.message} | Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.code,
        content=error_response(message=exc.message, code=exc.code, data=exc.data)
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTP 异常处理器"""
    logger.warning(f"HTTPException: {exc.detail} | Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message=str(exc.detail), code=exc.status_code)
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """请求验证异常处理器"""
    errors = exc.errors()
    error_messages = []
    for error in errors:
        loc = " -> ".join(str(l) for l in error["loc"])
        error_messages.append(f"{loc}: {error['msg']}")
    
    message = "; ".join(error_messages)
    logger.warning(f"ValidationError: {message} | Path: {request.url.path}")
    
    return JSONResponse(
        status_code=422,
        content=error_response(
            message="请求参数验证失败",
            code=422,
            data={"errors": [
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in errors
            ]}
        )
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """通用异常处理器"""
    logger.exception(f"Unhandled Exception: {exc} | Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=error_response(message="服务器内部错误", code=500)
    )
