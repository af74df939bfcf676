"""
简历筛选服务
"""
from .cancellation import CancelRegistry, cancel_registry
from .collector import ResultCollector
from .runner import ScreeningRunner, get_screening_runner
from .service import ScreeningService

__all__ = [
    "CancelRegistry",
    "cancel_registry",
    "ResultCollector",
    "ScreeningRunner",
    "get_screening_runner",
    "ScreeningService",
]
