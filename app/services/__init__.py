"""
服务层模块
"""
from .screening import (
    ScreeningService,
    ScreeningRunner,
    ResultCollector,
    CancelRegistry,
    cancel_registry,
    get_screening_runner,
)
from .weight_template import WeightTemplateService, ensure_valid_weights
from .weight_preview import WeightPreviewService

__all__ = [
    "ScreeningService",
    "ScreeningRunner",
    "ResultCollector",
    "CancelRegistry",
    "cancel_registry",
    "get_screening_runner",
    "WeightTemplateService",
    "ensure_valid_weights",
    "WeightPreviewService",
]
