# -*- coding: utf-8 -*-
"""
评分 Agent 的 prompt 配置包。

screening.yaml 中每个维度一段 system prompt，外加共用的 user 模板。
"""

from .loader import PromptLoader, get_prompt, get_prompt_loader

__all__ = [
    "PromptLoader",
    "get_prompt",
    "get_prompt_loader",
]
