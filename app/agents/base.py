"""
评分 Agent 基类模块

定义六个维度评分 Agent 的统一接口：窄输入 -> 类型化匹配详情
"""
import json
from abc import ABC
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Type

from loguru import logger
from openai import OpenAIError
from pydantic import ValidationError

from app.core.exceptions import UpstreamAgentFailure
from app.models.payloads import AgentInput, MatchDetail
from .llm_client import LLMClient, TokenUsage, get_llm_client
from .prompts import get_prompt


@dataclass
class AgentScore:
    """一次成功打分的结果"""
    score: float
    detail: MatchDetail
    usage: TokenUsage = field(default_factory=TokenUsage)
    model_name: Optional[str] = None


class ScoringAgent(ABC):
    """
    评分 Agent 基类

    子类只需声明节点名、维度、详情模型和 prompt 键；
    Agent 不持有可变的共享状态，可被多个简历并发调用
    """

    # 节点标识，与 NodeKey 对应
    name: ClassVar[str] = "ScoringAgent"

    # 对应的权重维度
    dimension: ClassVar[str] = ""

    # LLM 输出校验模型
    detail_model: ClassVar[Type[MatchDetail]]

    # screening.yaml 中的段落名
    prompt_key: ClassVar[str] = ""

    prompt_file: ClassVar[str] = "screening"

    def __init__(self, llm: Optional[LLMClient] = None):
        self._llm = llm

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = get_llm_client()
        return self._llm

    @property
    def model_name(self) -> Optional[str]:
        return self.llm.model

    @property
    def provider(self) -> Optional[str]:
        return self.llm.provider

    def system_prompt(self) -> str:
        return get_prompt(self.prompt_file, f"{self.prompt_key}.system")

    def user_prompt(self, payload: AgentInput) -> str:
        dimension_label = get_prompt(self.prompt_file, f"{self.prompt_key}.dimension")
        return get_prompt(
            self.prompt_file,
            "common.user_template",
            dimension=dimension_label,
            input=json.dumps(payload.model_dump(mode="json"), ensure_ascii=False, indent=2),
        )

    def parse_detail(self, data: Dict[str, Any]) -> MatchDetail:
        """
        将 LLM 返回的 JSON 校验为匹配详情

        Raises:
            UpstreamAgentFailure: 输出不符合详情模型
        """
        data = {k: v for k, v in data.items() if k != "kind"}
        try:
            return self.detail_model.model_validate(data)
        except ValidationError as exc:
            raise UpstreamAgentFailure(
                f"{self.name} 输出格式不正确: {exc.error_count()} 个字段校验失败",
                node_key=self.name,
            ) from exc

    async def score(self, payload: AgentInput) -> AgentScore:
        """
        对一个维度打分

        Raises:
            UpstreamAgentFailure: LLM 调用失败或输出无法解析
        """
        logger.debug("[{}] 开始打分", self.name)
        try:
            data, usage = await self.llm.complete_json(
                self.system_prompt(),
                self.user_prompt(payload),
            )
        except (ValueError, OpenAIError) as exc:
            raise UpstreamAgentFailure(f"{self.name} 调用失败: {exc}", node_key=self.name) from exc

        detail = self.parse_detail(data)
        return AgentScore(
            score=detail.score,
            detail=detail,
            usage=usage,
            model_name=self.model_name,
        )
