"""
统一的 LLM 客户端封装。

评分 Agent 共享同一个客户端：并发控制、速率限制、JSON 解析与 token 统计。
"""
import asyncio
import json
import time
from dataclasses import dataclass
from typing import Dict, List, Any, Optional, Tuple
from openai import AsyncOpenAI
from threading import Lock
from loguru import logger

from app.core.config import settings


@dataclass
class TokenUsage:
    """一次调用的 token 消耗"""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def cost(self) -> float:
        return round(
            self.input_tokens / 1000 * settings.llm_cost_per_1k_input_tokens
            + self.output_tokens / 1000 * settings.llm_cost_per_1k_output_tokens,
            6,
        )


class RateLimiter:
    """简单的速率限制器（令牌桶算法）。"""

    def __init__(self, rate: int):
        self.rate = rate
        self.tokens = rate
        self.last_update = time.time()
        self._lock = Lock()

    def acquire(self) -> bool:
        with self._lock:
            now = time.time()
            elapsed = now - self.last_update
            self.tokens = min(self.rate, self.tokens + elapsed * (self.rate / 60.0))
            self.last_update = now
            if self.tokens >= 1:
                self.tokens -= 1
                return True
            return False

    async def wait_and_acquire(self, interval: float = 0.1):
        """在事件循环中等待令牌；等待被取消时不会消耗令牌"""
        while not self.acquire():
            await asyncio.sleep(interval)


class ConcurrencyLimiter:
    """并发限制器。"""

    def __init__(self, max_concurrency: int):
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def __aenter__(self):
        await self._semaphore.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._semaphore.release()


def parse_json_content(content: str) -> Dict[str, Any]:
    """解析 JSON 响应，兼容 markdown 代码块。"""
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("JSON 解析失败: {}\n原始内容: {}", exc, text[:500])
        raise ValueError(f"LLM 返回的结果不是有效的 JSON 格式: {exc}")
    if not isinstance(data, dict):
        raise ValueError("LLM 返回的 JSON 不是对象")
    return data


class LLMClient:
    """
    统一的 LLM 客户端，提供并发控制、速率限制和 JSON 解析。
    """

    _instance: Optional["LLMClient"] = None
    _lock = Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if getattr(self, "_initialized", False):
            return

        self.model = settings.llm_model
        self.provider = settings.llm_provider
        self.api_key = settings.llm_api_key
        self.base_url = settings.llm_base_url
        self.temperature = settings.llm_temperature
        self.timeout = settings.llm_timeout

        self._client: Optional[AsyncOpenAI] = None
        self._rate_limiter = RateLimiter(settings.llm_rate_limit)
        self._concurrency_limiter = ConcurrencyLimiter(settings.llm_max_concurrency)

        self._initialized = True
        logger.info(
            "LLMClient initialized: model={}, max_concurrency={}, rate_limit={}/min",
            self.model,
            settings.llm_max_concurrency,
            settings.llm_rate_limit,
        )

    @property
    def client(self) -> AsyncOpenAI:
        """延迟初始化 OpenAI 客户端"""
        if self._client is None:
            if not self.is_configured():
                raise ValueError("LLM_API_KEY 未配置，请在 .env 文件中设置")
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def chat_with_usage(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> Tuple[str, TokenUsage]:
        """异步发送聊天请求，返回文本与 token 消耗。"""
        await self._rate_limiter.wait_and_acquire()

        async with self._concurrency_limiter:
            try:
                response = await self.client.chat.completions.create(
                    model=model or self.model,
                    messages=messages,
                    temperature=temperature if temperature is not None else self.temperature,
                )
            except Exception as exc:
                logger.error("LLM 调用失败: {}", exc)
                raise
        if not response or not response.choices:
            raise ValueError("LLM 返回空响应")
        content = response.choices[0].message.content
        if content is None:
            raise ValueError("LLM 返回内容为空")

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )
        return content.strip(), usage

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], TokenUsage]:
        """发送 system + user 消息，返回解析后的 JSON 与 token 消耗。"""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        content, usage = await self.chat_with_usage(messages, temperature, model)
        return parse_json_content(content), usage

    def is_configured(self) -> bool:
        """检查 LLM 是否已正确配置。"""
        return bool(self.api_key) and self.api_key != "your-api-key-here"

    def snapshot(self) -> Dict[str, Any]:
        """任务创建时记录的 LLM 配置快照（不含密钥）。"""
        return {
            "model": self.model,
            "provider": self.provider,
            "base_url": self.base_url,
            "temperature": self.temperature,
            "timeout": self.timeout,
            "max_concurrency": settings.llm_max_concurrency,
            "rate_limit": settings.llm_rate_limit,
        }


def get_llm_client() -> LLMClient:
    """获取 LLMClient 单例实例。"""
    return LLMClient()
