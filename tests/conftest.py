"""
测试配置文件

提供测试用的 fixtures：临时数据库、测试客户端、假评分 Agent、测试数据工厂等
"""
import asyncio
from typing import AsyncGenerator, Awaitable, Callable, Dict, Optional, Type
from dataclasses import dataclass, field

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

import app.models  # noqa: F401
from app.agents.base import AgentScore, ScoringAgent
from app.agents.llm_client import TokenUsage, get_llm_client
from app.agents.scoring import AGENT_CLASSES
from app.core.database import Base, get_db
from app.core.exceptions import UpstreamAgentFailure
from app.core.progress_cache import progress_cache
from app.main import create_app
from app.models.screening import NodeKey
from app.services.screening import ScreeningRunner, cancel_registry, get_screening_runner


# ========== 假评分 Agent ==========

# 各维度默认分数，按默认权重聚合为 75.5
DEFAULT_SCORES: Dict[str, float] = {
    NodeKey.SKILL.value: 80.0,
    NodeKey.RESPONSIBILITY.value: 70.0,
    NodeKey.EXPERIENCE.value: 90.0,
    NodeKey.EDUCATION.value: 60.0,
    NodeKey.INDUSTRY.value: 50.0,
    NodeKey.BASIC_INFO.value: 100.0,
}


class FakeAgent(ScoringAgent):
    """
    确定性的评分 Agent，不调用 LLM

    前 fail_times 次调用抛出 UpstreamAgentFailure，之后返回固定分数
    """

    def __init__(
        self,
        template: Type[ScoringAgent],
        score: float = 80.0,
        *,
        fail_times: int = 0,
        delay: float = 0.0,
        extra: Optional[dict] = None,
        on_score: Optional[Callable[["FakeAgent"], Awaitable[None]]] = None,
    ):
        super().__init__()
        self.name = template.name
        self.dimension = template.dimension
        self.detail_model = template.detail_model
        self.score_value = score
        self.fail_times = fail_times
        self.delay = delay
        self.extra = extra or {}
        self.on_score = on_score
        self.calls = 0

    @property
    def model_name(self) -> str:
        return "fake-model"

    @property
    def provider(self) -> str:
        return "fake"

    async def score(self, payload) -> AgentScore:
        self.calls += 1
        if self.on_score is not None:
            await self.on_score(self)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls <= self.fail_times:
            raise UpstreamAgentFailure(f"{self.name} 模拟失败", node_key=self.name)
        detail = self.detail_model.model_validate({"score": self.score_value, **self.extra})
        return AgentScore(
            score=detail.score,
            detail=detail,
            usage=TokenUsage(input_tokens=100, output_tokens=50),
            model_name="fake-model",
        )


def build_fake_agents(**overrides: FakeAgent) -> Dict[str, ScoringAgent]:
    """按节点名构建六个假 Agent，overrides 以节点名为键替换个别 Agent"""
    agents: Dict[str, ScoringAgent] = {
        cls.name: FakeAgent(cls, DEFAULT_SCORES[cls.name]) for cls in AGENT_CLASSES
    }
    agents.update(overrides)
    return agents


def agent_class(node_key: str) -> Type[ScoringAgent]:
    return next(cls for cls in AGENT_CLASSES if cls.name == node_key)


class StubLLM:
    """按预设返回 JSON 或抛出异常的 LLM 客户端，用于权重预览等直接调用模型的服务"""

    model = "fake-model"
    provider = "fake"

    def __init__(self, response: Optional[dict] = None, error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.calls = []

    async def complete_json(self, system_prompt, user_prompt, temperature=None, model=None):
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.response, TokenUsage(input_tokens=200, output_tokens=80)


# ========== 数据库 ==========

@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """
    每个测试使用独立的临时 SQLite 文件

    运行器与请求使用不同的会话，文件库保证各会话拥有独立连接
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """为每个测试函数提供独立的数据库会话"""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def clean_registries():
    """清理进程内的取消标记和进度缓存"""
    yield
    cancel_registry.clear()
    progress_cache.clear()


# ========== 运行器 ==========

@pytest.fixture
def fake_agents() -> Dict[str, ScoringAgent]:
    return build_fake_agents()


@pytest.fixture
def make_runner(session_factory, fake_agents):
    """构建使用测试数据库的运行器，默认立即重试、最多 2 次尝试"""
    def _make(agents: Optional[Dict[str, ScoringAgent]] = None, **kwargs) -> ScreeningRunner:
        options = {
            "max_workers": 2,
            "agent_timeout": 5.0,
            "max_retry": 2,
            "retry_delay": 0.0,
            "require_all_dimensions": False,
            "fail_when_all_resumes_fail": False,
            **kwargs,
        }
        return ScreeningRunner(session_factory, agents or fake_agents, **options)
    return _make


@pytest.fixture
def runner(make_runner) -> ScreeningRunner:
    return make_runner()


@pytest.fixture
def stub_llm() -> StubLLM:
    """默认模拟未配置的模型，测试可改写 response 与 error"""
    return StubLLM(error=ValueError("LLM API Key 未配置"))


# ========== HTTP 客户端 ==========

@pytest_asyncio.fixture(scope="function")
async def client(session_factory, runner, stub_llm) -> AsyncGenerator[AsyncClient, None]:
    """
    提供测试用的 HTTP 客户端

    每个请求使用新的会话；运行器替换为假 Agent 版本，LLM 客户端替换为 stub_llm
    """
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_screening_runner] = lambda: runner
    app.dependency_overrides[get_llm_client] = lambda: stub_llm

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ========== 测试数据工厂 ==========

@dataclass
class DataFactory:
    """
    测试数据工厂类

    集中管理测试数据创建，避免各测试文件重复代码
    """
    client: AsyncClient
    _counter: int = field(default=0, repr=False)

    def _next_id(self) -> str:
        self._counter += 1
        return str(self._counter)

    async def create_job_profile(self, **overrides) -> dict:
        """创建岗位画像，返回完整响应数据"""
        suffix = self._next_id()
        data = {
            "name": f"后端工程师{suffix}",
            "department": "技术部",
            "location": "上海",
            "salary_min": 20,
            "salary_max": 35,
            "description": "负责核心服务的设计与开发",
            "responsibilities": [{"responsibility": "设计并实现高并发后端服务"}],
            "skills": [
                {"skill": "Python", "type": "required"},
                {"skill": "Kubernetes", "type": "bonus"},
            ],
            "education_requirements": [{"education_type": "本科", "major": "计算机"}],
            "experience_requirements": [{"experience_type": "work", "min_years": 3, "ideal_years": 5}],
            "industry_requirements": [{"industry": "互联网"}],
            **overrides
        }
        resp = await self.client.post("/api/v1/job-profiles", json=data)
        assert resp.status_code == 200, f"创建岗位画像失败: {resp.text}"
        return resp.json()["data"]

    async def create_resume(self, **overrides) -> dict:
        """创建结构化简历，返回完整响应数据"""
        suffix = self._next_id()
        data = {
            "name": f"候选人{suffix}",
            "email": f"candidate{suffix}@example.com",
            "phone": f"138{suffix.zfill(8)}",
            "current_city": "上海",
            "highest_education": "本科",
            "years_experience": 4,
            "educations": [{"school": "同济大学", "degree": "本科", "major": "计算机科学"}],
            "experiences": [{
                "company": "某互联网公司",
                "position": "后端工程师",
                "industry": "互联网",
                "experience_type": "work",
                "description": "负责订单服务开发",
            }],
            "skills": [{"skill_name": "Python", "level": "advanced"}],
            "projects": [{"name": "订单系统", "role": "核心开发", "technologies": ["Python", "Redis"]}],
            **overrides
        }
        resp = await self.client.post("/api/v1/resumes", json=data)
        assert resp.status_code == 200, f"创建简历失败: {resp.text}"
        return resp.json()["data"]

    async def create_task(
        self,
        job_position_id: Optional[str] = None,
        resume_count: int = 1,
        **overrides
    ) -> dict:
        """创建筛选任务，自动创建依赖的岗位画像和简历"""
        if job_position_id is None:
            job_position_id = (await self.create_job_profile())["id"]
        if "resume_ids" not in overrides:
            overrides["resume_ids"] = [
                (await self.create_resume())["id"] for _ in range(resume_count)
            ]
        data = {"job_position_id": job_position_id, **overrides}
        resp = await self.client.post("/api/v1/screening/tasks", json=data)
        assert resp.status_code == 200, f"创建筛选任务失败: {resp.text}"
        return resp.json()["data"]

    async def run_task(self, task_id: str) -> dict:
        """启动任务并返回结束后的任务详情（后台任务在响应返回前执行完毕）"""
        resp = await self.client.post(f"/api/v1/screening/tasks/{task_id}/start")
        assert resp.status_code == 200, f"启动筛选任务失败: {resp.text}"
        resp = await self.client.get(f"/api/v1/screening/tasks/{task_id}")
        return resp.json()["data"]


@pytest_asyncio.fixture
async def factory(client: AsyncClient) -> DataFactory:
    """提供测试数据工厂实例"""
    return DataFactory(client=client)
