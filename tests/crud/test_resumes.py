"""
简历与岗位画像 API 测试

两者由外部服务提供结构化数据，这里只验证录入与详情查询
"""
import pytest
from httpx import AsyncClient
from tests.conftest import DataFactory


@pytest.mark.asyncio
async def test_resume_create_and_get(client: AsyncClient, factory: DataFactory):
    """测试简历录入与查询"""
    resume = await factory.create_resume(name="张三")
    resume_id = resume["id"]
    assert resume["skills"][0]["skill_name"] == "Python"

    response = await client.get(f"/api/v1/resumes/{resume_id}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "张三"
    assert data["educations"][0]["school"] == "同济大学"
    assert data["projects"][0]["technologies"] == ["Python", "Redis"]

    response = await client.get("/api/v1/resumes/missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_resume_validation(client: AsyncClient):
    response = await client.post("/api/v1/resumes", json={"name": ""})
    assert response.status_code == 422
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_job_profile_create_and_get(client: AsyncClient, factory: DataFactory):
    """测试岗位画像录入与查询"""
    job = await factory.create_job_profile(name="算法工程师")
    job_id = job["id"]

    response = await client.get(f"/api/v1/job-profiles/{job_id}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "算法工程师"
    assert [s["skill"] for s in data["skills"]] == ["Python", "Kubernetes"]
    assert data["skills"][0]["id"]
    assert data["experience_requirements"][0]["min_years"] == 3

    response = await client.get("/api/v1/job-profiles/missing")
    assert response.status_code == 404
