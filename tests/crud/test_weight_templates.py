"""
权重模板 API 测试
"""
import pytest
from httpx import AsyncClient
from tests.conftest import DataFactory

SKILL_FIRST = {
    "skill": 0.5,
    "responsibility": 0.2,
    "experience": 0.1,
    "education": 0.1,
    "industry": 0.05,
    "basic": 0.05,
}


@pytest.mark.asyncio
async def test_default_weights(client: AsyncClient):
    response = await client.get("/api/v1/weight-templates/defaults")
    assert response.status_code == 200
    weights = response.json()["data"]
    assert weights == {
        "skill": 0.35,
        "responsibility": 0.2,
        "experience": 0.2,
        "education": 0.15,
        "industry": 0.07,
        "basic": 0.03,
    }


@pytest.mark.asyncio
async def test_weight_template_crud_flow(client: AsyncClient):
    """测试权重模板完整 CRUD 流程"""

    # 1. Create
    response = await client.post("/api/v1/weight-templates", json={
        "name": "技能优先",
        "weights": SKILL_FIRST,
        "created_by": "hr-1",
    })
    assert response.status_code == 200
    template = response.json()["data"]
    template_id = template["id"]
    assert template["weights"] == SKILL_FIRST

    # 2. 重名
    response = await client.post("/api/v1/weight-templates", json={
        "name": "技能优先",
        "weights": SKILL_FIRST,
    })
    assert response.status_code == 409

    # 3. Read
    response = await client.get(f"/api/v1/weight-templates/{template_id}")
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "技能优先"

    response = await client.get("/api/v1/weight-templates", params={"created_by": "hr-1"})
    assert response.json()["data"]["total"] == 1

    # 4. Update
    response = await client.patch(f"/api/v1/weight-templates/{template_id}", json={
        "description": "技术岗通用",
        "weights": dict(SKILL_FIRST, skill=0.4, experience=0.2),
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["description"] == "技术岗通用"
    assert data["weights"]["skill"] == 0.4

    response = await client.patch(f"/api/v1/weight-templates/{template_id}", json={
        "weights": dict(SKILL_FIRST, skill=0.9),
    })
    assert response.status_code == 400

    # 5. Delete
    response = await client.delete(f"/api/v1/weight-templates/{template_id}")
    assert response.status_code == 200
    response = await client.get(f"/api/v1/weight-templates/{template_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_invalid_template_weights(client: AsyncClient):
    response = await client.post("/api/v1/weight-templates", json={
        "name": "非法权重",
        "weights": dict(SKILL_FIRST, basic=0.5),
    })
    assert response.status_code == 400

    response = await client.post("/api/v1/weight-templates", json={
        "name": "负权重",
        "weights": dict(SKILL_FIRST, skill=-0.1, responsibility=0.8),
    })
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_task_uses_template(client: AsyncClient, factory: DataFactory):
    """任务创建时快照模板权重"""
    response = await client.post("/api/v1/weight-templates", json={
        "name": "模板A",
        "weights": SKILL_FIRST,
    })
    template_id = response.json()["data"]["id"]

    task = await factory.create_task(weight_template_id=template_id)
    assert task["dimension_weights"] == SKILL_FIRST

    # 修改模板不影响已创建的任务
    await client.patch(f"/api/v1/weight-templates/{template_id}", json={
        "weights": dict(SKILL_FIRST, skill=0.4, experience=0.2),
    })
    response = await client.get(f"/api/v1/screening/tasks/{task['id']}")
    assert response.json()["data"]["dimension_weights"] == SKILL_FIRST

    response = await client.post("/api/v1/screening/tasks", json={
        "job_position_id": task["job_position_id"],
        "resume_ids": [(await factory.create_resume())["id"]],
        "weight_template_id": "missing",
    })
    assert response.status_code == 404
