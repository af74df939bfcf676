"""
统一响应信封测试
"""
from app.core.response import error_response, paged_response, success_response


def test_success_envelope():
    assert success_response(data={"id": "t-1"}, message="筛选任务已启动") == {
        "success": True, "code": 200, "message": "筛选任务已启动", "data": {"id": "t-1"},
    }


def test_state_conflict_envelope():
    body = error_response("只有待执行的任务可以启动，当前状态: completed", code=409, data={"status": "completed"})
    assert body["success"] is False
    assert body["code"] == 409
    assert body["data"] == {"status": "completed"}


def test_paged_envelope_rounds_pages_up():
    data = paged_response([{"id": 1}], total=41, page=3, page_size=20)["data"]
    assert data["pages"] == 3
    assert (data["total"], data["page"], data["page_size"]) == (41, 3, 20)
    assert paged_response([], total=0, page=1, page_size=20)["data"]["pages"] == 0
