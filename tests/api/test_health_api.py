"""
API tests for health and readiness.
"""


def test_health_reports_mock_modes(test_client):
    response = test_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["details"]["mock_mode"] == {"snowflake": True, "r2": True}


def test_ready_when_stores_respond(test_client):
    response = test_client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert {check["name"] for check in data["checks"]} == {
        "configuration",
        "document_store",
        "object_store",
    }


def test_not_ready_when_object_store_fails(test_client, app_context):
    async def broken_list_objects(prefix=""):
        raise RuntimeError("bucket unreachable")

    app_context.object_store.list_objects = broken_list_objects

    response = test_client.get("/health/ready")

    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


def test_unknown_route_uses_error_body(test_client):
    response = test_client.get("/nowhere")

    assert response.status_code == 404
    assert "error" in response.json()
