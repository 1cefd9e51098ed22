"""
tests/test_imports_api.py

HTTP contract tests for the import endpoints using FastAPI's TestClient,
with the database dependency pointed at the in-memory test session.
"""

from __future__ import annotations

import csv
import io
import uuid

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routers import imports_router
from app.config import get_import_settings
from app.services.import_orchestrator_service import get_import_orchestrator_service
from db.session import get_db

HEADER = "State,Year,Category,Measure,Value"


@pytest.fixture()
def client(db, service, import_settings):
    app = FastAPI()
    app.include_router(imports_router)

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_import_orchestrator_service] = lambda: service
    app.dependency_overrides[get_import_settings] = lambda: import_settings
    with TestClient(app) as test_client:
        yield test_client


def post_csv(client, template_id, content: bytes, *, file_name="states.csv", content_type="text/csv", **form):
    data = {"template_id": str(template_id), "user_id": "3"}
    data.update({key: str(value) for key, value in form.items()})
    return client.post(
        "/imports",
        files={"file": (file_name, content, content_type)},
        data=data,
    )


def test_upload_then_promote_then_duplicate(client, multi_template_id, make_csv) -> None:
    content = make_csv(
        HEADER,
        "Alabama,2023,Economy,Unemployment Rate,3.1",
        "Texas,2023,Economy,Unemployment Rate,4.0",
        "Alabama,2023,Economy,GDP,200000",
    )

    created = post_csv(client, multi_template_id, content)
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "staged"
    assert body["stats"] == {"total_rows": 3, "valid_rows": 2, "failed_rows": 1}
    import_id = body["import_id"]

    validated = client.post(f"/imports/{import_id}/validate")
    assert validated.status_code == 200
    assert validated.json()["is_valid"] is True

    promoted = client.post(f"/imports/{import_id}/promote", json={"user_id": 3})
    assert promoted.status_code == 200
    assert promoted.json()["published_rows"] == 2

    detail = client.get(f"/imports/{import_id}").json()
    assert detail["status"] == "promoted"
    assert detail["failure_breakdown"]["unresolved_reference"] == 1

    duplicate = post_csv(client, multi_template_id, content)
    assert duplicate.status_code == 200
    assert duplicate.json()["status"] == "discarded"
    assert duplicate.json()["duplicate_of"] == import_id
    assert duplicate.json()["message"]


def test_failed_rows_download(client, multi_template_id, make_csv) -> None:
    import_id = post_csv(
        client,
        multi_template_id,
        make_csv(HEADER, "Alabama,2023,Economy,Unemployment Rate,N/A"),
    ).json()["import_id"]

    response = client.get(f"/imports/{import_id}/failed-rows")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0][0] == "Row Number"
    assert rows[1][0] == "2"
    assert rows[1][-3] == "non_numeric_value"


def test_failed_rows_download_without_failures_is_404(client, multi_template_id, make_csv) -> None:
    import_id = post_csv(
        client,
        multi_template_id,
        make_csv(HEADER, "Alabama,2023,Economy,Unemployment Rate,1"),
    ).json()["import_id"]

    assert client.get(f"/imports/{import_id}/failed-rows").status_code == 404


def test_staged_rows_are_paginated(client, multi_template_id, make_csv) -> None:
    import_id = post_csv(
        client,
        multi_template_id,
        make_csv(
            HEADER,
            "Alabama,2023,Economy,Unemployment Rate,1",
            "Texas,2023,Economy,Unemployment Rate,2",
            "Ohio,2023,Economy,Unemployment Rate,3",
        ),
    ).json()["import_id"]

    body = client.get(f"/imports/{import_id}/staged-rows", params={"limit": 2, "offset": 1}).json()

    assert body["total"] == 3
    assert [row["row_number"] for row in body["rows"]] == [3, 4]


def test_error_statuses(client, multi_template_id, make_csv) -> None:
    content = make_csv(HEADER, "Alabama,2023,Economy,Unemployment Rate,1")

    assert client.get(f"/imports/{uuid.uuid4()}").status_code == 404
    assert post_csv(client, 9999, content).status_code == 404
    assert post_csv(client, multi_template_id, content, file_name="data.xlsx", content_type="application/octet-stream").status_code == 400
    assert post_csv(client, multi_template_id, make_csv("State,Value", "Alabama,1")).status_code == 400
    assert post_csv(client, multi_template_id, content, metadata="{not json").status_code == 400

    import_id = post_csv(client, multi_template_id, content).json()["import_id"]
    conflict = client.post(f"/imports/{import_id}/retry", json={"user_id": 3})
    assert conflict.status_code == 409
    assert "staged" in conflict.json()["detail"]["message"]
    assert client.post(f"/imports/{import_id}/promote", json={"user_id": 0}).status_code == 422


def test_discard_and_delete(client, multi_template_id, make_csv) -> None:
    import_id = post_csv(
        client,
        multi_template_id,
        make_csv(HEADER, "Alabama,2023,Economy,Unemployment Rate,1"),
    ).json()["import_id"]

    discarded = client.post(f"/imports/{import_id}/discard")
    assert discarded.status_code == 200
    assert discarded.json()["status"] == "discarded"

    assert client.delete(f"/imports/{import_id}").status_code == 204
    assert client.get(f"/imports/{import_id}").status_code == 404


def test_list_imports_and_templates(client, multi_template_id, make_csv) -> None:
    post_csv(client, multi_template_id, make_csv(HEADER, "Alabama,2023,Economy,Unemployment Rate,1"))

    listed = client.get("/imports", params={"status": "staged"}).json()
    assert len(listed["imports"]) == 1
    assert listed["imports"][0]["metadata"]["kind"] == "multi-category"
    assert client.get("/imports", params={"status": "bogus"}).status_code == 400

    templates = client.get("/import-templates").json()["templates"]
    assert {template["layout"] for template in templates} == {"multi-category", "single-category"}


def test_rollback_and_event_log_endpoints(client, multi_template_id, make_csv) -> None:
    import_id = post_csv(
        client,
        multi_template_id,
        make_csv(HEADER, "Alabama,2023,Economy,Unemployment Rate,1", "Texas,2023,Economy,Unemployment Rate,2"),
    ).json()["import_id"]

    early = client.post(f"/imports/{import_id}/rollback", json={"user_id": 3})
    assert early.status_code == 409
    assert "promoted" in early.json()["detail"]["message"]

    client.post(f"/imports/{import_id}/promote", json={"user_id": 3})
    rolled_back = client.post(f"/imports/{import_id}/rollback", json={"user_id": 3})
    assert rolled_back.status_code == 200
    assert rolled_back.json() == {
        "import_id": import_id,
        "status": "rolled_back",
        "restored_rows": 0,
        "deleted_rows": 2,
        "skipped_rows": 0,
    }

    detail = client.get(f"/imports/{import_id}").json()
    assert detail["status"] == "rolled_back"
    assert detail["rolled_back_by"] == 3
    assert client.post(f"/imports/{import_id}/rollback", json={"user_id": 0}).status_code == 422

    events = client.get(f"/imports/{import_id}/events")
    assert events.status_code == 200
    assert [event["event"] for event in events.json()["events"]] == ["rolled_back", "promoted", "staged", "uploaded"]
    errors_only = client.get(f"/imports/{import_id}/events", params={"level": "error"})
    assert errors_only.json()["events"] == []
    assert client.get(f"/imports/{import_id}/events", params={"level": "debug"}).status_code == 400
    assert client.get(f"/imports/{uuid.uuid4()}/events").status_code == 404
