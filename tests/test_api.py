"""End-to-end tests of the HTTP surface with a sqlite database."""
from __future__ import annotations

import asyncio
import threading
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedProvider
from payequity.container import build_container
from payequity.core.config import ImportSettings, LLMSettings, RiskSettings, Settings
from payequity.main import create_app
from payequity.services import imports as imports_module

ORG_HEADERS = {"X-Organization-Id": "org-1", "X-User-Id": "user-1"}
OTHER_ORG = {"X-Organization-Id": "org-2", "X-User-Id": "user-9"}

CSV = "\n".join(
    [
        "Emp ID,Title,Job Family,Lvl,Ctry,Ccy,Base,Gender",
        "E1,Engineer,Engineering,Senior,Ireland,EUR,95000,M",
        "E2,Engineer,Engineering,Senior,IE,EUR,92000,M",
        "E3,Engineer,Engineering,Senior,IE,EUR,89000,M",
        "E4,Engineer,Engineering,Senior,IE,EUR,91000,M",
        "E5,Engineer,Engineering,Senior,IE,EUR,88000,F",
        "E6,Engineer,Engineering,Senior,IE,EUR,87000,F",
        "E7,Engineer,Engineering,Senior,IE,EUR,85000,F",
        "E8,Analyst,Finance,Junior,FR,EUR,not-a-number,F",
    ]
) + "\n"

MAPPING = {
    "employeeId": "Emp ID",
    "roleTitle": "Title",
    "jobFamily": "Job Family",
    "level": "Lvl",
    "country": "Ctry",
    "currency": "Ccy",
    "baseSalary": "Base",
    "gender": "Gender",
}

REPORT = "## Executive Summary\nOne comparator group in Ireland warrants review at a 4.9% gap."


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        llm=LLMSettings(enabled=False, model="test-model"),
        imports=ImportSettings(upload_dir=tmp_path / "uploads"),
        risk=RiskSettings(poll_interval_seconds=0.05, poll_attempts=100),
        background_workers=2,
    )


@pytest.fixture
def container(tmp_path, session_factory):
    return build_container(_settings(tmp_path), session_factory=session_factory)


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as test_client:
        yield test_client


def _upload(client: TestClient, headers=ORG_HEADERS):
    return client.post(
        "/imports/employees/csv",
        files={"file": ("export.csv", CSV.encode("utf-8"), "text/csv")},
        headers=headers,
    )


def _import(client: TestClient, container) -> str:
    import_id = _upload(client).json()["importId"]
    response = client.post(
        f"/imports/{import_id}/confirm-mapping", json={"mapping": MAPPING}, headers=ORG_HEADERS
    )
    assert response.status_code == 200
    assert container.runner.drain(timeout=10)
    return import_id


def test_requests_without_context_are_rejected(client) -> None:
    assert client.get("/imports").status_code == 401
    assert client.get("/risk/latest", headers={"X-Organization-Id": "org-1"}).status_code == 401


def test_upload_returns_deterministic_suggestion(client) -> None:
    response = _upload(client)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING_MAPPING"
    assert body["mappingSource"] == "deterministic"
    assert body["rowCount"] == 8
    assert body["detectedColumns"][0] == "Emp ID"
    assert len(body["sampleData"]) == 5
    assert body["suggestedMapping"]["employeeId"] == "Emp ID"
    assert body["confidence"]["employeeId"] == 0.7


def test_empty_upload_is_rejected(client) -> None:
    response = client.post(
        "/imports/employees/csv",
        files={"file": ("empty.csv", b"Emp ID,Title\n", "text/csv")},
        headers=ORG_HEADERS,
    )

    assert response.status_code == 400


def test_non_utf8_upload_is_rejected_and_discarded(client, tmp_path) -> None:
    response = client.post(
        "/imports/employees/csv",
        files={"file": ("latin1.csv", "Emp ID,Title\nE1,Ing\u00e9nieur\n".encode("latin-1"), "text/csv")},
        headers=ORG_HEADERS,
    )

    assert response.status_code == 400
    assert "UTF-8" in response.json()["detail"]
    assert list((tmp_path / "uploads").iterdir()) == []
    assert client.get("/imports", headers=ORG_HEADERS).json() == []


def test_preview_reports_rows_with_warnings(client) -> None:
    import_id = _upload(client).json()["importId"]

    response = client.post(f"/imports/{import_id}/preview", json={"mapping": MAPPING}, headers=ORG_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["totalRows"] == 8
    assert body["rows"][0]["rowNumber"] == 1
    assert body["rows"][0]["data"]["country"] == "IE"


def test_invalid_mapping_is_a_bad_request(client) -> None:
    import_id = _upload(client).json()["importId"]

    response = client.post(
        f"/imports/{import_id}/confirm-mapping",
        json={"mapping": {"employeeId": "Nope"}},
        headers=ORG_HEADERS,
    )

    assert response.status_code == 400


def test_confirm_runs_import_and_risk_computation(client, container) -> None:
    import_id = _import(client, container)

    detail = client.get(f"/imports/{import_id}", headers=ORG_HEADERS).json()
    assert detail["status"] == "COMPLETED"
    assert (detail["createdCount"], detail["updatedCount"], detail["errorCount"]) == (7, 0, 1)
    assert detail["errors"][0]["row"] == 8

    again = client.post(f"/imports/{import_id}/confirm-mapping", json={"mapping": MAPPING}, headers=ORG_HEADERS)
    assert again.status_code == 400

    latest = client.get("/risk/latest", headers=ORG_HEADERS).json()
    assert latest["run"]["status"] == "COMPLETED"
    (group,) = latest["groups"]
    assert group["groupKey"] == "IE:Engineering:Senior"
    assert group["gapPct"] == 4.9
    assert group["riskState"] == "REQUIRES_REVIEW"
    assert (group["womenCount"], group["menCount"]) == (3, 4)

    filtered = client.get("/risk/groups", params={"riskState": "THRESHOLD_ALERT"}, headers=ORG_HEADERS)
    assert filtered.json()["groups"] == []

    single = client.get("/risk/groups/IE:Engineering:Senior", headers=ORG_HEADERS)
    assert single.status_code == 200
    assert single.json()["level"] == "Senior"


def test_imports_are_scoped_to_the_organization(client, container) -> None:
    import_id = _import(client, container)

    assert client.get(f"/imports/{import_id}", headers=OTHER_ORG).status_code == 404
    assert client.get("/imports", headers=OTHER_ORG).json() == []
    assert client.get("/employees", headers=OTHER_ORG).json()["total"] == 0


def test_manual_risk_run_and_missing_report(client, container) -> None:
    _import(client, container)

    started = client.post("/risk/run", headers=ORG_HEADERS)
    assert started.status_code == 202
    run_id = started.json()["runId"]
    assert container.runner.drain(timeout=10)

    run = client.get(f"/risk/runs/{run_id}", headers=ORG_HEADERS).json()
    assert run["run"]["status"] == "COMPLETED"
    assert run["run"]["triggeredBy"] == "user-1"
    assert len(run["groups"]) == 1

    report = client.post(f"/risk/runs/{run_id}/report", headers=ORG_HEADERS)
    assert report.status_code == 200
    assert report.json() == {"report": None}
    assert client.get("/risk/reports/latest", headers=ORG_HEADERS).json() == {"report": None}


def test_report_is_generated_and_stored(tmp_path, session_factory) -> None:
    container = build_container(
        _settings(tmp_path), session_factory=session_factory, llm_provider=ScriptedProvider(REPORT)
    )
    with TestClient(create_app(container)) as client:
        _import(client, container)
        run_id = client.get("/risk/latest", headers=ORG_HEADERS).json()["run"]["id"]

        response = client.post(f"/risk/runs/{run_id}/report", headers=ORG_HEADERS)

        assert response.status_code == 200
        assert response.json()["report"]["summary"] == REPORT
        latest = client.get("/risk/reports/latest", headers=ORG_HEADERS).json()
        assert latest["report"]["riskRunId"] == run_id


def test_employee_listing_and_snapshots(client, container) -> None:
    _import(client, container)

    listing = client.get("/employees", params={"country": "IE", "pageSize": 2}, headers=ORG_HEADERS).json()
    assert listing["total"] == 7
    assert len(listing["items"]) == 2
    employee_id = listing["items"][0]["id"]

    search = client.get("/employees", params={"q": "E7"}, headers=ORG_HEADERS).json()
    assert [item["employeeId"] for item in search["items"]] == ["E7"]

    snapshots = client.get(f"/employees/{employee_id}/snapshots", headers=ORG_HEADERS)
    assert snapshots.status_code == 200
    assert len(snapshots.json()) == 1
    latest = client.get(f"/employees/{employee_id}/snapshots/latest", headers=ORG_HEADERS).json()
    assert latest["employeeExternalId"] == listing["items"][0]["employeeId"]

    assert client.get("/employees/does-not-exist", headers=ORG_HEADERS).status_code == 404


def test_upload_reads_the_file_off_the_event_loop_thread(container, monkeypatch) -> None:
    reader_threads: list[int] = []
    real_parse_headers = imports_module.parse_headers

    def recording_parse_headers(path):
        reader_threads.append(threading.get_ident())
        return real_parse_headers(path)

    monkeypatch.setattr(imports_module, "parse_headers", recording_parse_headers)
    service = container.import_service
    path = service.store_upload("export.csv", CSV.encode("utf-8"))

    result = asyncio.run(
        service.create_upload(
            organization_id="org-1", user_id="user-1", file_name="export.csv", file_path=path
        )
    )

    assert result.job.status == "PENDING_MAPPING"
    assert result.sample.total_rows == 8
    assert reader_threads
    assert threading.get_ident() not in reader_threads
