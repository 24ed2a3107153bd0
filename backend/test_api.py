"""
HTTP tests: dataset import and the /api/datasets routes.
"""

import pytest
from fastapi.testclient import TestClient

import main
from app.llm import LLMError
from core import storage
from server.api import get_llm

HEADERS = {"X-Session-Id": "test-session"}


@pytest.fixture
def client():
    storage.clear()
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()
    storage.clear()


@pytest.fixture
def sales_body(sales_dataset):
    return {"name": "sales", "headers": sales_dataset.headers, "rows": sales_dataset.rows}


@pytest.fixture
def sales_id(client, sales_body):
    resp = client.post("/datasets", json=sales_body, headers=HEADERS)
    assert resp.status_code == 200
    return resp.json()["dataset"]["datasetId"]


class TestImport:
    """Tests for JSON and CSV imports."""

    def test_missing_session(self, client, sales_body):
        resp = client.post("/datasets", json=sales_body)
        assert resp.status_code == 400

    def test_json_import(self, client, sales_body):
        resp = client.post("/datasets", json=sales_body, headers=HEADERS)
        body = resp.json()
        assert body["ok"] is True
        assert body["dataset"]["rowCount"] == 20
        assert body["sampled"] is False
        assert body["stats"]["sales"]["type"] == "numeric"

    def test_duplicate_import(self, client, sales_body):
        client.post("/datasets", json=sales_body, headers=HEADERS)
        resp = client.post("/datasets", json=sales_body, headers=HEADERS)
        assert resp.status_code == 409
        assert resp.json()["duplicate"] is True

    def test_invalid_dataset(self, client):
        body = {"headers": ["a", "a"], "rows": []}
        assert client.post("/datasets", json=body, headers=HEADERS).status_code == 400
        body = {"headers": ["a"], "rows": [{"a": 1, "b": 2}]}
        assert client.post("/datasets", json=body, headers=HEADERS).status_code == 400

    def test_import_is_down_sampled(self, client, monkeypatch):
        monkeypatch.setattr(main, "IMPORT_MAX_ROWS", 5)
        body = {"headers": ["i"], "rows": [{"i": i} for i in range(20)]}
        resp = client.post("/datasets", json=body, headers=HEADERS)
        dataset = resp.json()["dataset"]
        assert dataset["rowCount"] == 5
        assert dataset["originalRowCount"] == 20
        assert resp.json()["sampled"] is True

    def test_csv_upload(self, client):
        csv = b"date,region,sales\n2024-01-01,North,10\n2024-01-02,South,12.5\n2024-01-03,North,\n"
        files = {"file": ("sales.csv", csv, "text/csv")}
        resp = client.post("/datasets/upload", files=files, headers=HEADERS)
        assert resp.status_code == 200
        dataset = resp.json()["dataset"]
        assert dataset["name"] == "sales"
        assert dataset["headers"] == ["date", "region", "sales"]
        assert dataset["rowCount"] == 3

        dup = client.post("/datasets/upload", files=files, headers=HEADERS)
        assert dup.status_code == 409

    def test_bad_csv(self, client):
        files = {"file": ("empty.csv", b"", "text/csv")}
        resp = client.post("/datasets/upload", files=files, headers=HEADERS)
        assert resp.status_code == 400


class TestDatasetRoutes:
    """Tests for profile, stats, charts and reduce."""

    def test_unknown_dataset(self, client):
        assert client.get("/api/datasets/nope/profile", headers=HEADERS).status_code == 404

    def test_other_session_cannot_read(self, client, sales_id):
        resp = client.get(f"/api/datasets/{sales_id}", headers={"X-Session-Id": "other"})
        assert resp.status_code == 404

    def test_meta(self, client, sales_id):
        body = client.get(f"/api/datasets/{sales_id}", headers=HEADERS).json()
        assert body["name"] == "sales"

    def test_profile(self, client, sales_id):
        body = client.get(f"/api/datasets/{sales_id}/profile", headers=HEADERS).json()
        assert body["numeric_fields"] == ["sales"]
        assert body["good_category_fields"] == ["region"]

    def test_stats(self, client, sales_id):
        body = client.get(f"/api/datasets/{sales_id}/stats", headers=HEADERS).json()
        assert body["stats"]["region"]["uniqueValues"] == 3

    def test_line_chart(self, client, sales_id):
        resp = client.post(
            f"/api/datasets/{sales_id}/charts", json={"chartKind": "line"}, headers=HEADERS,
        )
        body = resp.json()
        assert body["config"]["type"] == "line"
        assert body["config"]["xAxis"] == "date"
        assert body["config"]["yAxis"] == "sales"
        assert body["config"]["groupBy"] == "region"
        assert body["synthetic"] is False
        # pivoted: one row per date, one key per region
        assert len(body["rows"]) == 20
        assert body["rows"][0] == {"date": "2024-01-01", "North": 100.0}

    def test_chart_overrides(self, client, sales_id):
        resp = client.post(
            f"/api/datasets/{sales_id}/charts",
            json={"chartKind": "pie", "overrides": {"xAxis": "region", "title": "Share"}},
            headers=HEADERS,
        )
        body = resp.json()
        assert body["config"]["title"] == "Share"
        assert {s["name"] for s in body["rows"]} == {"North", "South", "East"}

    def test_synthetic_chart(self, client, id_only_dataset):
        body = {"headers": id_only_dataset.headers, "rows": id_only_dataset.rows}
        dataset_id = client.post("/datasets", json=body, headers=HEADERS).json()["dataset"]["datasetId"]
        resp = client.post(
            f"/api/datasets/{dataset_id}/charts", json={"chartKind": "bar"}, headers=HEADERS,
        )
        chart = resp.json()
        assert chart["synthetic"] is True
        assert chart["bucketed"] is True
        assert chart["config"]["syntheticFields"] == ["demo_bar_value"]

    def test_unknown_chart_kind(self, client, sales_id):
        resp = client.post(
            f"/api/datasets/{sales_id}/charts", json={"chartKind": "radar"}, headers=HEADERS,
        )
        assert resp.status_code == 422

    def test_reduce(self, client, sales_id):
        resp = client.post(
            f"/api/datasets/{sales_id}/reduce",
            json={"maxRows": 5, "samplingStrategy": "first", "fields": ["sales"]},
            headers=HEADERS,
        )
        body = resp.json()
        assert body["count"] == 5
        assert body["rows"][0] == {"sales": 100.0}


class TestLLMRoutes:
    """Suggestions and analysis with the LLM dependency replaced."""

    def test_suggestions_fallback(self, client, sales_id, fake_llm):
        main.app.dependency_overrides[get_llm] = lambda: fake_llm(exc=LLMError("offline"))
        body = client.get(f"/api/datasets/{sales_id}/suggestions", headers=HEADERS).json()
        assert [s["chartType"] for s in body["suggestions"]] == ["line", "bar", "pie", "line"]

    def test_suggestions_from_llm(self, client, sales_id, fake_llm):
        payload = {"suggestions": [{"chartType": "area", "xAxis": "date", "yAxis": "sales", "title": "t"}]}
        main.app.dependency_overrides[get_llm] = lambda: fake_llm(payload=payload)
        body = client.get(f"/api/datasets/{sales_id}/suggestions", headers=HEADERS).json()
        assert body["suggestions"] == [{
            "chartType": "area",
            "config": {"xAxis": "date", "yAxis": "sales", "groupBy": None, "title": "t"},
            "description": "",
        }]

    def test_analyze(self, client, sales_id, fake_llm):
        main.app.dependency_overrides[get_llm] = lambda: fake_llm(payload={"summary": "ok"})
        resp = client.post(
            f"/api/datasets/{sales_id}/analyze", json={"focusOn": "trends"}, headers=HEADERS,
        )
        body = resp.json()
        assert body["summary"] == "ok"
        assert body["source"] == "llm"

    def test_analyze_fallback(self, client, sales_id, fake_llm):
        main.app.dependency_overrides[get_llm] = lambda: fake_llm(exc=LLMError("offline"))
        body = client.post(f"/api/datasets/{sales_id}/analyze", json={}, headers=HEADERS).json()
        assert body["source"] == "fallback"
