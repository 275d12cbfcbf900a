"""Integration tests for API endpoints."""

import pytest
from fastapi.testclient import TestClient

from statportal.core.access import Role
from statportal.database.connection import get_db
from statportal.database.models import Category
from statportal.main import create_app
from statportal.security.auth import create_token

SECRET = "integration-test-secret"


@pytest.fixture
def api_settings():
    return {
        "DEPLOYMENT_MODE": "test",
        "LOG_LEVEL": "INFO",
        "ALLOWED_ORIGINS": "",
        "JWT_SECRET_KEY": SECRET,
        "JWT_ALGORITHM": "HS256",
        "MIN_DATA_YEAR": 2000,
        "MAX_YEARS_AHEAD": 5,
        "BULK_IMPORT_MAX_ROWS": 100,
        "BULK_IMPORT_SUCCESS_POLICY": "lenient",
    }


@pytest.fixture
def test_client(api_settings, session_factory, indicators):
    """Create test client for API testing against the in-memory database."""
    app = create_app(api_settings)
    app.state.session_factory = session_factory

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def auth(role, user_id=None):
    token = create_token(user_id or f"user-{role}", role, SECRET)
    return {"Authorization": f"Bearer {token}"}


SUPER = auth(Role.SUPERADMIN.value)
EKONOMI = auth(Role.ADMIN_EKONOMI.value)
DEMOGRAFI = auth(Role.ADMIN_DEMOGRAFI.value)
VIEWER = auth(Role.VIEWER.value)


def _create_monthly(client, indicators, month=1, value=100):
    return client.post("/api/admin/indicator-data", headers=EKONOMI, json={
        "indicator_id": indicators["monthly"].id,
        "year": 2024,
        "period_month": month,
        "value": value,
    })


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health_endpoint(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert "X-Request-ID" in response.headers


class TestAuthentication:
    """Bearer token handling."""

    def test_missing_token(self, test_client, indicators):
        response = test_client.get("/api/admin/bulk-import", params={"action": "template"})

        assert response.status_code == 401
        assert response.json()["error"]["error_code"] == "UNAUTHENTICATED"
        assert response.json()["error"]["request_id"] == response.headers["X-Request-ID"]

    def test_bad_signature(self, test_client):
        token = create_token("u1", Role.SUPERADMIN.value, "some-other-secret")
        response = test_client.get(
            "/api/admin/bulk-import",
            params={"action": "template"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    def test_unknown_role_is_forbidden(self, test_client, indicators):
        response = test_client.post("/api/admin/indicator-data", headers=auth("intern"), json={
            "indicator_id": indicators["yearly"].id, "year": 2024,
        })
        assert response.status_code == 403
        assert response.json()["error"]["error_code"] == "ACCESS_DENIED"


class TestIndicatorDataEndpoints:
    """Single-record lifecycle over HTTP."""

    def test_create_and_duplicate(self, test_client, indicators):
        response = _create_monthly(test_client, indicators)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["revision_number"] == 1
        assert body["data"]["status"] == "draft"
        assert body["data"]["period_label"] == "Jan 2024"
        assert body["data"]["category"] == Category.EKONOMI.value

        duplicate = _create_monthly(test_client, indicators)
        assert duplicate.status_code == 409
        error = duplicate.json()["error"]
        assert error["error_code"] == "DUPLICATE_PERIOD"
        assert error["message"] == "Data for Jan 2024 already exists for this indicator"

    def test_create_validation_errors(self, test_client, indicators):
        missing = test_client.post("/api/admin/indicator-data", headers=SUPER, json={"year": 2024})
        assert missing.status_code == 400
        assert missing.json()["error"]["error_code"] == "VALIDATION_FAILED"

        bad_shape = test_client.post("/api/admin/indicator-data", headers=SUPER, json={
            "indicator_id": indicators["yearly"].id, "year": 2024, "period_month": 4,
        })
        assert bad_shape.status_code == 400
        assert bad_shape.json()["error"]["details"]["field_name"] == "period_month"

    def test_create_for_inactive_indicator(self, test_client, indicators):
        response = test_client.post("/api/admin/indicator-data", headers=SUPER, json={
            "indicator_id": indicators["inactive"].id, "year": 2024,
        })
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Indicator not found or inactive"

    def test_create_in_foreign_category(self, test_client, indicators):
        response = test_client.post("/api/admin/indicator-data", headers=DEMOGRAFI, json={
            "indicator_id": indicators["monthly"].id, "year": 2024, "period_month": 1,
        })
        assert response.status_code == 403

    def test_update_bumps_revision(self, test_client, indicators):
        data_id = _create_monthly(test_client, indicators).json()["data"]["id"]

        response = test_client.put(f"/api/admin/indicator-data/{data_id}", headers=EKONOMI,
                                   json={"value": 105})

        assert response.status_code == 200
        assert response.json()["data"]["value"] == 105.0
        assert response.json()["data"]["revision_number"] == 2

    @pytest.mark.parametrize("body", [{}, {"revision_number": 7}])
    def test_update_rejects_bad_patch(self, test_client, indicators, body):
        data_id = _create_monthly(test_client, indicators).json()["data"]["id"]

        response = test_client.put(f"/api/admin/indicator-data/{data_id}", headers=EKONOMI, json=body)
        assert response.status_code == 400

    def test_verify_then_reverify(self, test_client, indicators):
        data_id = _create_monthly(test_client, indicators).json()["data"]["id"]
        url = f"/api/admin/indicator-data/{data_id}/verify"

        first = test_client.post(url, headers=EKONOMI)
        assert first.status_code == 200
        assert first.json()["data"]["status"] == "final"
        assert first.json()["data"]["verified_by"] == "user-admin_ekonomi"

        second = test_client.post(url, headers=EKONOMI)
        assert second.status_code == 400
        assert second.json()["error"]["error_code"] == "ALREADY_VERIFIED"

        viewer = test_client.post(url, headers=VIEWER)
        assert viewer.status_code == 403

    def test_delete_and_history(self, test_client, indicators):
        data_id = _create_monthly(test_client, indicators).json()["data"]["id"]
        test_client.put(f"/api/admin/indicator-data/{data_id}", headers=EKONOMI, json={"notes": "checked"})

        deleted = test_client.delete(f"/api/admin/indicator-data/{data_id}", headers=EKONOMI)
        assert deleted.status_code == 200

        gone = test_client.get(f"/api/admin/indicator-data/{data_id}", headers=VIEWER)
        assert gone.status_code == 404
        assert gone.json()["error"]["error_code"] == "DATA_NOT_FOUND"

        history = test_client.get(f"/api/admin/indicator-data/{data_id}/history", headers=VIEWER)
        assert history.status_code == 200
        entries = history.json()["data"]
        assert [e["action"] for e in entries] == ["CREATE", "UPDATE", "DELETE"]
        assert entries[-1]["old_values"]["notes"] == "checked"

    def test_read_is_category_scoped(self, test_client, indicators):
        data_id = _create_monthly(test_client, indicators).json()["data"]["id"]

        assert test_client.get(f"/api/admin/indicator-data/{data_id}", headers=VIEWER).status_code == 200
        assert test_client.get(f"/api/admin/indicator-data/{data_id}", headers=DEMOGRAFI).status_code == 403

    def test_non_json_body_rejected(self, test_client):
        response = test_client.post(
            "/api/admin/indicator-data",
            headers={**SUPER, "Content-Type": "text/plain"},
            content="year=2024",
        )
        assert response.status_code == 415


class TestBulkImportEndpoints:
    """Batch import over HTTP."""

    def test_successful_batch(self, test_client, indicators):
        rows = [
            {"indicator_id": indicators["monthly"].id, "year": 2024, "period_month": m, "value": m}
            for m in range(1, 5)
        ]

        response = test_client.post("/api/admin/bulk-import", headers=EKONOMI, json={"data": rows})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["imported_count"] == 4
        assert body["errors"] == []

    def test_mostly_failing_batch_is_multi_status(self, test_client, indicators):
        rows = [
            {"indicator_id": indicators["monthly"].id, "year": 2024, "period_month": 1},
            {"indicator_id": indicators["yearly"].id, "year": 2024},
            {"indicator_id": indicators["lingkungan"].id, "year": 2024},
        ]

        response = test_client.post("/api/admin/bulk-import", headers=EKONOMI,
                                    json={"data": rows, "operation": "upsert"})

        assert response.status_code == 207
        body = response.json()
        assert body["success"] is False
        assert body["imported_count"] == 1
        assert [e["row"] for e in body["errors"]] == [2, 3]

    def test_malformed_cell_stays_a_row_error(self, test_client, indicators):
        rows = [
            {"indicator_id": indicators["monthly"].id, "year": 2024, "period_month": 1},
            {"indicator_id": indicators["monthly"].id, "year": 2024, "period_month": 2},
            {"indicator_id": indicators["monthly"].id, "year": "--2024", "period_month": 3},
            {"indicator_id": indicators["monthly"].id, "year": 2024, "period_month": 4, "value": 10 ** 400},
        ]

        response = test_client.post("/api/admin/bulk-import", headers=EKONOMI, json={"data": rows})

        assert response.status_code == 207
        body = response.json()
        assert body["imported_count"] == 2
        assert [e["row"] for e in body["errors"]] == [3, 4]

    def test_batch_history_is_fenced(self, test_client, indicators):
        test_client.post("/api/admin/bulk-import", headers=SUPER, json={
            "data": [{"indicator_id": indicators["yearly"].id, "year": 2024}],
        })

        url = "/api/admin/indicator-data/bulk_import/history"
        assert test_client.get(url, headers=DEMOGRAFI).status_code == 403
        assert len(test_client.get(url, headers=SUPER).json()["data"]) == 1

    def test_empty_batch(self, test_client):
        response = test_client.post("/api/admin/bulk-import", headers=SUPER, json={"data": []})
        assert response.status_code == 400

    def test_foreign_category_filter(self, test_client, indicators):
        response = test_client.post("/api/admin/bulk-import", headers=EKONOMI, json={
            "data": [{"indicator_id": indicators["yearly"].id, "year": 2024}],
            "category": Category.DEMOGRAFI.value,
        })
        assert response.status_code == 403

    def test_invalid_operation(self, test_client, indicators):
        response = test_client.post("/api/admin/bulk-import", headers=SUPER, json={
            "data": [{"indicator_id": indicators["yearly"].id, "year": 2024}],
            "operation": "replace",
        })
        assert response.status_code == 400

    def test_template(self, test_client):
        response = test_client.get("/api/admin/bulk-import", headers=VIEWER, params={"action": "template"})

        assert response.status_code == 200
        assert response.json()["fields"][0]["name"] == "indicator_id"
        assert response.json()["sample_data"]

    def test_indicators_for_role(self, test_client, indicators):
        response = test_client.get("/api/admin/bulk-import", headers=EKONOMI, params={"action": "indicators"})

        assert response.status_code == 200
        codes = [i["code"] for i in response.json()["indicators"]]
        assert codes == ["EKO-001", "EKO-002"]

    def test_unknown_action(self, test_client):
        response = test_client.get("/api/admin/bulk-import", headers=SUPER, params={"action": "export"})
        assert response.status_code == 400
