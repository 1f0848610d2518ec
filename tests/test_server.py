"""
Tests for the HTTP API.

Copyright (c) 2024 Cleansheet LLC
License: CC BY 4.0
"""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from fhir_datatypes.server import app


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client: TestClient):
        """Test health check."""
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["fhir_version"] == "4.0.1"
        assert data["type_count"] > 0


class TestTypes:
    """Tests for the type endpoints."""

    def test_list_types(self, client: TestClient):
        """Test listing registry types."""
        response = client.get("/api/v1/types")

        names = {t["name"]: t for t in response.json()}
        assert "Extension" in names
        assert names["Extension"]["choice_elements"] == ["value"]
        assert "Dosage.DoseAndRate" not in names

    def test_list_types_with_backbone(self, client: TestClient):
        """Test listing includes backbone types on request."""
        response = client.get("/api/v1/types", params={"include_backbone": True})

        assert "Dosage.DoseAndRate" in {t["name"] for t in response.json()}

    def test_describe_type(self, client: TestClient):
        """Test field metadata for a type."""
        response = client.get("/api/v1/types/Population")

        assert response.status_code == 200
        fields = {f["fieldName"]: f for f in response.json()["fields"]}
        assert fields["age"]["isChoice"] is True
        assert fields["age"]["allowedTypes"] == ["CodeableConcept", "Range"]
        assert fields["extension"]["max"] == "*"

    def test_describe_backbone_parent(self, client: TestClient):
        """Test backbone types are listed on their parent."""
        response = client.get("/api/v1/types/Timing")

        assert response.json()["backbone_types"] == ["Timing.Repeat"]

    def test_describe_unknown(self, client: TestClient):
        """Test 404 for an undefined type."""
        assert client.get("/api/v1/types/Widget").status_code == 404


class TestDecode:
    """Tests for the decode endpoint."""

    def test_decode(self, client: TestClient, sample_population: dict[str, Any]):
        """Test decoding returns the normalized document."""
        response = client.post("/api/v1/decode/Population", json=sample_population)

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "Population"
        assert data["document"] == sample_population

    def test_decode_conflict(self, client: TestClient):
        """Test a choice conflict answers 422 with its path."""
        response = client.post(
            "/api/v1/decode/Extension",
            json={"url": "u", "valueString": "a", "valueBoolean": True},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "choice-conflict"
        assert response.json()["path"] == "Extension.value[x]"

    def test_decode_required_missing(self, client: TestClient):
        """Test a missing required element answers 422."""
        response = client.post("/api/v1/decode/Signature", json={"when": "2024-01-15T10:30:00Z"})

        assert response.status_code == 422
        assert response.json()["path"] == "Signature.type"

    def test_decode_lenient(self, client: TestClient):
        """Test lenient decoding reports preserved unknown elements."""
        response = client.post(
            "/api/v1/decode/Period",
            params={"lenient": True},
            json={"start": "2024", "note": "x"},
        )

        assert response.status_code == 200
        assert response.json()["unknown_elements"] == ["note"]
        assert response.json()["document"] == {"start": "2024", "note": "x"}

    def test_decode_resource_type(self, client: TestClient):
        """Test a matching resourceType is accepted and dropped."""
        response = client.post(
            "/api/v1/decode/Period",
            json={"resourceType": "Period", "start": "2024"},
        )

        assert response.status_code == 200
        assert response.json()["document"] == {"start": "2024"}

    def test_decode_resource_type_mismatch(self, client: TestClient):
        """Test a resourceType naming another type answers 422."""
        response = client.post(
            "/api/v1/decode/Period",
            json={"resourceType": "Quantity", "start": "2024"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "model-error"
        assert "Quantity" in response.json()["message"]

    def test_decode_unknown_type(self, client: TestClient):
        """Test 404 for an undefined type."""
        assert client.post("/api/v1/decode/Widget", json={}).status_code == 404


class TestValidate:
    """Tests for the validate endpoint."""

    def test_validate_valid(self, client: TestClient, sample_signature: dict[str, Any]):
        """Test a valid document."""
        response = client.post("/api/v1/validate/Signature", json=sample_signature)

        assert response.status_code == 200
        assert response.json()["valid"] is True

    def test_validate_collects_errors(self, client: TestClient):
        """Test primitive errors are reported with their locations."""
        response = client.post("/api/v1/validate/Period", json={"start": "yesterday", "end": "tomorrow"})

        data = response.json()
        assert data["valid"] is False
        assert [e["path"] for e in data["errors"]] == ["Period.start", "Period.end"]

    def test_validate_decode_error(self, client: TestClient):
        """Test decode errors are reported in the body, not as 422."""
        response = client.post(
            "/api/v1/validate/Extension",
            json={"url": "u", "valueFooBar": 1},
        )

        assert response.status_code == 200
        assert response.json()["errors"][0]["code"] == "unknown-variant"
