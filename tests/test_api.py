"""
Tests for the HTTP endpoints
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fastapi.testclient import TestClient

from fpgateway.app.config import Settings, get_settings
from fpgateway.app.main import app
from fpgateway.app.services import hashing
from fpgateway.app.services.c14n import SerializationConfig, redacting_replacer
from fpgateway.app.services.confidence import calculate_combined_confidence
from fpgateway.app.services.hashing import generate_id


JSON_HEADERS = {"content-type": "application/json"}


def nested(levels):
    doc = current = {}
    for _ in range(levels):
        current["next"] = {}
        current = current["next"]
    return doc


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def system_info():
    return {
        "userAgent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
        "platform": "Win32",
        "timezone": "America/New_York",
        "languages": ["en-US", "en"],
        "confidenceScore": 0.85,
        "bot": {"isBot": False, "signals": [], "confidence": 0},
    }


@pytest.fixture
def geolocation():
    return {
        "ipAddress": "203.0.113.7",
        "city": {"name": "Los Angeles"},
        "country": {"isoCode": "US", "name": "United States"},
        "location": {"timeZone": "America/Los_Angeles"},
        "traits": {"isAnonymousVpn": True},
    }


class TestRoot:

    def test_status(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "Fingerprint Gateway"
        assert response.json()["status"] == "operational"


class TestFingerprintReport:
    """Test suite for POST /v1/fingerprint."""

    def test_system_only(self, client, system_info):
        response = client.post("/v1/fingerprint", json={"systemInfo": system_info})

        assert response.status_code == 200
        report = response.json()
        assert report["geolocation"] is None
        assert list(report["confidenceAssessment"]) == ["system"]
        assert report["confidenceAssessment"]["system"]["level"] == "high"
        assert report["systemInfo"] == system_info
        assert report["hash"] == generate_id(system_info)

    def test_combined_derived_from_geolocation(self, client, system_info, geolocation):
        response = client.post("/v1/fingerprint", json={
            "systemInfo": system_info,
            "geolocation": geolocation,
        })

        report = response.json()
        combined = report["confidenceAssessment"]["combined"]
        expected = calculate_combined_confidence(system_info, geolocation)
        assert combined["score"] == pytest.approx(expected)
        assert combined["factors"] == ["VPN detected"]
        assert report["geolocation"]["vpnStatus"] == {"status": True, "probability": 0.75}
        assert report["geolocation"]["ip"] == "203.0.113.7"

    def test_explicit_combined_score(self, client, system_info):
        response = client.post("/v1/fingerprint", json={
            "systemInfo": system_info,
            "combinedScore": 0.3,
        })
        combined = response.json()["confidenceAssessment"]["combined"]
        assert combined["score"] == 0.3
        assert combined["level"] == "low"

    def test_redact_keys(self, client, system_info):
        response = client.post("/v1/fingerprint", json={
            "systemInfo": system_info,
            "options": {"redactKeys": ["userAgent"]},
        })
        config = SerializationConfig(custom_replacer=redacting_replacer(["userAgent"]))
        assert response.json()["hash"] == generate_id(system_info, config)

    def test_missing_system_info(self, client):
        response = client.post("/v1/fingerprint", json={"geolocation": {}})
        assert response.status_code == 422

    def test_combined_score_out_of_range(self, client, system_info):
        response = client.post("/v1/fingerprint", json={"systemInfo": system_info, "combinedScore": 2})
        assert response.status_code == 422

    def test_non_finite_numbers_echoed_as_text(self, client):
        body = '{"systemInfo": {"audio": NaN, "gain": -Infinity, "confidenceScore": 0.9}}'
        response = client.post("/v1/fingerprint", content=body, headers=JSON_HEADERS)

        assert response.status_code == 200
        report = response.json()
        assert report["systemInfo"]["audio"] == "NaN"
        assert report["systemInfo"]["gain"] == "-Infinity"
        assert report["hash"] == generate_id({"audio": float("nan"), "gain": float("-inf"), "confidenceScore": 0.9})

    def test_lone_surrogate_in_body(self, client):
        body = '{"systemInfo": {"userAgent": "\\ud800", "confidenceScore": 0.9}}'
        response = client.post("/v1/fingerprint", content=body, headers=JSON_HEADERS)

        assert response.status_code == 200
        report = response.json()
        assert report["systemInfo"]["userAgent"] == "\ufffd"
        assert report["hash"] == generate_id({"userAgent": "\ufffd", "confidenceScore": 0.9})

    def test_deep_body(self, client):
        response = client.post("/v1/fingerprint", json={"systemInfo": nested(300)})
        assert response.status_code == 200
        assert "[MAX_DEPTH_EXCEEDED]" in response.text


class TestHashEndpoint:
    """Test suite for POST /v1/fingerprint/hash."""

    def test_hash(self, client, system_info):
        response = client.post("/v1/fingerprint/hash", json={"systemInfo": system_info})
        assert response.status_code == 200
        assert response.json() == {"hash": generate_id(system_info)}

    def test_debug(self, client):
        response = client.post("/v1/fingerprint/hash", json={"systemInfo": {"b": 2, "a": 1}, "debug": True})
        data = response.json()
        assert data["serialized"] == '{"a":"1.000","b":"2.000"}'
        assert data["stats"]["totalProperties"] == 2

    def test_options(self, client):
        response = client.post("/v1/fingerprint/hash", json={
            "systemInfo": {"x": [2, 1]},
            "options": {"sortArrays": False},
            "debug": True,
        })
        assert response.json()["serialized"] == '{"x":["2.000","1.000"]}'

    def test_deployment_depth_limit(self, client):
        app.dependency_overrides[get_settings] = lambda: Settings(max_depth=1)
        response = client.post("/v1/fingerprint/hash", json={
            "systemInfo": {"a": {"b": {"c": 1}}},
            "debug": True,
        })
        assert response.json()["serialized"] == '{"a":{"b":"[MAX_DEPTH_EXCEEDED]"}}'

    def test_hash_configuration_error(self, client, monkeypatch):
        monkeypatch.setattr(hashing, "HASH_ALGORITHM", "no-such-digest")
        response = client.post("/v1/fingerprint/hash", json={"systemInfo": {}})
        assert response.status_code == 500
        assert response.json()["error"]["code"] == "CONFIG_INVALID"

    def test_negative_depth_rejected(self, client):
        response = client.post("/v1/fingerprint/hash", json={
            "systemInfo": {},
            "options": {"maxDepth": -1},
        })
        assert response.status_code == 422

    def test_depth_above_limit_rejected(self, client):
        response = client.post("/v1/fingerprint/hash", json={
            "systemInfo": {},
            "options": {"maxDepth": 1000},
        })
        assert response.status_code == 422

    def test_depth_at_limit_on_deep_body(self, client):
        response = client.post("/v1/fingerprint/hash", json={
            "systemInfo": nested(400),
            "options": {"maxDepth": 100},
            "debug": True,
        })
        assert response.status_code == 200
        assert "[MAX_DEPTH_EXCEEDED]" in response.json()["serialized"]

    def test_debug_trace(self, client):
        response = client.post("/v1/fingerprint/hash", json={"systemInfo": {"a": 1.23456}, "debug": True})
        trace = response.json()["trace"]
        assert trace["summary"]["totalSteps"] == 2
        assert trace["steps"][0]["property"] == "a"
        assert trace["steps"][0]["after"] == "1.235"

    def test_debug_with_non_finite_number(self, client):
        body = '{"systemInfo": {"audio": Infinity}, "debug": true}'
        response = client.post("/v1/fingerprint/hash", content=body, headers=JSON_HEADERS)
        assert response.status_code == 200
        assert response.json()["serialized"] == '{"audio":"Infinity"}'
        assert response.json()["trace"]["steps"][0]["before"] == "Infinity"


class TestComparisonEndpoints:
    """Test suite for the comparison endpoints."""

    def test_compare_documents(self, client, system_info):
        other = dict(system_info, platform="MacIntel")
        response = client.post("/v1/fingerprint/compare", json={"first": system_info, "second": other})

        data = response.json()
        assert response.status_code == 200
        assert data["hashesMatch"] is False
        assert data["differences"][0]["property"] == "platform"
        assert data["differences"][0]["severity"] == "critical"

    def test_compare_ignored_properties(self, client, system_info):
        other = dict(system_info, platform="MacIntel")
        response = client.post("/v1/fingerprint/compare", json={
            "first": system_info,
            "second": other,
            "ignoredProperties": ["platform"],
        })
        assert response.json()["differences"] == []

    def test_compare_non_finite_values(self, client):
        body = '{"first": {"audio": NaN}, "second": {"audio": 1.5}}'
        response = client.post("/v1/fingerprint/compare", content=body, headers=JSON_HEADERS)
        assert response.status_code == 200
        assert response.json()["differences"][0]["value1"] == "NaN"

    def test_serialization_compare(self, client):
        response = client.post("/v1/serialization/compare", json={"value": {"x": [2, 1]}})
        data = response.json()
        assert data["comparison"]["identical"] is False
        assert data["legacy"]["serialized"] == '{"x":["2.000","1.000"]}'
        assert data["enhanced"]["serializedText"] == '{"x":["1.000","2.000"]}'


class TestVpnStatusEndpoint:

    def test_match(self, client):
        response = client.post("/v1/vpn-status", json={"geoip": "UTC", "localtime": "UTC"})
        assert response.json() == {"status": False, "probability": 0.2}

    def test_missing(self, client):
        response = client.post("/v1/vpn-status", json={"geoip": "UTC"})
        assert response.json() == {"status": False, "probability": 0.5}


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
