"""
Tests for the fp_report CLI
"""

import json
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tools import fp_report
from fpgateway.app.services import hashing
from fpgateway.app.services.c14n import SerializationConfig, redacting_replacer
from fpgateway.app.services.hashing import generate_id


SIGNALS = {
    "userAgent": "Mozilla/5.0 (X11; Linux x86_64)",
    "platform": "Linux x86_64",
    "timezone": "Europe/Kiev",
    "confidenceScore": 0.72,
    "bot": {"isBot": False, "signals": []},
}

GEO = {
    "ipAddress": "192.0.2.10",
    "city": {"name": "Kyiv"},
    "country": {"isoCode": "UA", "name": "Ukraine"},
    "location": {"timeZone": "Europe/Kyiv"},
    "traits": {},
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("FINGERPRINT_ENV", "APP_ENV", "FINGERPRINT_LOG_LEVEL", "FINGERPRINT_MAX_DEPTH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_json(tmp_path):
    def write(name, content):
        path = tmp_path / name
        path.write_text(json.dumps(content), encoding="utf-8")
        return str(path)
    return write


class TestHashOnly:

    def test_prints_hash(self, write_json, capsys):
        path = write_json("signals.json", SIGNALS)
        assert fp_report.main([path, "--hash-only"]) == 0
        assert capsys.readouterr().out.strip() == generate_id(SIGNALS)

    def test_json_debug(self, write_json, capsys):
        path = write_json("signals.json", {"b": 2, "a": 1})
        assert fp_report.main([path, "--hash-only", "--json", "--debug"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["serialized"] == '{"a":"1.000","b":"2.000"}'
        assert output["stats"]["totalProperties"] == 2
        assert output["trace"]["summary"]["totalSteps"] == 3
        assert output["trace"]["steps"][0]["type"] == "numeric_round"

    def test_human_debug_prints_trace_summary(self, write_json, capsys):
        path = write_json("signals.json", {"a": 1.23456})
        assert fp_report.main([path, "--hash-only", "--debug"]) == 0

        out = capsys.readouterr().out
        assert out.splitlines()[0] == generate_id({"a": 1.23456})
        assert '{"a":"1.235"}' in out
        assert "=== Debug Session Summary ===" in out
        assert "numeric_round: 1" in out

    def test_lone_surrogate(self, write_json, capsys):
        path = write_json("signals.json", {"userAgent": "\ud800"})
        assert fp_report.main([path, "--hash-only", "--json", "--debug"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["hash"] == generate_id({"userAgent": "\ufffd"})
        assert output["serialized"] == '{"userAgent":"\ufffd"}'

    def test_redact(self, write_json, capsys):
        path = write_json("signals.json", SIGNALS)
        assert fp_report.main([path, "--hash-only", "--redact", "userAgent", "platform"]) == 0

        config = SerializationConfig(custom_replacer=redacting_replacer(["userAgent", "platform"]))
        assert capsys.readouterr().out.strip() == generate_id(SIGNALS, config)


class TestReport:

    def test_json_report_with_geolocation(self, write_json, capsys):
        signals = write_json("signals.json", SIGNALS)
        geo = write_json("geo.json", GEO)
        assert fp_report.main([signals, "--geo", geo, "--json"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["hash"] == generate_id(SIGNALS)
        assert report["geolocation"]["vpnStatus"]["status"] is False
        assert "combined" in report["confidenceAssessment"]

    def test_explicit_combined_score(self, write_json, capsys):
        signals = write_json("signals.json", SIGNALS)
        assert fp_report.main([signals, "--combined-score", "0.9", "--json"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["confidenceAssessment"]["combined"]["level"] == "high"

    def test_non_finite_numbers(self, write_json, capsys):
        path = write_json("signals.json", dict(SIGNALS, audio=float("nan")))
        assert fp_report.main([path, "--json"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["systemInfo"]["audio"] == "NaN"

    def test_human_report(self, write_json, capsys):
        signals = write_json("signals.json", SIGNALS)
        geo = write_json("geo.json", GEO)
        assert fp_report.main([signals, "--geo", geo]) == 0

        out = capsys.readouterr().out
        assert "FINGERPRINT REPORT" in out
        assert "SYSTEM CONFIDENCE: Medium-High Confidence" in out
        assert "City: Kyiv" in out


class TestCompare:

    def test_matching_documents(self, write_json, capsys):
        first = write_json("a.json", SIGNALS)
        second = write_json("b.json", dict(SIGNALS, platform=" Linux   x86_64 "))
        assert fp_report.main([first, "--compare", second]) == 0
        assert "Hashes Match: YES" in capsys.readouterr().out

    def test_differing_documents(self, write_json, capsys):
        first = write_json("a.json", SIGNALS)
        second = write_json("b.json", dict(SIGNALS, platform="Win32"))
        assert fp_report.main([first, "--compare", second, "--json"]) == 1

        output = json.loads(capsys.readouterr().out)
        assert output["hashesMatch"] is False


class TestErrors:

    def test_missing_file(self, tmp_path, capsys):
        assert fp_report.main([str(tmp_path / "nope.json")]) == 10
        assert "File not found" in capsys.readouterr().err

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        assert fp_report.main([str(path)]) == 10

    def test_not_an_object(self, write_json):
        assert fp_report.main([write_json("list.json", [1, 2])]) == 10

    def test_combined_score_out_of_range(self, write_json):
        assert fp_report.main([write_json("s.json", SIGNALS), "--combined-score", "1.5"]) == 10

    def test_invalid_settings(self, write_json, monkeypatch):
        monkeypatch.setenv("FINGERPRINT_MAX_DEPTH", "deep")
        assert fp_report.main([write_json("s.json", SIGNALS), "--hash-only"]) == 20

    def test_hash_configuration_error(self, write_json, monkeypatch):
        monkeypatch.setattr(hashing, "HASH_ALGORITHM", "no-such-digest")
        assert fp_report.main([write_json("s.json", SIGNALS), "--hash-only"]) == 20


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
