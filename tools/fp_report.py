#!/usr/bin/env python3
"""
fp_report.py - Offline fingerprint report CLI

Reads a collected signal document (and optionally its geolocation) from JSON
files and prints:
1. The content hash of the document
2. The system and combined confidence assessments
3. A difference report against a second document (--compare)

Exit codes:
  0  - Report produced (compare mode: hashes match)
  1  - Compare mode: hashes differ
  10 - Input file missing or not a JSON object
  20 - Hash or settings configuration error
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fpgateway.app.config import get_settings, setup_logging
from fpgateway.app.errors import FingerprintError
from fpgateway.app.services.c14n import SerializationConfig
from fpgateway.app.services.comparison import HashComparator
from fpgateway.app.services.confidence import calculate_combined_confidence
from fpgateway.app.services.hashing import generate_id_with_debug
from fpgateway.app.services.normalization import json_safe, scrub_surrogates
from fpgateway.app.services.report import assemble

logger = logging.getLogger("fp_report")

EXIT_OK = 0
EXIT_HASH_MISMATCH = 1
EXIT_BAD_INPUT = 10
EXIT_CONFIG_ERROR = 20


class InputError(Exception):
    """An input file could not be used."""


def load_document(path: str) -> Dict[str, Any]:
    """Load a JSON object from a file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except FileNotFoundError:
        raise InputError(f"File not found: {path}")
    except json.JSONDecodeError as e:
        raise InputError(f"Invalid JSON in {path}: {e}")

    if not isinstance(document, dict):
        raise InputError(f"Expected a JSON object in {path}")
    return document


def build_config(max_depth: int, redact: Optional[List[str]] = None) -> SerializationConfig:
    return SerializationConfig.from_options({"maxDepth": max_depth, "redactKeys": redact or []})


def print_human_summary(report: Dict[str, Any]):
    """Print human-readable report summary."""
    print("\n" + "=" * 70)
    print("FINGERPRINT REPORT")
    print("=" * 70)

    print(f"\nHash: {report['hash']}")

    assessment = report["confidenceAssessment"]
    for name in ("system", "combined"):
        if name not in assessment:
            continue
        entry = assessment[name]
        print("\n" + "-" * 70)
        print(f"{name.upper()} CONFIDENCE: {entry['rating']} ({entry['score']:.2f}, {entry['level']})")
        print("-" * 70)
        print(entry["description"])
        print(entry["reliability"])
        print("\nFactors:")
        for factor in entry["factors"]:
            print(f"  • {factor}")

    geolocation = report.get("geolocation")
    if geolocation is not None:
        vpn = geolocation["vpnStatus"]
        print("\n" + "-" * 70)
        print("GEOLOCATION:")
        print("-" * 70)
        print(f"IP: {geolocation['ip'] or 'N/A'}")
        print(f"City: {geolocation['city'] or 'N/A'}")
        print(f"Country: {geolocation['country'].get('name') or 'N/A'}")
        icon = "✗" if vpn["status"] else "✓"
        print(f"{icon} Timezone consistency (VPN probability {vpn['probability']:.2f})")

    print("=" * 70 + "\n")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Compute fingerprint hashes and confidence reports offline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0  - Report produced (compare mode: hashes match)
  1  - Compare mode: hashes differ
  10 - Input file missing or not a JSON object
  20 - Hash or settings configuration error

Examples:
  # Full report with geolocation
  ./fp_report.py signals.json --geo geo.json

  # Hash only, with canonical text
  ./fp_report.py signals.json --hash-only --debug

  # Explain why two captures hash differently
  ./fp_report.py signals.json --compare other.json
        """
    )

    parser.add_argument("signals_file", help="Path to signal document JSON file")
    parser.add_argument("--geo", help="Path to geolocation JSON file")
    parser.add_argument("--combined-score", type=float,
                        help="Combined confidence score in [0, 1] (derived from --geo if omitted)")
    parser.add_argument("--compare", metavar="OTHER",
                        help="Compare against a second signal document")
    parser.add_argument("--hash-only", action="store_true",
                        help="Print only the content hash")
    parser.add_argument("--debug", action="store_true",
                        help="Debug logging; with --hash-only also print canonical text and the normalization trace")
    parser.add_argument("--json", action="store_true",
                        help="Output results as JSON instead of human-readable")
    parser.add_argument("--redact", nargs="+", metavar="KEY", default=[],
                        help="Property names replaced by [REDACTED] before hashing")

    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except FingerprintError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging("DEBUG" if args.debug else settings.log_level)
    config = build_config(settings.max_depth, args.redact)

    if args.combined_score is not None and not 0 <= args.combined_score <= 1:
        print("Error: --combined-score must be between 0 and 1", file=sys.stderr)
        return EXIT_BAD_INPUT

    try:
        signals = load_document(args.signals_file)
        geolocation = load_document(args.geo) if args.geo else None
        other = load_document(args.compare) if args.compare else None
    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    try:
        if other is not None:
            return run_compare(signals, other, config, args.json)
        if args.hash_only:
            return run_hash(signals, config, args.json, args.debug)
        return run_report(signals, geolocation, args.combined_score, config, args.json)
    except FingerprintError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


def run_hash(signals: Dict[str, Any], config: SerializationConfig, as_json: bool, debug: bool) -> int:
    result = generate_id_with_debug(signals, config)
    serialization = result.serialization_result

    if as_json:
        output = {"hash": result.hash}
        if debug:
            output["serialized"] = serialization.serialized_text
            output["stats"] = serialization.stats.as_dict()
            output["trace"] = result.debug_session.as_dict()
        print_json(output)
    else:
        print(result.hash)
        if debug:
            print(scrub_surrogates(serialization.serialized_text))
            for name, value in serialization.stats.as_dict().items():
                print(f"  {name}: {value}")
            print(scrub_surrogates(result.debug_session.create_summary_report()))
    return EXIT_OK


def run_report(
    signals: Dict[str, Any],
    geolocation: Optional[Dict[str, Any]],
    combined_score: Optional[float],
    config: SerializationConfig,
    as_json: bool,
) -> int:
    if combined_score is None and geolocation is not None:
        combined_score = calculate_combined_confidence(signals, geolocation)

    report = json_safe(assemble(geolocation, signals, combined_score, config))
    if as_json:
        print_json(report)
    else:
        print_human_summary(report)
    return EXIT_OK


def run_compare(signals: Dict[str, Any], other: Dict[str, Any], config: SerializationConfig, as_json: bool) -> int:
    comparator = HashComparator()
    comparison = comparator.compare(signals, other, config)

    if as_json:
        print_json(comparison.as_dict())
    else:
        print(scrub_surrogates(comparator.create_difference_report(comparison)))

    return EXIT_OK if comparison.hashes_match else EXIT_HASH_MISMATCH


def print_json(data: Any):
    print(json.dumps(json_safe(data), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    sys.exit(main())
