"""Practice report schema validation."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import jsonschema

from .exceptions import ValidationError

SCHEMA_PATH = Path(__file__).parent / "schemas" / "practice_report.schema.json"


def load_schema() -> dict:
    try:
        with open(SCHEMA_PATH, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ValidationError(f"Schema file not found: {SCHEMA_PATH}") from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid schema JSON: {e}") from e


def validate_report(data: dict) -> bool:
    """
    Validate an in-memory report against the schema.

    Raises:
        ValidationError: If validation fails
    """
    try:
        jsonschema.validate(instance=data, schema=load_schema())
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ValidationError(f"Schema validation failed at {location}: {e.message}") from e
    return True


def validate_report_json(report_path: str | Path) -> bool:
    """
    Validate a report JSON file against the schema.

    Args:
        report_path: Path to report.json

    Returns:
        True if valid

    Raises:
        ValidationError: If the file is missing, not JSON, or fails validation
    """
    report_path = Path(report_path)
    if not report_path.exists():
        raise ValidationError(f"File not found: {report_path}")

    try:
        with open(report_path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid report JSON: {e}") from e

    return validate_report(data)


def main() -> None:
    """CLI entrypoint for validation."""
    if len(sys.argv) != 2:
        print("Usage: python -m pitchcoach.validate <report.json>", file=sys.stderr)
        sys.exit(1)

    try:
        validate_report_json(sys.argv[1])
        print("Valid")
        sys.exit(0)
    except ValidationError as e:
        print(f"Invalid: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
