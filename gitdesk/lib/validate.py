"""
Schema validation for gitdesk settings.

Settings files are checked against JSON Schemas shipped in
gitdesk/schemas before any value is used.
"""

import json
from functools import lru_cache
from pathlib import Path

import jsonschema

from gitdesk.lib.errors import ValidationFailure


def _get_schemas_dir() -> Path:
    """Get path to schemas directory."""
    return Path(__file__).parent.parent / "schemas"


@lru_cache(maxsize=None)
def load_schema(schema_name: str) -> dict:
    """Load schema by name, with caching."""
    schema_path = _get_schemas_dir() / f"{schema_name}.schema.json"
    if not schema_path.exists():
        raise ValidationFailure(schema_name, f"Schema file not found: {schema_path}")
    return json.loads(schema_path.read_text())


def validate(data: dict, schema_name: str) -> None:
    """
    Validate data against named schema.

    Args:
        data: Dictionary to validate
        schema_name: Schema name (e.g., "settings")

    Raises:
        ValidationFailure: If validation fails
    """
    schema = load_schema(schema_name)

    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        path = ".".join(str(p) for p in e.absolute_path) if e.absolute_path else "(root)"
        raise ValidationFailure(f"{schema_name}:{path}", e.message) from None
