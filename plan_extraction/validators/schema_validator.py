from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator, ValidationError
from jsonschema.exceptions import best_match

RESULT_SCHEMA = "extraction_result.schema.json"


@lru_cache(maxsize=None)
def _read_schema(schema_path: Path) -> dict[str, Any]:
    return json.loads(schema_path.read_text(encoding="utf-8"))


class SchemaValidator:
    def __init__(self, schema_dir: Path | None = None) -> None:
        self.schema_dir = schema_dir or Path(__file__).resolve().parents[1] / "schemas" / "1.0.0"

    def _validator(self, schema_name: str) -> Draft202012Validator:
        return Draft202012Validator(_read_schema(self.schema_dir / schema_name))

    def validate(self, payload: dict[str, Any], schema_name: str = RESULT_SCHEMA) -> list[str]:
        errors = sorted(self._validator(schema_name).iter_errors(payload), key=lambda e: "/".join(map(str, e.path)))
        return [f"{'/'.join(map(str, err.path))}: {err.message}" for err in errors]

    def ensure_valid(self, payload: dict[str, Any], schema_name: str = RESULT_SCHEMA) -> None:
        """Raise the most relevant ``ValidationError`` if the payload does not conform."""
        error: ValidationError | None = best_match(self._validator(schema_name).iter_errors(payload))
        if error is not None:
            raise error
