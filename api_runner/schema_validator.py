# api_runner/schema_validator.py
"""JSON Schema validation for response bodies (exposed to custom assertions)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import jsonschema
from jsonschema.exceptions import SchemaError, best_match
from jsonschema.validators import validator_for

logger = logging.getLogger(__name__)


class SchemaValidator:
    """Validate values against JSON schemas.

    Schemas without ``$schema`` are checked as Draft 2020-12, with format
    assertions enabled.
    """

    def __init__(self, default_draft: type = jsonschema.Draft202012Validator):
        self.default_draft = default_draft

    def validate(self, value: Any, schema: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """Validate ``value``; returns ``(ok, first error message)``."""
        cls = validator_for(schema, default=self.default_draft)
        try:
            cls.check_schema(schema)
        except SchemaError as e:
            return False, f"invalid schema: {e.message}"

        validator = cls(schema, format_checker=cls.FORMAT_CHECKER)
        error = best_match(validator.iter_errors(value))
        if error is None:
            return True, None

        where = "/".join(str(p) for p in error.absolute_path) or "<root>"
        return False, f"{where}: {error.message}"

    def is_valid(self, schema: Dict[str, Any], value: Any) -> bool:
        ok, error = self.validate(value, schema)
        if not ok:
            logger.debug(f"Schema validation failed: {error}")
        return ok
