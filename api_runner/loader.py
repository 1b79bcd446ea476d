# api_runner/loader.py
"""Load and parse test case documents."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Union

from api_runner.api_types import TestCaseLoadError, TestCase

logger = logging.getLogger(__name__)


def load_test_case(path: Union[str, Path]) -> TestCase:
    """Read a test case JSON file. Any problem raises ``TestCaseLoadError``."""
    p = Path(path)
    if not p.is_file():
        raise TestCaseLoadError(f"Test case file not found: {p}")

    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise TestCaseLoadError(f"Invalid JSON in {p}: {e.msg} (line {e.lineno}, column {e.colno})") from e
    except (OSError, UnicodeDecodeError) as e:
        raise TestCaseLoadError(f"Cannot read {p}: {e}") from e

    test_case = TestCase.from_dict(data, source=str(path))
    logger.debug(f"Loaded {len(test_case.tests)} tests from {p}")
    return test_case
