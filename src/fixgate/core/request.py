"""Loads a fix request (fix + error report + target) from a JSON file."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from fixgate.core.errors import InvalidFixError
from fixgate.core.models import ApplicationContext, ErrorReport, Fix


@dataclass
class FixRequest:
    """Everything needed to validate or apply one fix.

    On disk::

        {
          "fix": {"kind": "search_replace", "search_pattern": "foo", "replacement": "bar"},
          "error": {"kind": "console-error", "message": "foo is not defined"},
          "context": {"target_file": "src/app.js"}
        }
    """

    fix: Fix
    error: ErrorReport
    context: ApplicationContext


def load_request(path: Path) -> FixRequest:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidFixError(f"Fix request is not valid JSON: {exc}", target_file=path) from exc

    if not isinstance(data, dict) or "fix" not in data or "context" not in data:
        raise InvalidFixError("Fix request needs 'fix' and 'context' objects", target_file=path)
    error = data.get("error") or {}
    for key, value in (("fix", data["fix"]), ("error", error), ("context", data["context"])):
        if not isinstance(value, dict):
            raise InvalidFixError(
                f"'{key}' must be an object, got {type(value).__name__}", target_file=path
            )

    return FixRequest(
        fix=Fix.from_dict(data["fix"]),
        error=ErrorReport.from_dict(error),
        context=ApplicationContext.from_dict(data["context"]),
    )
