"""Shared data models used across fixgate modules."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fixgate.core.errors import InvalidFixError, RollbackFailure, UnsupportedFixKindError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FixKind(enum.Enum):
    FULL_REPLACE = "full_replace"
    LINE_INSERT = "line_insert"
    SEARCH_REPLACE = "search_replace"
    GENERIC = "generic"


class StageName(enum.Enum):
    SYNTAX = "syntax"
    FUNCTIONAL = "functional"
    REGRESSION = "regression"
    PERFORMANCE = "performance"
    SIDE_EFFECTS = "side_effects"


class Severity(enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Action(enum.Enum):
    APPLY = "APPLY"
    APPLY_WITH_MONITORING = "APPLY_WITH_MONITORING"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    REJECT = "REJECT"


class Confidence(enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


# ---------------------------------------------------------------------------
# Inputs supplied by the orchestrator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Fix:
    """A proposed source mutation.

    ``content`` is the full new file (FULL_REPLACE, GENERIC) or the line(s) to
    insert (LINE_INSERT). ``search_pattern``/``replacement`` drive
    SEARCH_REPLACE. ``expected_fragment``, when set, must be present verbatim
    in the target file after the fix is applied to production.
    """

    kind: FixKind
    content: str = ""
    search_pattern: str | None = None
    replacement: str | None = None
    insertion_line: int | None = None
    expected_fragment: str | None = None
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Fix:
        raw_kind = data.get("kind", "generic")
        try:
            kind = FixKind(raw_kind)
        except ValueError:
            raise UnsupportedFixKindError(f"Unsupported fix kind: {raw_kind!r}") from None
        insertion_line = data.get("insertion_line")
        if insertion_line is not None and not isinstance(insertion_line, int):
            raise InvalidFixError(f"insertion_line must be an integer, got {insertion_line!r}")
        return cls(
            kind=kind,
            content=data.get("content", ""),
            search_pattern=data.get("search_pattern"),
            replacement=data.get("replacement"),
            insertion_line=insertion_line,
            expected_fragment=data.get("expected_fragment"),
            description=data.get("description", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "content": self.content,
            "search_pattern": self.search_pattern,
            "replacement": self.replacement,
            "insertion_line": self.insertion_line,
            "expected_fragment": self.expected_fragment,
            "description": self.description,
        }

    def summary(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "description": self.description}


@dataclass(frozen=True)
class ErrorReport:
    """The defect a fix claims to resolve."""

    kind: str
    message: str = ""
    severity: str = ""
    component: str = ""
    reproduction_hint: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorReport:
        return cls(
            kind=data.get("kind", "unknown"),
            message=data.get("message", ""),
            severity=data.get("severity", ""),
            component=data.get("component", ""),
            reproduction_hint=data.get("reproduction_hint", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "severity": self.severity,
            "component": self.component,
            "reproduction_hint": self.reproduction_hint,
        }

    def summary(self) -> dict[str, Any]:
        return {"kind": self.kind, "severity": self.severity, "component": self.component}


@dataclass(frozen=True)
class ApplicationContext:
    """Where a fix must land, relative to the project (or sandbox) root."""

    target_file: Path
    target_line: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApplicationContext:
        if not data.get("target_file"):
            raise InvalidFixError("context.target_file is required")
        return cls(target_file=Path(data["target_file"]), target_line=data.get("target_line"))

    def to_dict(self) -> dict[str, Any]:
        return {"target_file": self.target_file.as_posix(), "target_line": self.target_line}


# ---------------------------------------------------------------------------
# Sandbox and validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Sandbox:
    id: str
    root_path: Path
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class StageResult:
    """Outcome of one validation stage. Never mutated after creation."""

    name: StageName
    passed: bool
    details: dict[str, Any] = field(default_factory=dict)
    error_count: int | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data = {"passed": self.passed, **self.details, "duration_ms": round(self.duration_ms, 1)}
        if self.error_count is not None:
            data["error_count"] = self.error_count
        return data


@dataclass(frozen=True)
class SideEffect:
    """A single finding from side-effect detection."""

    type: str
    severity: Severity
    items: list[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "items": list(self.items),
            "message": self.message,
        }


@dataclass(frozen=True)
class RegressionFailure:
    test: str
    error: str
    critical: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"test": self.test, "error": self.error, "critical": self.critical}


@dataclass(frozen=True)
class RegressionResults:
    """What a regression suite returns for one sandbox."""

    total: int
    passed: int
    failed: int
    failures: list[RegressionFailure] = field(default_factory=list)
    skipped: int = 0
    duration_ms: float = 0.0


@dataclass(frozen=True)
class Recommendation:
    action: Action
    confidence: Confidence
    reasoning: str

    def to_dict(self) -> dict[str, str]:
        return {
            "action": self.action.value,
            "confidence": self.confidence.value,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class ValidationSummary:
    overall_result: Action
    confidence: Confidence
    score: int
    stages_passed: int
    stages_total: int
    critical_issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_result": self.overall_result.value,
            "confidence": self.confidence.value,
            "score": self.score,
            "stages_passed": self.stages_passed,
            "stages_total": self.stages_total,
            "critical_issues": list(self.critical_issues),
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class ValidationReport:
    """Frozen record of one validation run."""

    sandbox_id: str
    fix: Fix
    error: ErrorReport
    context: ApplicationContext
    stages: dict[StageName, StageResult]
    score: int
    recommendation: Recommendation
    summary: ValidationSummary
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def passed(self) -> bool:
        return self.recommendation.action in (Action.APPLY, Action.APPLY_WITH_MONITORING)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sandbox_id": self.sandbox_id,
            "fix": self.fix.to_dict(),
            "error": self.error.to_dict(),
            "context": self.context.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "stages": {name.value: result.to_dict() for name, result in self.stages.items()},
            "score": self.score,
            "recommendation": self.recommendation.to_dict(),
            "summary": self.summary.to_dict(),
        }


# ---------------------------------------------------------------------------
# Backup and application history
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Backup:
    """Pre-mutation snapshot of one file.

    ``backup_file is None`` together with ``existed_before is False`` means the
    fix created a brand-new file; rolling back deletes it.
    """

    backup_id: str
    original_file: Path
    backup_file: Path | None
    existed_before: bool
    captured_content: bytes | None = field(default=None, repr=False)
    captured_at: datetime = field(default_factory=utcnow)
    rolled_back: bool = False

    @property
    def creates_file(self) -> bool:
        return not self.existed_before and self.backup_file is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "backup_id": self.backup_id,
            "original_file": str(self.original_file),
            "backup_file": str(self.backup_file) if self.backup_file else None,
            "existed_before": self.existed_before,
            "captured_at": self.captured_at.isoformat(),
            "rolled_back": self.rolled_back,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Backup:
        return cls(
            backup_id=data["backup_id"],
            original_file=Path(data["original_file"]),
            backup_file=Path(data["backup_file"]) if data.get("backup_file") else None,
            existed_before=bool(data.get("existed_before")),
            captured_at=datetime.fromisoformat(data["captured_at"]),
            rolled_back=bool(data.get("rolled_back", False)),
        )


@dataclass(frozen=True)
class FixApplicationRecord:
    fix_summary: dict[str, Any]
    error_summary: dict[str, Any]
    result: dict[str, Any]
    backup: Backup | None
    success: bool
    timestamp: datetime = field(default_factory=utcnow)
    message: str = ""


@dataclass
class RollbackResult:
    success: bool
    message: str
    backup: Backup | None = None
    failure: RollbackFailure | None = None


@dataclass
class RollbackSummary:
    requested: int
    successful: int
    remaining: int
    failure: RollbackFailure | None = None
