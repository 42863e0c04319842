"""Finding and report types shared by mutations and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

FindingKind = Literal[
    "cycle",
    "missing_prerequisite",
    "order_violation",
    "orphan",
    "strength_mismatch",
]
Severity = Literal["error", "warning", "info"]


@dataclass
class Finding:
    """A single problem found in the dependency graph.

    Rejected mutations return one of these instead of raising. The
    ``missing_prerequisite`` and ``strength_mismatch`` kinds are reserved;
    callers should treat kinds they do not recognise as informational.

    Attributes:
        kind: Category of the problem.
        severity: "error", "warning", or "info".
        message: Human-readable description.
        affected_beats: Beat IDs involved, in a meaningful order (a cycle
            lists its path).
        suggestion: Optional hint on how to resolve it.
    """

    kind: FindingKind
    severity: Severity
    message: str
    affected_beats: list[str] = field(default_factory=list)
    suggestion: str | None = None


@dataclass
class ValidationReport:
    """Aggregated findings from :func:`beatgraph.graph.analysis.validate_order`.

    Attributes:
        findings: All findings, cycles first.
    """

    findings: list[Finding] = field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        """Findings with severity 'error'."""
        return [f for f in self.findings if f.severity == "error"]

    @property
    def warnings(self) -> list[Finding]:
        """Findings with severity 'warning'."""
        return [f for f in self.findings if f.severity == "warning"]

    @property
    def has_errors(self) -> bool:
        """True if any finding has severity 'error'."""
        return any(f.severity == "error" for f in self.findings)

    @property
    def has_warnings(self) -> bool:
        """True if any finding has severity 'warning'."""
        return any(f.severity == "warning" for f in self.findings)

    def by_kind(self, kind: str) -> list[Finding]:
        """Findings of one kind."""
        return [f for f in self.findings if f.kind == kind]

    @property
    def summary(self) -> str:
        """Human-readable summary of all findings."""
        errors = self.errors
        warnings = self.warnings
        infos = [f for f in self.findings if f.severity == "info"]

        parts: list[str] = []
        if errors:
            parts.append(f"{len(errors)} errors")
        if warnings:
            parts.append(f"{len(warnings)} warnings")
        if infos:
            parts.append(f"{len(infos)} info")
        return ", ".join(parts) or "no problems"

    def __len__(self) -> int:
        return len(self.findings)
