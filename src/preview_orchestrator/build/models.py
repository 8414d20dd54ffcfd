"""Value types passed between the build components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Severity = Literal["error", "warning"]
IssueCategory = Literal[
    "package_name_typo",
    "package_version",
    "typescript_null_safety",
    "nextauth_import",
    "client_directive",
    "syntax_error",
    "missing_import",
    "config_format",
]


@dataclass(frozen=True)
class GeneratedFile:
    path: str
    content: str


@dataclass(frozen=True)
class ValidationIssue:
    file: str
    message: str
    severity: Severity
    category: IssueCategory
    line: int | None = None
    fix: str | None = None

    @property
    def fixable(self) -> bool:
        return self.fix is not None


@dataclass(frozen=True)
class ValidationReport:
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def fixable(self) -> tuple[ValidationIssue, ...]:
        return tuple(issue for issue in (*self.errors, *self.warnings) if issue.fixable)

    def to_dict(self) -> dict[str, object]:
        return {
            "valid": self.valid,
            "errors": [_issue_dict(issue) for issue in self.errors],
            "warnings": [_issue_dict(issue) for issue in self.warnings],
            "fixable": len(self.fixable),
        }


@dataclass(frozen=True)
class ProjectContext:
    """Facts used to populate generated templates."""

    title: str | None = None
    prompt: str | None = None
    spec_markdown: str | None = None


@dataclass
class NormalizedBuild:
    files: list[GeneratedFile] = field(default_factory=list)
    manifest: str = ""
    dropped: list[str] = field(default_factory=list)

    def paths(self) -> list[str]:
        return [item.path for item in self.files]

    def content_of(self, path: str) -> str | None:
        for item in self.files:
            if item.path == path:
                return item.content
        return None


def _issue_dict(issue: ValidationIssue) -> dict[str, object]:
    return {
        "file": issue.file,
        "line": issue.line,
        "message": issue.message,
        "severity": issue.severity,
        "category": issue.category,
        "fix": issue.fix,
    }
