"""Static, read-only defect scanner for generated project files."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable

from preview_orchestrator.build.models import GeneratedFile, ValidationIssue, ValidationReport
from preview_orchestrator.errors import ValidationFailure

CLIENT_ONLY_MARKERS = ("useState", "useEffect", "useRouter", "useSearchParams", "onClick", "onChange")
POLKADOT_API_PIN = "^10.13.1"

_BARE_SESSION_USER = re.compile(r"(?<![?\w])session\.user\b")
_NEXTAUTH_AUTH_IMPORT = re.compile(r"import\s*\{\s*auth\s*\}\s*from\s*['\"]next-auth['\"]")
_USE_CLIENT_PREFIX = re.compile(r"""^\s*['"]use client['"]""")
_BAD_API_VERSION = re.compile(r"^[\^~]?(13|16)\.")


def validate_project(files: Iterable[GeneratedFile]) -> ValidationReport:
    """Validate every file and aggregate issues by severity."""
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    for item in files:
        for issue in validate_file(item):
            (errors if issue.severity == "error" else warnings).append(issue)
    return ValidationReport(errors=tuple(errors), warnings=tuple(warnings))


def validate_file(item: GeneratedFile) -> list[ValidationIssue]:
    path = item.path
    name = path.rsplit("/", 1)[-1]
    if name == "package.json":
        return _check_package_json(item)
    if name == "tsconfig.json":
        return _check_tsconfig(item)
    if name.startswith("next.config"):
        return _check_next_config(item)
    if path.endswith((".ts", ".tsx")):
        return _check_typescript(item)
    return []


def format_error_summary(report: ValidationReport, *, limit: int = 10) -> str:
    """Render errors as ``  - file:line: message`` lines for a corrective prompt."""
    lines: list[str] = []
    for issue in report.errors[:limit]:
        location = f"{issue.file}:{issue.line}" if issue.line is not None else issue.file
        lines.append(f"  - {location}: {issue.message}")
    return "\n".join(lines)


def ensure_valid(report: ValidationReport) -> None:
    if report.valid:
        return
    raise ValidationFailure(
        f"{len(report.errors)} fatal defect(s) in generated files",
        error_count=len(report.errors),
    )


def _check_package_json(item: GeneratedFile) -> list[ValidationIssue]:
    try:
        payload = json.loads(item.content)
    except json.JSONDecodeError as exc:
        return [
            ValidationIssue(
                file=item.path,
                line=exc.lineno,
                message=f"Invalid JSON: {exc.msg}",
                severity="error",
                category="syntax_error",
            )
        ]
    if not isinstance(payload, dict):
        return [
            ValidationIssue(
                file=item.path,
                message="package.json must be a JSON object",
                severity="error",
                category="syntax_error",
            )
        ]

    issues: list[ValidationIssue] = []
    dependencies = _as_dict(payload.get("dependencies"))
    dev_dependencies = _as_dict(payload.get("devDependencies"))

    if "@polkadot/extensions-dapp" in dependencies:
        issues.append(
            ValidationIssue(
                file=item.path,
                message='Package name typo: "@polkadot/extensions-dapp" should be "@polkadot/extension-dapp"',
                severity="error",
                category="package_name_typo",
                fix="@polkadot/extension-dapp",
            )
        )
    if "@types/next-auth" in dev_dependencies:
        issues.append(
            ValidationIssue(
                file=item.path,
                message="@types/next-auth is deprecated; next-auth ships its own types",
                severity="error",
                category="package_version",
                fix="remove @types/next-auth",
            )
        )
    api_version = dependencies.get("@polkadot/api")
    if isinstance(api_version, str) and _BAD_API_VERSION.match(api_version.strip()):
        issues.append(
            ValidationIssue(
                file=item.path,
                message=f"@polkadot/api version {api_version} is not supported; use {POLKADOT_API_PIN}",
                severity="error",
                category="package_version",
                fix=POLKADOT_API_PIN,
            )
        )
    return issues


def _check_typescript(item: GeneratedFile) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    content = item.content

    if "```" in content:
        issues.append(
            ValidationIssue(
                file=item.path,
                message="Markdown code fence left in source file",
                severity="error",
                category="syntax_error",
                fix="strip code fences",
            )
        )

    for index, line in enumerate(content.splitlines(), start=1):
        if _BARE_SESSION_USER.search(line):
            issues.append(
                ValidationIssue(
                    file=item.path,
                    line=index,
                    message="Unguarded access to session.user; session may be null",
                    severity="error",
                    category="typescript_null_safety",
                    fix="session?.user",
                )
            )

    if item.path.endswith(".tsx") and not _USE_CLIENT_PREFIX.match(content):
        used = [marker for marker in CLIENT_ONLY_MARKERS if marker in content]
        if used:
            issues.append(
                ValidationIssue(
                    file=item.path,
                    line=1,
                    message=f'Client-only API ({", ".join(used)}) used without "use client" directive',
                    severity="warning",
                    category="client_directive",
                    fix='"use client"',
                )
            )

    if _NEXTAUTH_AUTH_IMPORT.search(content):
        issues.append(
            ValidationIssue(
                file=item.path,
                message="`auth` is not exported by next-auth v4; use getServerSession",
                severity="error",
                category="nextauth_import",
                fix="import { getServerSession } from 'next-auth/next'",
            )
        )

    open_braces, close_braces = content.count("{"), content.count("}")
    if open_braces != close_braces:
        issues.append(
            ValidationIssue(
                file=item.path,
                message=f"Unbalanced braces: {open_braces} open, {close_braces} close",
                severity="warning",
                category="syntax_error",
            )
        )
    open_parens, close_parens = content.count("("), content.count(")")
    if open_parens != close_parens:
        issues.append(
            ValidationIssue(
                file=item.path,
                message=f"Unbalanced parentheses: {open_parens} open, {close_parens} close",
                severity="warning",
                category="syntax_error",
            )
        )
    return issues


def _check_next_config(item: GeneratedFile) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    content = item.content
    if "experimental" in content and re.search(r"\b(appDir|serverActions)\b", content):
        issues.append(
            ValidationIssue(
                file=item.path,
                message="experimental.appDir / experimental.serverActions are not valid in Next.js 14",
                severity="error",
                category="config_format",
                fix="remove experimental keys",
            )
        )
    if not re.search(r"output\s*:\s*['\"]standalone['\"]", content):
        issues.append(
            ValidationIssue(
                file=item.path,
                message="next.config should set output: 'standalone'",
                severity="warning",
                category="config_format",
                fix="output: 'standalone'",
            )
        )
    return issues


def _check_tsconfig(item: GeneratedFile) -> list[ValidationIssue]:
    try:
        payload = json.loads(item.content)
    except json.JSONDecodeError as exc:
        return [
            ValidationIssue(
                file=item.path,
                line=exc.lineno,
                message=f"Invalid JSON: {exc.msg}",
                severity="error",
                category="syntax_error",
            )
        ]
    options = _as_dict(payload.get("compilerOptions")) if isinstance(payload, dict) else {}
    issues: list[ValidationIssue] = []
    paths = _as_dict(options.get("paths"))
    if "@/*" not in paths:
        issues.append(
            ValidationIssue(
                file=item.path,
                message='Missing "@/*" path alias in compilerOptions.paths',
                severity="error",
                category="missing_import",
                fix='"paths": {"@/*": ["./*"]}',
            )
        )
    if options.get("skipLibCheck") is not True:
        issues.append(
            ValidationIssue(
                file=item.path,
                message="skipLibCheck should be true",
                severity="warning",
                category="config_format",
                fix='"skipLibCheck": true',
            )
        )
    return issues


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}
