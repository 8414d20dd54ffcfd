import json

import pytest

from preview_orchestrator.build.models import GeneratedFile
from preview_orchestrator.build.validator import ensure_valid, format_error_summary, validate_file, validate_project
from preview_orchestrator.errors import ValidationFailure


def _categories(issues) -> set[str]:
    return {issue.category for issue in issues}


def test_package_json_typo_and_versions_are_errors() -> None:
    package = GeneratedFile(
        path="package.json",
        content=json.dumps(
            {
                "dependencies": {"@polkadot/extensions-dapp": "^0.46.0", "@polkadot/api": "^16.2.1"},
                "devDependencies": {"@types/next-auth": "^3.15.0"},
            }
        ),
    )
    issues = validate_file(package)

    assert all(issue.severity == "error" for issue in issues)
    assert _categories(issues) == {"package_name_typo", "package_version"}
    assert any(issue.fix == "^10.13.1" for issue in issues)


def test_invalid_package_json_reports_syntax_error() -> None:
    issues = validate_file(GeneratedFile(path="package.json", content='{"name": '))
    assert len(issues) == 1
    assert issues[0].category == "syntax_error"
    assert issues[0].line == 1


def test_typescript_checks() -> None:
    source = (
        "import { auth } from 'next-auth'\n"
        "import { useState } from 'react'\n"
        "export default function Page() {\n"
        "  const name = session.user.name\n"
        "  return <div>{name}</div>\n"
    )
    report = validate_project([GeneratedFile(path="app/page.tsx", content=source)])

    assert not report.valid
    assert _categories(report.errors) == {"typescript_null_safety", "nextauth_import"}
    null_safety = [issue for issue in report.errors if issue.category == "typescript_null_safety"]
    assert null_safety[0].line == 4
    assert _categories(report.warnings) == {"client_directive", "syntax_error"}


def test_guarded_session_and_use_client_pass() -> None:
    source = '"use client"\nimport { useState } from "react"\nconst id = session?.user?.id\n'
    assert validate_file(GeneratedFile(path="components/A.tsx", content=source)) == []


def test_markdown_fence_in_source_is_an_error() -> None:
    issues = validate_file(GeneratedFile(path="lib/util.ts", content="```ts\nexport const a = 1\n```\n"))
    assert [issue.category for issue in issues] == ["syntax_error"]
    assert issues[0].severity == "error"


def test_next_config_and_tsconfig_checks() -> None:
    next_config = GeneratedFile(
        path="next.config.js",
        content="module.exports = { experimental: { appDir: true } }",
    )
    issues = validate_file(next_config)
    assert [issue.severity for issue in issues] == ["error", "warning"]

    tsconfig = GeneratedFile(path="tsconfig.json", content=json.dumps({"compilerOptions": {}}))
    issues = validate_file(tsconfig)
    assert [(issue.severity, issue.category) for issue in issues] == [
        ("error", "missing_import"),
        ("warning", "config_format"),
    ]


def test_other_files_are_ignored() -> None:
    assert validate_file(GeneratedFile(path="README.md", content="session.user ```")) == []


def test_error_summary_lists_at_most_ten_errors() -> None:
    files = [
        GeneratedFile(path=f"app/p{index}/page.tsx", content="const a = session.user\n")
        for index in range(12)
    ]
    report = validate_project(files)
    summary = format_error_summary(report)

    lines = summary.splitlines()
    assert len(report.errors) == 12
    assert len(lines) == 10
    assert lines[0] == "  - app/p0/page.tsx:1: Unguarded access to session.user; session may be null"


def test_report_to_dict_counts_fixable() -> None:
    report = validate_project([GeneratedFile(path="a.ts", content="session.user.id\n")])
    payload = report.to_dict()
    assert payload["valid"] is False
    assert payload["fixable"] == 1
    assert payload["errors"][0]["file"] == "a.ts"


def test_ensure_valid_raises_with_error_count() -> None:
    ensure_valid(validate_project([GeneratedFile(path="a.ts", content="session?.user?.id\n")]))

    with pytest.raises(ValidationFailure) as excinfo:
        ensure_valid(validate_project([GeneratedFile(path="a.ts", content="session.user.id\nsession.user.name\n")]))
    assert excinfo.value.error_count == 2
