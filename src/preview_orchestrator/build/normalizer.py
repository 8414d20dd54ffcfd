"""Turn an untrusted generated file set into a buildable workspace file set."""

from __future__ import annotations

import json
import logging
import re
from typing import Iterable

from preview_orchestrator.build.metadata import render_project_config
from preview_orchestrator.build.models import GeneratedFile, NormalizedBuild, ProjectContext
from preview_orchestrator.build.rules import apply_rules, default_rules
from preview_orchestrator.build.templates import (
    DEFAULT_LAYOUT,
    OWNED_PATHS,
    PROJECT_CONFIG_PATH,
    is_owned,
    render_env_file,
    render_template,
)
from preview_orchestrator.generation.manifest import expand_aggregated_files

logger = logging.getLogger(__name__)

CACHE_MANIFEST_NAME = "draft-dependency-cache"


def normalize_files(
    project_id: str,
    files: Iterable[GeneratedFile],
    context: ProjectContext,
    *,
    port: int,
    env: dict[str, str] | None = None,
) -> NormalizedBuild:
    """Inject templates, drop unsupported files and apply the rewrite batch."""
    generated = _dedupe(expand_aggregated_files([_clean_path(item) for item in files]))
    result = NormalizedBuild()

    for path in OWNED_PATHS:
        if path == PROJECT_CONFIG_PATH:
            content = render_project_config(generated, context)
        else:
            content = render_template(path, project_id=project_id)
        if content is not None:
            result.files.append(GeneratedFile(path=path, content=content))

    for item in generated:
        reason = _drop_reason(item.path)
        if reason:
            result.dropped.append(item.path)
            logger.info("normalize event=dropped project_id=%s path=%s reason=%s", project_id, item.path, reason)
            continue
        if _is_env_file(item.path):
            item = GeneratedFile(path=item.path, content=render_env_file(project_id, port=port, env=env))
        elif "/signin/" in item.path:
            item = GeneratedFile(path=item.path, content=strip_signin_page(item.content))
        result.files.append(item)

    if result.content_of("app/layout.tsx") is None:
        logger.warning("normalize event=layout_missing project_id=%s action=default_layout", project_id)
        result.files.append(GeneratedFile(path="app/layout.tsx", content=DEFAULT_LAYOUT))

    rules = default_rules(port=port)
    rewritten: list[GeneratedFile] = []
    for item in result.files:
        content, _applied = apply_rules(item.path, item.content, rules)
        rewritten.append(GeneratedFile(path=item.path, content=content))
    result.files = rewritten

    result.manifest = dependency_manifest(result.content_of("package.json") or "{}")
    logger.info(
        "normalize event=done project_id=%s files=%s dropped=%s",
        project_id,
        len(result.files),
        len(result.dropped),
    )
    return result


def dependency_manifest(package_json: str) -> str:
    """Port-independent projection of ``package.json`` used as the cache key and install manifest."""
    try:
        payload = json.loads(package_json)
    except json.JSONDecodeError:
        return package_json
    if not isinstance(payload, dict):
        return package_json
    manifest = {
        "name": CACHE_MANIFEST_NAME,
        "version": "1.0.0",
        "private": True,
        "dependencies": payload.get("dependencies") or {},
        "devDependencies": payload.get("devDependencies") or {},
    }
    return json.dumps(manifest, indent=2, sort_keys=True)


def strip_signin_page(content: str) -> str:
    """Remove Google and email/password sign-in; wallet sign-in stays."""
    content = re.sub(r"import.*GoogleSignInButton.*from.*\n", "", content)
    content = re.sub(r"<.*button.*onClick.*signIn\(['\"]google['\"].*>.*Sign in with Google.*</button>", "", content)
    content = re.sub(r"signIn\(['\"]google['\"].*\)", "", content)
    content = re.sub(r"import.*CredentialsSignInForm.*from.*\n", "", content)
    content = re.sub(
        r"<form[^>]*onSubmit[^>]*>[\s\S]*?</form>",
        lambda m: "" if "email" in m.group(0) and "password" in m.group(0) else m.group(0),
        content,
    )
    content = re.sub(r"<Link[^>]*href=['\"]/signup['\"][^>]*>.*</Link>", "", content, flags=re.IGNORECASE)
    return re.sub(r"No account\?.*Create one.*", "", content, flags=re.IGNORECASE)


def _drop_reason(path: str) -> str | None:
    if is_owned(path):
        return "owned_template"
    if "prisma/schema.prisma" in path:
        return "no_database"
    if "app/api/" in path:
        return "api_route"
    if "/signup/" in path:
        return "signup_page"
    if "GoogleSignInButton" in path or "CredentialsSignInForm" in path:
        return "unsupported_auth"
    return None


def _is_env_file(path: str) -> bool:
    return path.rsplit("/", 1)[-1].startswith(".env")


def _clean_path(item: GeneratedFile) -> GeneratedFile:
    path = item.path.strip().replace("\\", "/")
    while path.startswith(("./", "/")):
        path = path[2:] if path.startswith("./") else path[1:]
    return item if path == item.path else GeneratedFile(path=path, content=item.content)


def _dedupe(files: list[GeneratedFile]) -> list[GeneratedFile]:
    latest: dict[str, GeneratedFile] = {}
    for item in files:
        latest[item.path] = item
    return list(latest.values())
