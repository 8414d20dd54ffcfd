"""Derive the generated ``lib/projectConfig.ts`` from the specification and routes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from preview_orchestrator.build.models import GeneratedFile, ProjectContext
from preview_orchestrator.build.templates import PROJECT_CONFIG_HEADER, PROJECT_CONFIG_SPLIT_TOKEN

MAX_SPEC_FEATURES = 6
MAX_DISPLAYED_FEATURES = 4
MAX_SECTIONS = 6
THEME_COLOR = "#6d28d9"
EYEBROW = "Preview Studio + Polkadot UI"
SECONDARY_CTA = {"href": "#network", "label": "View network status"}

DEFAULT_FEATURES: tuple[dict[str, str], ...] = (
    {
        "title": "Wallet-native onboarding",
        "description": "Authenticate users with Polkadot wallets and surface trusted identities instantly.",
    },
    {
        "title": "Dynamic marketplace flows",
        "description": "Mint, list, or trade digital assets with reusable Polkadot UI primitives.",
    },
    {
        "title": "Telemetry & history",
        "description": "Track extrinsic lifecycle locally with optimistic updates and toast notifications.",
    },
)

_FALLBACK_SUMMARY = "Wallet-native experiences on Polkadot with zero backend code required."
_FALLBACK_SUBTITLE = (
    "Generate landing pages, dashboards, and transaction-ready components infused with "
    "on-chain intelligence. Tailor the copy to your product in seconds."
)
_FEATURE_DELIMITERS = (":", " - ", " – ", " — ")
_SKIPPED_ROUTES = frozenset({"app/page.tsx", "app/experience/page.tsx"})


@dataclass(frozen=True)
class SpecFeature:
    title: str
    description: str | None = None


@dataclass(frozen=True)
class SpecInsights:
    overview: str | None = None
    features: tuple[SpecFeature, ...] = ()


@dataclass
class PageRoute:
    original_path: str
    href: str | None
    segments: list[str] = field(default_factory=list)
    label: str = "Experience"
    group: str = "Experience"
    trail: str = "Experience"
    is_dynamic: bool = False


def humanize_slug(slug: str) -> str:
    if not slug:
        return "Experience"
    text = re.sub(r"\[(.+?)\]", r"\1", slug)
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", text)
    text = re.sub(r"[-_/]+", " ", text).strip()
    if not text:
        return "Experience"
    return " ".join(part[:1].upper() + part[1:].lower() for part in text.split())


def extract_section_block(markdown: str, heading: str) -> str | None:
    """Body of the ``## <heading>`` section, up to the next heading."""
    if not markdown or not heading:
        return None
    pattern = re.compile(
        rf"##\s+{re.escape(heading)}\s*\n+([\s\S]*?)(?=\n##\s+|\n#\s+|$)",
        re.IGNORECASE,
    )
    match = pattern.search(markdown)
    if not match:
        return None
    return match.group(1).strip()


def extract_overview(markdown: str) -> str | None:
    block = extract_section_block(markdown, "Overview")
    if not block:
        return None
    for line in block.split("\n"):
        stripped = line.strip()
        if stripped and not stripped.startswith(("-", "*")):
            return stripped
    return None


def parse_feature_line(raw: str, index: int) -> SpecFeature | None:
    if not raw:
        return None
    sanitized = re.sub(r"^\d+[).\s-]+", "", raw).strip()
    if not sanitized:
        return None
    title, description = sanitized, None
    for delimiter in _FEATURE_DELIMITERS:
        head, sep, tail = sanitized.partition(delimiter)
        if sep:
            title, description = head.strip(), tail.strip()
            break
    if not title:
        title = f"Feature {index + 1}"
    return SpecFeature(title=title, description=description or None)


def extract_features(markdown: str) -> list[SpecFeature]:
    """Up to six bullets from ``Core Features`` (or ``Features``)."""
    for heading in ("Core Features", "Features"):
        block = extract_section_block(markdown, heading)
        if not block:
            continue
        features: list[SpecFeature] = []
        for line in block.split("\n"):
            bullet = re.match(r"^\s*[-*+]\s+(.*)", line)
            if not bullet:
                continue
            feature = parse_feature_line(bullet.group(1).strip(), len(features))
            if feature:
                features.append(feature)
            if len(features) >= MAX_SPEC_FEATURES:
                break
        if features:
            return features
    return []


def parse_spec_document(markdown: str | None) -> SpecInsights:
    if not markdown:
        return SpecInsights()
    return SpecInsights(overview=extract_overview(markdown), features=tuple(extract_features(markdown)))


def normalize_app_route(path: str) -> PageRoute | None:
    """Map ``app/**/page.tsx`` to a navigable route; route groups are dropped."""
    if not path.startswith("app/") or not path.endswith("/page.tsx") or path in _SKIPPED_ROUTES:
        return None
    trimmed = path[len("app/") : -len("/page.tsx")]
    segments = [
        segment
        for segment in trimmed.split("/")
        if segment and not (segment.startswith("(") and segment.endswith(")"))
    ]
    if not segments:
        return None

    is_dynamic = False
    cleaned: list[str] = []
    for segment in segments:
        if segment.startswith("[") and segment.endswith("]"):
            is_dynamic = True
            segment = segment[1:-1]
        cleaned.append(segment)

    return PageRoute(
        original_path=path,
        href=None if is_dynamic else "/" + "/".join(cleaned),
        segments=cleaned,
        label=humanize_slug(cleaned[-1]),
        group=humanize_slug(cleaned[0]),
        trail=" • ".join(humanize_slug(segment) for segment in cleaned),
        is_dynamic=is_dynamic,
    )


def infer_project_metadata(files: Iterable[GeneratedFile], context: ProjectContext) -> dict[str, Any]:
    routes = [route for route in (normalize_app_route(item.path) for item in files) if route]
    static_routes = [route for route in routes if route.href]
    primary = static_routes[0] if static_routes else (routes[0] if routes else None)

    insights = parse_spec_document(context.spec_markdown)
    spec_features = [
        SpecFeature(title=feature.title.strip(), description=(feature.description or "").strip() or None)
        for feature in insights.features
        if feature.title.strip()
    ]
    spec_overview = (insights.overview or "").strip() or None
    prompt_line = next((line.strip() for line in (context.prompt or "").split("\n") if line.strip()), "")
    overview_summary = spec_overview or prompt_line
    preferred_name = (context.title or "").strip() or None

    if primary is None:
        name = preferred_name or "Polkadot Preview Studio"
        if spec_features:
            features = [
                {
                    "title": feature.title,
                    "description": feature.description
                    or f"Implements {feature.title.lower()} exactly as described in your prompt.",
                }
                for feature in spec_features[:MAX_DISPLAYED_FEATURES]
            ]
        else:
            features = [dict(feature) for feature in DEFAULT_FEATURES]
        keywords = [
            name,
            *(feature.title for feature in spec_features),
            "Polkadot",
            "Web3",
            "dApp builder",
            "wallet-native",
        ]
        return {
            "name": name,
            "shortName": name,
            "summary": overview_summary or _FALLBACK_SUMMARY,
            "hero": {
                "eyebrow": EYEBROW,
                "title": name,
                "subtitle": spec_overview or _FALLBACK_SUBTITLE,
                "primaryCta": {"href": "/experience", "label": f"Launch {name}" if preferred_name else "Enter Studio"},
                "secondaryCta": dict(SECONDARY_CTA),
            },
            "features": features,
            "app": {"entryPath": "/experience", "sections": []},
            "keywords": _unique(keywords),
            "themeColor": THEME_COLOR,
        }

    route_name = primary.group or "Experience"
    name = preferred_name or route_name
    entry_path = static_routes[0].href if static_routes else "/experience"
    if spec_overview:
        subtitle = f"{spec_overview} Connect a wallet to explore the {route_name.lower()} flows on Polkadot."
    else:
        subtitle = f"This experience was generated from your prompt. Connect a wallet to explore the {route_name} flows."

    route_candidates: list[dict[str, Any]] = []
    seen_routes: set[str] = set()
    for route in routes:
        key = route.label.lower()
        if not route.label or key in seen_routes:
            continue
        seen_routes.add(key)
        if route.is_dynamic:
            description = f"Dynamic {route.label.lower()} flow generated for {name.lower()}."
        else:
            description = f"Navigate the {route.trail.lower()} experience on Polkadot."
        route_candidates.append({"title": route.label, "description": description, "href": route.href})
        if len(route_candidates) >= MAX_SECTIONS:
            break

    prioritized = spec_features[:MAX_DISPLAYED_FEATURES]
    features: list[dict[str, Any]] = []
    seen_titles: set[str] = set()
    for feature in prioritized:
        key = feature.title.lower()
        match = next((candidate for candidate in route_candidates if candidate["title"].lower() == key), None)
        features.append(
            {
                "title": feature.title,
                "description": feature.description
                or f"Implements {feature.title.lower()} exactly as requested in your brief.",
                "href": match["href"] if match else None,
            }
        )
        seen_titles.add(key)

    for candidate in route_candidates:
        if len(features) >= MAX_DISPLAYED_FEATURES:
            break
        key = candidate["title"].lower()
        if key in seen_titles:
            existing = next(feature for feature in features if feature["title"].lower() == key)
            if not existing.get("href") and candidate["href"]:
                existing["href"] = candidate["href"]
            continue
        features.append(dict(candidate))
        seen_titles.add(key)
    if not features:
        features = [dict(feature) for feature in DEFAULT_FEATURES]

    sections: list[dict[str, Any]] = []
    seen_hrefs: set[str] = set()
    for route in static_routes:
        if route.href in seen_hrefs:
            continue
        seen_hrefs.add(route.href)
        sections.append(
            {
                "href": route.href,
                "label": route.label,
                "description": f"Jump to the {route.trail.lower()} flow.",
                "icon": _section_icon(route.label, first=not sections),
            }
        )
        if len(sections) >= MAX_SECTIONS:
            break

    keywords = [
        name,
        route_name,
        *(humanize_slug(segment) for segment in primary.segments),
        *(feature.title for feature in prioritized),
        "Polkadot",
    ]
    return {
        "name": name,
        "shortName": name,
        "summary": overview_summary or f"Wallet-native {name} experience.",
        "hero": {
            "eyebrow": EYEBROW,
            "title": name,
            "subtitle": subtitle,
            "primaryCta": {"href": entry_path, "label": f"Launch {name}" if preferred_name else f"Explore {route_name}"},
            "secondaryCta": dict(SECONDARY_CTA),
        },
        "features": features,
        "app": {"entryPath": entry_path, "sections": sections},
        "keywords": _unique(keywords),
        "themeColor": THEME_COLOR,
    }


def serialize_value(value: Any, indent: int = 0, step: int = 2) -> str:
    """Render a Python value as a TypeScript object literal; empty fields are omitted."""
    pad = " " * indent
    inner = " " * (indent + step)
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        items = [f"{inner}{serialize_value(item, indent + step, step)}" for item in value]
        return "[\n" + ",\n".join(items) + f"\n{pad}]"
    if isinstance(value, dict):
        entries = [
            (key, item)
            for key, item in value.items()
            if item is not None and not (isinstance(item, str) and not item.strip())
        ]
        if not entries:
            return "{}"
        lines = [f"{inner}{key}: {serialize_value(item, indent + step, step)}" for key, item in entries]
        return "{\n" + ",\n".join(lines) + f"\n{pad}}}"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    return "null"


def render_project_config(files: Iterable[GeneratedFile], context: ProjectContext) -> str:
    metadata = infer_project_metadata(files, context)
    return f"{PROJECT_CONFIG_HEADER}{PROJECT_CONFIG_SPLIT_TOKEN}{serialize_value(metadata)}\n"


def _section_icon(label: str, *, first: bool) -> str | None:
    lowered = label.lower()
    if first:
        return "overview"
    if "market" in lowered:
        return "marketplace"
    if any(token in lowered for token in ("activity", "history", "log")):
        return "activity"
    if "settings" in lowered or "config" in lowered:
        return "settings"
    return None


def _unique(values: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen
