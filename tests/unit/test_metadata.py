from preview_orchestrator.build.metadata import (
    extract_features,
    extract_overview,
    humanize_slug,
    infer_project_metadata,
    normalize_app_route,
    render_project_config,
    serialize_value,
)
from preview_orchestrator.build.models import GeneratedFile, ProjectContext
from preview_orchestrator.build.templates import PROJECT_CONFIG_SPLIT_TOKEN

SPEC = """# Foo Marketplace

## Overview
Trade collectibles with a Polkadot wallet.
- bullet lines are not the overview

## Core Features
- Listings: browse items for sale
- 2) Checkout - buy with DOT
- Profiles

## Pages
- /market
"""


def _page(path: str) -> GeneratedFile:
    return GeneratedFile(path=path, content="export default function P() { return null }")


def test_humanize_slug() -> None:
    assert humanize_slug("my-listings") == "My Listings"
    assert humanize_slug("[tokenId]") == "Token Id"
    assert humanize_slug("") == "Experience"


def test_app_routes_drop_groups_and_flag_dynamic_segments() -> None:
    route = normalize_app_route("app/(app)/market/[id]/page.tsx")
    assert route is not None
    assert route.href is None
    assert route.is_dynamic
    assert route.segments == ["market", "id"]
    assert route.trail == "Market • Id"

    static = normalize_app_route("app/(app)/market/page.tsx")
    assert static is not None and static.href == "/market"

    assert normalize_app_route("app/page.tsx") is None
    assert normalize_app_route("components/Card.tsx") is None


def test_spec_sections_are_parsed() -> None:
    assert extract_overview(SPEC) == "Trade collectibles with a Polkadot wallet."
    features = extract_features(SPEC)
    assert [feature.title for feature in features] == ["Listings", "Checkout", "Profiles"]
    assert features[0].description == "browse items for sale"
    assert features[2].description is None


def test_metadata_combines_routes_and_spec_features() -> None:
    files = [_page("app/(app)/market/page.tsx"), _page("app/(app)/settings/page.tsx")]
    metadata = infer_project_metadata(files, ProjectContext(title="Foo Marketplace", spec_markdown=SPEC))

    assert metadata["name"] == "Foo Marketplace"
    assert metadata["app"]["entryPath"] == "/market"
    assert metadata["hero"]["primaryCta"] == {"href": "/market", "label": "Launch Foo Marketplace"}
    assert [section["icon"] for section in metadata["app"]["sections"]] == ["overview", "settings"]
    assert [feature["title"] for feature in metadata["features"]] == ["Listings", "Checkout", "Profiles", "Market"]
    assert metadata["summary"] == "Trade collectibles with a Polkadot wallet."


def test_metadata_without_routes_points_at_experience() -> None:
    metadata = infer_project_metadata([], ProjectContext(prompt="a wallet dashboard\nsecond line"))
    assert metadata["name"] == "Polkadot Preview Studio"
    assert metadata["app"] == {"entryPath": "/experience", "sections": []}
    assert metadata["hero"]["primaryCta"]["label"] == "Enter Studio"
    assert metadata["summary"] == "a wallet dashboard"


def test_serialize_value_omits_empty_fields_and_escapes_quotes() -> None:
    rendered = serialize_value({"name": "Foo's", "href": None, "blank": " ", "flag": True, "items": []})
    assert rendered == "{\n  name: 'Foo\\'s',\n  flag: true,\n  items: []\n}"


def test_render_project_config_embeds_metadata() -> None:
    config = render_project_config([_page("app/market/page.tsx")], ProjectContext(title="Foo"))
    assert PROJECT_CONFIG_SPLIT_TOKEN in config
    assert "name: 'Foo'" in config
    assert config.endswith("}\n")
