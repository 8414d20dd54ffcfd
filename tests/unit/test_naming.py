import pytest

from preview_orchestrator.pipeline.naming import (
    extract_project_name,
    extract_user_provided_name,
    sanitize_name,
    to_title_case,
)


@pytest.mark.parametrize(
    ("brief", "expected"),
    [
        ("Build a marketplace called Foo", "Foo"),
        ("Build an NFT app named DOT Swap, please", "DOT Swap"),
        ("Please name it moonbeam hub.", "Moonbeam Hub"),
        ("A staking dashboard known as 'Stake Pilot'!", "Stake Pilot"),
        ("The project name is Relay Garden", "Relay Garden"),
        ('I need the "Parachain Pals" app for my community', "Parachain Pals"),
        ("I want a dapp named awesome trading platform.", "Awesome Trading"),
    ],
)
def test_extract_project_name(brief: str, expected: str) -> None:
    assert extract_project_name(brief) == expected


def test_brief_without_a_name() -> None:
    assert extract_project_name("Build a wallet dashboard for tracking balances") is None


def test_title_case_keeps_acronyms() -> None:
    assert to_title_case("nft gallery") == "Nft Gallery"
    assert to_title_case("NFT gallery") == "NFT Gallery"
    assert to_title_case("DOT") == "DOT"
    assert to_title_case("") == ""


def test_sanitize_name_strips_quotes_and_connectors() -> None:
    assert sanitize_name('"Foo   Bar" with') == "Foo Bar"
    assert sanitize_name("  ") is None


def test_user_provided_name_is_lenient() -> None:
    assert extract_user_provided_name("  'Foo Bar!'  ") == "Foo Bar"
    assert extract_user_provided_name("x") is None
    assert extract_user_provided_name("y" * 61) is None
