import pytest

from framed.prefixes import (
    MutablePrefixProvider,
    StaticPrefixProvider,
    build_prefix_candidates,
    longest_first,
    mention_prefixes,
    parse_message,
    resolve_prefix,
)


def test_first_listed_candidate_wins() -> None:
    match = resolve_prefix("!!ping", ["!!", "!"])
    assert match is not None
    assert match.prefix == "!!"
    assert match.args_content == "ping"


def test_list_order_beats_length() -> None:
    match = resolve_prefix("!!ping", ["!", "!!"])
    assert match is not None
    assert match.prefix == "!"
    assert match.args_content == "!ping"


def test_longest_first_reorders_candidates() -> None:
    assert longest_first(["!", "!!", "?"]) == ["!!", "!", "?"]
    match = resolve_prefix("!!ping", longest_first(["!", "!!"]))
    assert match is not None
    assert match.prefix == "!!"


def test_no_match_returns_none() -> None:
    assert resolve_prefix("hello", ["!", "?"]) is None
    assert resolve_prefix("", ["!"]) is None


def test_empty_candidates_are_ignored() -> None:
    match = resolve_prefix("hello", ["", "he"])
    assert match is not None
    assert match.prefix == "he"


def test_remainder_is_stripped() -> None:
    match = resolve_prefix("!   ping  now  ", ["!"])
    assert match is not None
    assert match.args_content == "ping  now"


def test_mention_prefixes() -> None:
    assert mention_prefixes("42") == ("<@42>", "<@!42>")
    assert mention_prefixes(None) == ()


def test_build_prefix_candidates_orders_and_dedupes() -> None:
    candidates = build_prefix_candidates(
        command_prefixes=["$", "!"],
        place_prefix="?",
        mentions=["<@1>"],
        default_prefix="!",
    )
    assert candidates == ["$", "!", "?", "<@1>"]


def test_parse_message_without_prefix() -> None:
    parsed = parse_message("just chatting", ["!"])
    assert parsed.prefix is None
    assert parsed.command_name is None
    assert parsed.args == ()
    assert not parsed.is_command


def test_parse_message_lowercases_command_and_drops_it_from_args() -> None:
    parsed = parse_message('!PING "a b" c', ["!"])
    assert parsed.prefix == "!"
    assert parsed.command_name == "ping"
    assert parsed.args == ("a b", "c")
    assert parsed.args_content == 'PING "a b" c'


def test_parse_message_prefix_only() -> None:
    parsed = parse_message("!", ["!"])
    assert parsed.prefix == "!"
    assert parsed.command_name is None
    assert parsed.args == ()


def test_parse_message_mention_prefix() -> None:
    parsed = parse_message("<@42> ping", list(mention_prefixes("42")))
    assert parsed.prefix == "<@42>"
    assert parsed.command_name == "ping"


@pytest.mark.anyio
async def test_static_provider_set_and_clear() -> None:
    provider = StaticPrefixProvider({"guild": "?"})
    assert isinstance(provider, MutablePrefixProvider)
    assert await provider.lookup("guild") == "?"
    assert await provider.lookup("other") is None

    await provider.set_prefix("other", "  $ ")
    assert await provider.lookup("other") == "$"

    await provider.set_prefix("guild", "   ")
    assert await provider.lookup("guild") is None

    await provider.clear_prefix("other")
    assert await provider.lookup("other") is None
