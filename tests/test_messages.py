import pytest

from framed.messages import (
    ConsoleMessage,
    DiscordMessage,
    MissingRequiredFieldError,
    TwitchMessage,
    author_id,
)
from framed.model import ParsedMessage, Place


def test_discord_place_prefers_guild() -> None:
    message = DiscordMessage(content="hi", channel_id="c", author_id="u", guild_id="g")
    assert message.platform == "discord"
    assert message.place == Place(id="g", platform="discord")
    assert not message.is_direct


def test_discord_direct_message_place_is_channel() -> None:
    message = DiscordMessage(content="hi", channel_id="dm", author_id="u")
    assert message.is_direct
    assert message.place == Place(id="dm", platform="discord")


@pytest.mark.parametrize("field", ["channel_id", "author_id"])
def test_discord_requires_identity_fields(field) -> None:
    values = {"content": "hi", "channel_id": "c", "author_id": "u"}
    values[field] = " "
    with pytest.raises(MissingRequiredFieldError) as excinfo:
        DiscordMessage(**values)
    assert excinfo.value.platform == "discord"
    assert excinfo.value.field_name == field


def test_twitch_requires_channel() -> None:
    with pytest.raises(MissingRequiredFieldError, match="channel"):
        TwitchMessage(content="hi", channel="", user_id="1")


def test_content_must_be_text() -> None:
    with pytest.raises(MissingRequiredFieldError, match="content"):
        ConsoleMessage(content=None)  # type: ignore[arg-type]


def test_empty_content_is_allowed() -> None:
    assert ConsoleMessage(content="").content == ""


def test_author_id_per_platform() -> None:
    assert author_id(DiscordMessage(content="", channel_id="c", author_id="d")) == "d"
    assert author_id(TwitchMessage(content="", channel="c", user_id="t")) == "t"
    assert author_id(ConsoleMessage(content="")) == "operator"


def test_twitch_place_is_channel() -> None:
    message = TwitchMessage(content="hi", channel="streamer", user_id="1")
    assert message.channel_id == "streamer"
    assert message.place == Place(id="streamer", platform="twitch")


def test_parsed_message_without_prefix_has_no_command() -> None:
    with pytest.raises(ValueError):
        ParsedMessage(raw_content="x", command_name="x")
    with pytest.raises(ValueError):
        ParsedMessage(raw_content="x", args=("x",))
