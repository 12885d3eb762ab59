from urllib.parse import unquote

from dcconnect.emoji import Emoji, EmojiManager, encode_emoji


def test_encode_custom_emoji():
    assert encode_emoji(Emoji("123", "party")) == "party:123"


def test_encode_unicode_emoji_bytes():
    assert encode_emoji(Emoji("", "\U0001f642")) == "%f0%9f%99%82"


def test_encode_unicode_round_trip():
    name = "\u2764\ufe0f"
    assert unquote(encode_emoji(Emoji("", name))) == name


def test_manager_assigns_handles_from_one():
    manager = EmojiManager()
    first = manager.add_emoji("", "a")
    second = manager.add_emoji("9", "b")
    assert (first, second) == (1, 2)
    assert manager.find_emoji(second) == Emoji("9", "b")


def test_manager_reuses_freed_handle():
    manager = EmojiManager()
    first = manager.add_emoji("", "a")
    manager.add_emoji("", "b")
    assert manager.delete_emoji(first) is True
    assert manager.add_emoji("", "c") == first


def test_manager_delete_missing():
    manager = EmojiManager()
    assert manager.delete_emoji(5) is False
    assert manager.find_emoji(5) is None