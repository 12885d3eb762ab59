import pytest

from dcconnect.jsonutil import (
    dump_json,
    format_number,
    get_value,
    has_fields,
    parse_number,
)


def test_dump_json_is_compact():
    assert dump_json({"nick": "abc"}) == '{"nick":"abc"}'


def test_dump_json_round_trips_through_get_value():
    text = dump_json({"content": "héllo", "tts": False})
    assert "héllo" in text
    assert '"tts":false' in text


def test_dump_json_rejects_unserializable():
    with pytest.raises(TypeError):
        dump_json({"bad": object()})


def test_get_value_top_level_string():
    assert get_value({"id": "123456"}, str, "id") == "123456"


def test_get_value_nested():
    data = {"user": {"id": "42", "name": "bob"}}
    assert get_value(data, str, "user", "id") == "42"


def test_get_value_missing_key():
    assert get_value({"a": "x"}, str, "b") is None


def test_get_value_wrong_type():
    assert get_value({"id": 5}, str, "id") is None
    assert get_value({"flag": 1}, bool, "flag") is None
    assert get_value({"n": "7"}, int, "n") is None
    assert get_value({"n": None}, int, "n") is None


def test_get_value_intermediate_not_object():
    assert get_value({"user": "notanobject"}, str, "user", "id") is None


def test_get_value_numbers():
    assert get_value({"position": 7}, int, "position") == 7
    assert get_value({"nsfw": True}, bool, "nsfw") is True
    assert get_value({"x": 3}, float, "x") == 3.0


def test_get_value_without_keys_converts_data():
    assert get_value("abc", str) == "abc"
    assert get_value(12, str) is None


def test_has_fields_simple():
    data = {"guild_id": "1", "user": {"id": "2"}, "roles": []}
    assert has_fields(data, "guild_id", str, "user", dict, "roles", list)
    assert not has_fields(data, "guild_id", str, "roles", dict)
    assert not has_fields(data, "missing", str)


def test_has_fields_nested():
    data = {"guild_id": "1", "user": {"id": "2"}}
    assert has_fields(data, "guild_id", str, "user", "id", str)
    assert not has_fields(data, "guild_id", str, "user", "id", int)
    assert not has_fields({"user": "x"}, "user", "id", str)


def test_has_fields_alternative_types():
    assert has_fields({"channel_id": None}, "channel_id", str, None)
    assert has_fields({"channel_id": "5"}, "channel_id", str, None)
    assert not has_fields({"channel_id": 5}, "channel_id", str, None)


def test_has_fields_bool_is_not_int():
    assert not has_fields({"n": True}, "n", int)
    assert has_fields({"n": True}, "n", bool)


def test_has_fields_empty_spec_is_true():
    assert has_fields([1, 2])


def test_has_fields_requires_type():
    with pytest.raises(TypeError):
        has_fields({"a": 1}, "a")


def test_parse_number_prefix():
    assert parse_number("12abc", int) == 12
    assert parse_number("1.234", int) == 1
    assert parse_number("-5", int) == -5


def test_parse_number_float_and_bool():
    assert parse_number("2.5", float) == 2.5
    assert parse_number("true", bool) is True
    assert parse_number("false", bool) is False


@pytest.mark.parametrize("text,kind", [("abc", int), ("", int), ("x1.0", float), ("yes", bool)])
def test_parse_number_rejects(text, kind):
    with pytest.raises(ValueError):
        parse_number(text, kind)


def test_parse_number_unknown_kind():
    with pytest.raises(TypeError):
        parse_number("1", list)


@pytest.mark.parametrize("value", [0, 1, 7, -42, 123456789, 2**40])
def test_format_number_round_trip(value):
    assert parse_number(format_number(value, 10), int) == value


@pytest.mark.parametrize("base", [2, 8, 16])
@pytest.mark.parametrize("value", [1, 255, 4096, -300])
def test_format_number_bases(value, base):
    assert int(format_number(value, base), base) == value


def test_format_number_hex_lowercase():
    assert format_number(255, 16) == "ff"


def test_format_number_bool():
    assert format_number(True, 10) == "true"
    assert format_number(False, 10) == "false"


def test_format_number_real_round_trip():
    assert parse_number(format_number(2.5, 10), float) == 2.5


def test_format_number_bad_base():
    with pytest.raises(ValueError):
        format_number(5, 7)