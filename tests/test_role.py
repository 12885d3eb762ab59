import pytest

from dcconnect.ids import INVALID_ROLE_ID
from dcconnect.role import Role, RoleManager


def role_data(snowflake="41771983423143936", name="WE DEM BOYZZ!!!!!!", **overrides):
    data = {
        "id": snowflake,
        "name": name,
        "color": 3447003,
        "hoist": True,
        "position": 1,
        "permissions": "66321471",
        "mentionable": False,
    }
    data.update(overrides)
    return data


def test_role_fields():
    role = Role(3, role_data())
    assert role.pawn_id == 3
    assert role.id == "41771983423143936"
    assert role.name == "WE DEM BOYZZ!!!!!!"
    assert role.color == 3447003
    assert role.hoist is True
    assert role.position == 1
    assert role.permissions == 66321471
    assert role.mentionable is False
    assert bool(role)


def test_role_without_id_is_invalid():
    role = Role(1, {"name": "x"})
    assert not role
    assert role.id == ""


def test_role_missing_last_field_is_invalid():
    data = role_data()
    del data["mentionable"]
    role = Role(1, data)
    assert not role
    assert role.permissions == 66321471


def test_role_without_permissions_raises():
    data = role_data()
    del data["permissions"]
    with pytest.raises(ValueError):
        Role(1, data)


def test_role_update_changes_fields():
    role = Role(1, role_data())
    role.update(role_data(name="renamed", position=4))
    assert role.name == "renamed"
    assert role.position == 4


def test_add_and_find():
    manager = RoleManager()
    role_id = manager.add_role(role_data())
    assert role_id != INVALID_ROLE_ID
    found = manager.find_role(role_id)
    assert found.id == "41771983423143936"
    assert manager.find_role_by_id("41771983423143936") is found


def test_add_same_role_twice_keeps_handle():
    manager = RoleManager()
    first = manager.add_role(role_data())
    second = manager.add_role(role_data(name="other"))
    assert first == second
    assert manager.find_role(first).name == "WE DEM BOYZZ!!!!!!"


def test_add_without_id():
    manager = RoleManager()
    assert manager.add_role({"name": "x"}) == INVALID_ROLE_ID


def test_remove_and_reuse_handle():
    manager = RoleManager()
    first = manager.add_role(role_data("1"))
    second = manager.add_role(role_data("2"))
    assert first != second
    manager.remove_role(manager.find_role(first))
    assert manager.find_role(first) is None
    assert manager.find_role_by_id("1") is None
    third = manager.add_role(role_data("3"))
    assert third == first
    assert manager.find_role(second).id == "2"


def test_find_unknown():
    manager = RoleManager()
    assert manager.find_role(5) is None
    assert manager.find_role_by_id("nope") is None