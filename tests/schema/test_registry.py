"""Tests for joinery.registry: lookup and the reference linking pass."""

import pytest

from joinery import ConfigurationError, Field, Registry, Schema


def _user():
    return Schema(name="User", table="user", fields={"id": "integer"})


def test_get_and_contains():
    user = _user()
    registry = Registry(user)
    assert registry.get("User") is user
    assert registry["User"] is user
    assert "User" in registry
    assert list(registry) == [user]
    assert len(registry) == 1
    with pytest.raises(ConfigurationError, match="Unknown schema 'Foo'"):
        registry.get("Foo")


def test_add_rejects_non_schemas():
    with pytest.raises(ConfigurationError, match="Expected a Schema"):
        Registry().add("User")


def test_link_resolves_string_references():
    user = _user()
    image = Schema(name="Image", table="image", fields=[
        Field(name="id", type="integer"),
        Field(name="user_id", type="integer", references="User.id"),
    ])
    assert image.references == {}

    registry = Registry(user, image).link()

    assert registry is not None
    assert image.fields["user_id"].references is user.fields["id"]
    assert image.references == {"User": {"user_id": user.fields["id"]}}
    assert user.referenced == {"Image": {"id": [image.fields["user_id"]]}}


def test_link_is_idempotent(schemas):
    before = {name: list(bucket) for name, bucket in schemas["User"].referenced["Message"].items()}
    schemas.link()
    assert schemas["User"].referenced["Message"] == before


def test_link_records_field_references_declared_as_objects():
    user = _user()
    image = Schema(name="Image", table="image", fields=[
        Field(name="id", type="integer"),
        Field(name="user_id", type="integer", references=user.fields["id"]),
    ])
    Registry(user, image).link()
    assert user.referenced == {"Image": {"id": [image.fields["user_id"]]}}


def test_link_unknown_targets():
    image = Schema(name="Image", table="image", fields=[
        Field(name="id", type="integer"),
        Field(name="user_id", type="integer", references="User.id"),
    ])
    with pytest.raises(ConfigurationError, match="Unknown schema 'User'"):
        Registry(image).link()
    with pytest.raises(ConfigurationError, match="Unknown field 'Image.foo'"):
        Registry(image).resolve_field("Image.foo")
    with pytest.raises(ConfigurationError, match="Invalid reference"):
        Registry(image).resolve_field("id")
