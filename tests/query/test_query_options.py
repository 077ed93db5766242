"""Tests for Query construction, option methods, set_options and clone."""

import pytest

from joinery import ConfigurationError, Query, Raw, Schema, UsageError


class TestConstruction:

    def test_requires_a_schema(self):
        with pytest.raises(ConfigurationError, match="Query requires a Schema"):
            Query()

    def test_requires_a_schema_instance(self):
        with pytest.raises(ConfigurationError, match="Query requires a Schema instance"):
            Query("User")

    def test_requires_a_table(self):
        with pytest.raises(ConfigurationError, match="'Foo.table' is not configured"):
            Query(Schema(name="Foo", fields={"id": "integer"}))

    def test_root_alias_is_the_table_name(self, schemas):
        assert Query(schemas["User"]).alias == "user"


class TestFields:

    def test_names_fields_and_mappings(self, schemas):
        user = schemas["User"]
        query = Query(user).fields("name", user.fields["age"], {"years": "age", "label": Raw("'x'")})
        assert [(s.alias, s.field, s.raw) for s in query.options.fields] == [
            ("name", user.fields["name"], None),
            ("age", user.fields["age"], None),
            ("years", user.fields["age"], None),
            ("label", None, Raw("'x'")),
        ]

    def test_identity_is_always_selected(self, schemas):
        query = Query(schemas["User"]).fields(["name"])
        assert [s.alias for s in query.selected_fields] == ["id", "name"]
        assert query.identity_key == "id"

    def test_aliased_identity(self, schemas):
        query = Query(schemas["User"]).fields({"key": "id"})
        assert [s.alias for s in query.selected_fields] == ["key"]
        assert query.identity_key == "key"

    def test_all_fields_by_default(self, schemas):
        assert [s.alias for s in Query(schemas["User"]).selected_fields] == ["id", "name", "age", "confirmed"]

    def test_unknown_field(self, schemas):
        with pytest.raises(UsageError, match="Unknown field 'User.foo'"):
            Query(schemas["User"]).fields("foo")

    def test_field_of_another_schema(self, schemas):
        with pytest.raises(UsageError, match="Field 'Image.user_id' is not a field of 'User'"):
            Query(schemas["User"]).fields(schemas["Image"].fields["user_id"])

    def test_invalid_field_object(self, schemas):
        with pytest.raises(UsageError, match="Invalid field 1 for 'User'"):
            Query(schemas["User"]).fields(1)


class TestFieldValidation:

    @pytest.mark.parametrize("method", ["where", "where_not", "or_where", "or_where_not",
                                        "having", "having_not", "or_having", "or_having_not"])
    def test_where_family(self, schemas, method):
        with pytest.raises(UsageError, match="Unknown field 'User.foo'"):
            getattr(Query(schemas["User"]), method)({"foo": 1})

    @pytest.mark.parametrize("method", ["group_by", "order_by", "on"])
    def test_other_options(self, schemas, method):
        with pytest.raises(UsageError, match="Unknown field 'User.foo'"):
            getattr(Query(schemas["User"]), method)("foo")

    def test_invalid_clause(self, schemas):
        with pytest.raises(UsageError, match="Invalid where clause"):
            Query(schemas["User"]).where(42)


def test_order_by_directions(schemas):
    query = Query(schemas["User"]).order_by("id", {"name": -1, "age": "DESC"}, [{"confirmed": 1}])
    assert [(o.field.name, o.direction) for o in query.options.order_by] == [
        ("id", "asc"), ("name", "desc"), ("age", "desc"), ("confirmed", "asc"),
    ]
    with pytest.raises(UsageError, match="Invalid order direction"):
        Query(schemas["User"]).order_by({"id": 2})


@pytest.mark.parametrize("method", ["limit", "offset", "batch_size"])
def test_counts_must_be_non_negative_integers(schemas, method):
    for value in (-1, "1", True):
        with pytest.raises(UsageError, match=f"'{method}' must be a non-negative integer"):
            getattr(Query(schemas["User"]), method)(value)


class TestSetOptions:

    def test_dispatches_to_option_methods(self, schemas):
        image = Query(schemas["Image"])
        query = Query(schemas["User"]).set_options({
            "fields": ["name"],
            "where": {"id": 1},
            "order_by": {"name": "desc"},
            "limit": 5,
            "offset": 2,
            "first": True,
            "require": True,
            "forge": False,
            "join": [image],
        }, batch_size=10)
        options = query.options
        assert [s.alias for s in options.fields] == ["name"]
        assert len(options.where) == 1
        assert (options.limit, options.offset, options.batch_size) == (5, 2, 10)
        assert options.first and options.require and not options.forge
        assert query.children == [image]

    def test_as_and_on(self, schemas):
        query = Query(schemas["Message"]).set_options({"as": "sent", "on": "sender_id"})
        assert query.options.as_ == "sent"
        assert query.output_key == "sent"
        assert query.options.on == [schemas["Message"].fields["sender_id"]]

    def test_transaction_mapping(self, schemas):
        handle = object()
        query = Query(schemas["User"]).set_options(transaction={"transaction": handle, "for_update": True})
        assert query.options.locking.transaction is handle
        assert query.options.locking.for_update

    def test_within_is_transaction(self, schemas):
        handle = object()
        query = Query(schemas["User"]).set_options(within={"transaction": handle, "for_share": True})
        assert query.options.locking.transaction is handle
        assert query.options.locking.for_share
        assert Query(schemas["User"]).within(handle).options.locking.transaction is handle

    def test_unknown_option(self, schemas):
        with pytest.raises(UsageError, match="Unknown option 'foo'"):
            Query(schemas["User"]).set_options({"foo": "bar"})

    @pytest.mark.parametrize("name", ["fetch", "insert", "update", "delete", "count", "save", "set_options", "_walk"])
    def test_disallowed_options(self, schemas, name):
        with pytest.raises(UsageError, match=f"'{name}' is not an allowed option"):
            Query(schemas["User"]).set_options({name: True})


class TestJoin:

    def test_children_and_output_keys(self, schemas):
        image = Query(schemas["Image"])
        category = Query(schemas["ImageCategory"])
        query = Query(schemas["User"]).left_join(image.left_join(category))
        assert query.children == [image]
        assert image.parent is query
        assert category.root is query
        assert image.output_key == "image"
        assert category.output_key == "image_category"
        assert not image.options.require

    def test_join_makes_children_required(self, schemas):
        image = Query(schemas["Image"])
        Query(schemas["User"]).join(image)
        assert image.options.require

    def test_schemas_are_wrapped_in_queries(self, schemas):
        query = Query(schemas["User"]).left_join(schemas["Image"])
        assert isinstance(query.children[0], Query)
        assert query.children[0].model is schemas["Image"]

    def test_no_reference_path(self, schemas):
        with pytest.raises(UsageError, match="'User' has no references to 'ImageCategory'"):
            Query(schemas["User"]).join(Query(schemas["ImageCategory"]))

    def test_a_query_can_only_be_joined_once(self, schemas):
        image = Query(schemas["Image"])
        Query(schemas["User"]).join(image)
        with pytest.raises(UsageError, match="already part of this join tree"):
            Query(schemas["User"]).join(image)

    def test_a_query_cannot_join_itself(self, schemas):
        query = Query(schemas["User"])
        with pytest.raises(UsageError, match="already part of this join tree"):
            query.join(query)

    def test_invalid_join_target(self, schemas):
        with pytest.raises(UsageError, match="expected a Query or a Schema"):
            Query(schemas["User"]).join("Image")

    def test_join_options_apply_to_each_joined_query(self, schemas):
        image = Query(schemas["Image"])
        message = Query(schemas["Message"])
        query = Query(schemas["User"]).left_join(
            image, message, options={"fields": ["id"], "order_by": {"id": "desc"}}
        )
        assert [child.options.fields[0].alias for child in query.children] == ["id", "id"]
        assert message.options.order_by[0].direction == "desc"
        assert not image.options.require

    def test_join_options_keep_joins_required(self, schemas):
        image = Query(schemas["Image"])
        Query(schemas["User"]).join(image, options={"require": False, "as": "pictures"})
        assert image.options.require
        assert image.output_key == "pictures"

    def test_join_options_are_validated(self, schemas):
        with pytest.raises(UsageError, match="Unknown option 'foo'"):
            Query(schemas["User"]).left_join(Query(schemas["Image"]), options={"foo": 1})


def test_clone_is_independent(schemas):
    image = Query(schemas["Image"]).where({"id": 1})
    query = Query(schemas["User"]).where({"id": 1}).join(image)
    clone = query.clone()
    clone.where({"name": "x"})
    clone.children[0].where({"user_id": 2})
    assert len(query.options.where) == 1
    assert len(image.options.where) == 1
    assert clone.children[0] is not image
    assert clone.children[0].parent is clone
    assert clone.children[0].options.require
