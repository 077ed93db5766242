"""Tests for joinery.builder.SqlBuilder rendering."""

import logging

import pytest

from joinery.builder import SqlBuilder
from joinery.dialects import SqliteDialect


@pytest.fixture
def builder():
    return SqlBuilder("user", dialect=SqliteDialect())


def test_select_all_by_default(builder):
    assert builder.to_select() == ('SELECT * FROM "user"', ())


def test_columns_with_aliases_and_values(builder):
    builder.columns([
        ('"user"."id"', "user.id", ()),
        ("? + 1", "user.next", (41,)),
    ])
    builder.where('"user"."id" = ?', [1])
    assert builder.to_select() == (
        'SELECT "user"."id" AS "user.id", ? + 1 AS "user.next" FROM "user" WHERE "user"."id" = ?',
        (41, 1),
    )


def test_predicate_variants(builder):
    builder.where("a = ?", [1])
    builder.where_not("b = ?", [2])
    builder.or_where("c = ?", [3])
    builder.or_where_not("d = ?", [4])
    assert builder.to_select() == (
        'SELECT * FROM "user" WHERE a = ? AND NOT (b = ?) OR c = ? OR NOT (d = ?)',
        (1, 2, 3, 4),
    )


def test_first_predicate_ignores_its_boolean(builder):
    builder.or_where("a = ?", [1])
    assert builder.to_select()[0] == 'SELECT * FROM "user" WHERE a = ?'


def test_clause_order(builder):
    builder.columns([('"user"."id"', "user.id", ())])
    builder.join("left", "image", "t1", {'"t1"."user_id"': '"user"."id"'})
    builder.join("inner", "message", "t2", {'"t2"."sender_id"': '"user"."id"', '"t2"."id"': '"user"."id"'})
    builder.having("COUNT(*) > ?", [2])
    builder.where("x = ?", [1])
    builder.order_by('"user"."id"', "desc")
    builder.group_by('"user"."id"')
    builder.offset(20)
    builder.limit(10)
    assert builder.to_select() == (
        'SELECT "user"."id" AS "user.id" FROM "user" '
        'LEFT JOIN "image" AS "t1" ON "t1"."user_id" = "user"."id" '
        'INNER JOIN "message" AS "t2" ON "t2"."sender_id" = "user"."id" AND "t2"."id" = "user"."id" '
        'WHERE x = ? GROUP BY "user"."id" HAVING COUNT(*) > ? ORDER BY "user"."id" DESC LIMIT 10 OFFSET 20',
        (1, 2),
    )


def test_offset_without_limit(builder):
    builder.offset(5)
    assert builder.to_select()[0] == 'SELECT * FROM "user" LIMIT -1 OFFSET 5'


def test_sqlite_has_no_lock_clause(builder):
    builder.for_update()
    assert builder.to_select()[0] == 'SELECT * FROM "user"'


def test_count(builder):
    builder.columns([('"user"."id"', "user.id", ())])
    builder.count()
    assert builder.to_select()[0] == 'SELECT COUNT(*) AS "count" FROM "user"'
    builder.count('"user"."age"', distinct=True)
    assert builder.to_select()[0] == 'SELECT COUNT(DISTINCT "user"."age") AS "count" FROM "user"'


def test_aliased_table():
    builder = SqlBuilder("user", "u", dialect=SqliteDialect())
    assert builder.to_select()[0] == 'SELECT * FROM "user" AS "u"'


def test_insert(builder):
    builder.returning([('"id"', "user.id"), ('"name"', "user.name")])
    assert builder.to_insert([{"name": "a"}, {"name": "b", "age": 3}]) == (
        'INSERT INTO "user" ("name", "age") VALUES (?, ?), (?, ?) RETURNING "id" AS "user.id", "name" AS "user.name"',
        ("a", None, "b", 3),
    )


def test_insert_default_values(builder):
    assert builder.to_insert([{}]) == ('INSERT INTO "user" DEFAULT VALUES', ())


def test_update(builder):
    builder.where('"user"."id" = ?', [1])
    builder.returning([('"id"', "user.id")])
    assert builder.to_update({"name": "a", "age": 2}) == (
        'UPDATE "user" SET "name" = ?, "age" = ? WHERE "user"."id" = ? RETURNING "id" AS "user.id"',
        ("a", 2, 1),
    )


def test_delete(builder):
    builder.where('"user"."id" IN (?, ?)', [1, 2])
    assert builder.to_delete() == ('DELETE FROM "user" WHERE "user"."id" IN (?, ?)', (1, 2))


def test_qualify_quotes_identifiers(builder):
    assert builder.qualify("t1", 'we"ird') == '"t1"."we""ird"'


class FakeTransaction:

    def __init__(self):
        self.statements = []

    async def execute(self, sql, values=()):
        self.statements.append((sql, values))
        return [{"count": 3}]


@pytest.mark.asyncio
async def test_statements_run_on_the_transaction_handle(builder):
    transaction = FakeTransaction()
    builder.transacting(transaction).count()
    assert await builder.select() == [{"count": 3}]
    assert await builder.first() == {"count": 3}
    assert transaction.statements == [
        ('SELECT COUNT(*) AS "count" FROM "user"', ()),
        ('SELECT COUNT(*) AS "count" FROM "user" LIMIT 1', ()),
    ]


@pytest.mark.asyncio
async def test_statements_are_logged(builder, caplog):
    builder.transacting(FakeTransaction()).where('"user"."id" = ?', [1])
    with caplog.at_level(logging.DEBUG, logger="joinery"):
        await builder.select()
    assert caplog.records[-1].getMessage() == """SELECT * FROM "user" WHERE "user"."id" = ? (1,)"""
