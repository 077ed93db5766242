import os
import pytest
from joinery import Field, Registry, Schema, close_connections, connect, create_table


@pytest.fixture(autouse=True)
def default_connection():
    """Register an in-memory `default` connection; nothing is opened until a statement runs."""
    connect("sqlite:///:memory:")
    yield


@pytest.fixture(scope="function")
async def setup_db(request, default_connection):
    """Setup a temporary file SQLite database for each test."""
    os.makedirs("/tmp/joinery-tests", exist_ok=True)
    path = f"/tmp/joinery-tests/test-{request.function.__module__}-{request.function.__name__}.sqlite3"
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    connect(f"sqlite:///{path}")
    yield path
    await close_connections()


@pytest.fixture
def schemas():
    """User, ImageCategory, Image and Message, linked in one registry."""
    user = Schema(name="User", table="user", fields=[
        Field(name="id", type="integer", primary=True),
        Field(name="name", type="string", required=True),
        Field(name="age", type="integer"),
        Field(name="confirmed", type="boolean", default=False),
    ])
    image_category = Schema(name="ImageCategory", table="image_category", fields=[
        Field(name="id", type="integer", primary=True),
        Field(name="name", type="string"),
    ])
    image = Schema(name="Image", table="image", fields=[
        Field(name="id", type="integer", primary=True),
        Field(name="user_id", type="integer", references="User.id"),
        Field(name="category_id", type="integer", references="ImageCategory.id"),
    ])
    message = Schema(name="Message", table="message", fields=[
        Field(name="id", type="integer", primary=True),
        Field(name="text", type="text"),
        Field(name="sender_id", type="integer", references="User.id"),
        Field(name="receiver_id", type="integer", references="User.id"),
    ])
    return Registry(user, image_category, image, message).link()


@pytest.fixture
async def tables(setup_db, schemas):
    """Create the tables of `schemas` in the test database."""
    for schema in schemas:
        await create_table(schema)
    return schemas
