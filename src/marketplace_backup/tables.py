"""Table definitions for the marketplace store.

SQLAlchemy Core ``MetaData`` describing the four tables the backup
pipeline reads and replaces.  Column names and defaults match the
marketplace backend's models, including its timestamp column names.

Fields holding nested lists (``price_options``, ``additional_images``,
``products``, ``assigned_executors``, ``discount_rules``) are ``TEXT``
columns storing JSON strings.  Backups carry them in that encoding.

Usage:
    from marketplace_backup.tables import metadata, expected_columns

    users = metadata.tables["users"]
    expected = expected_columns()
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
)

metadata = MetaData()

DEFAULT_ORDER_STATUS = "создан заказ"
DEFAULT_PRICE_COEFFICIENT = 5.25


def _timestamp(name: str) -> Column:
    return Column(
        name,
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password", String(255), nullable=False),
    Column("role", String(255), default="buyer"),
    Column("avatar", Text),
    Column("city", String(255)),
    Column("birthday", String(255)),
    Column("notes", Text),
    Column("initial_username", String(255)),
    _timestamp("registration_date"),
    _timestamp("updated_date"),
)

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("related_name", String(255)),
    Column("description", Text),
    Column("original_height", Float),
    Column("original_width", Float),
    Column("original_length", Float),
    Column("parts_count", Integer, default=1),
    Column("main_image", Text),
    Column("additional_images", Text),
    Column("price_options", Text, nullable=False),
    Column("is_visible", Boolean, default=True),
    Column("sales_count", Integer, default=0),
    Column("favorites_count", Integer, default=0),
    _timestamp("created_date"),
    _timestamp("updated_date"),
)

orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("products", Text),
    Column("total_price", Float),
    Column("status", String(255), default=DEFAULT_ORDER_STATUS),
    Column("notes", Text),
    Column("admin_notes", Text),
    Column("assigned_executors", Text),
    _timestamp("created_date"),
    _timestamp("updated_date"),
)

settings = Table(
    "settings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("payment_info", Text),
    Column("price_coefficient", Float, default=DEFAULT_PRICE_COEFFICIENT),
    Column("discount_rules", Text),
    Column("show_discount_on_products", Boolean, default=False),
)


def expected_columns() -> dict[str, set[str]]:
    """Expected column names per table, for schema validation."""
    return {
        name: {column.name for column in table.columns}
        for name, table in metadata.tables.items()
    }
