from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All booking engine tables live in the schema named by config.SCHEMA.
    Engines that cannot host schemas (SQLite in tests and local development)
    map it away with the schema_translate_map execution option.
    """

    pass
