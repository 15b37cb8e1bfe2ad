"""Administrative schema reset.

Nothing in the runtime calls into this module; it backs the
``countkeeper.scripts.reset_schema`` command only.
"""

from __future__ import annotations

import logging

from sqlalchemy import MetaData, inspect, text
from sqlalchemy.engine import Engine

from countkeeper.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def reset_schema(engine: Engine, schema: str, *, confirm: str) -> list[str]:
    """Drop every table in ``schema``.

    Args:
        engine: Engine connected to the target database.
        schema: Name of the schema to empty (``"public"``, ``"main"`` for SQLite, ...).
        confirm: Must repeat ``schema`` exactly; guards against accidental wipes.

    Returns:
        Names of the dropped tables.
    """
    if not schema:
        raise ConfigurationError("a schema name is required to reset tables")
    if confirm != schema:
        raise ConfigurationError(f"refusing to reset schema {schema!r} without confirmation")

    names = inspect(engine).get_table_names(schema=schema)
    with engine.begin() as connection:
        if connection.dialect.name == "postgresql":
            preparer = connection.dialect.identifier_preparer
            qualified = preparer.quote_schema(schema)
            for name in names:
                connection.execute(text(f"DROP TABLE IF EXISTS {qualified}.{preparer.quote(name)} CASCADE"))
        else:
            metadata = MetaData()
            metadata.reflect(bind=connection, schema=schema)
            metadata.drop_all(bind=connection)

    logger.warning("Dropped %d tables in schema %s", len(names), schema)
    return names
