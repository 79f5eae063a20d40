"""
Module ORM Registry (``books_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy model is imported so that
``Base.metadata`` holds its table before DDL runs.  ``create_all_tables()``
is the one way scripts and ``tests/conftest.py`` get a complete schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports sibling ``books_modules`` packages
and ``books_kernel.db.engine`` (modules -> kernel).  MUST NOT be imported
by ``books_kernel``.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import kernel models, then every ``books_modules.*.orm``.  Idempotent."""
    # Kernel tables first; module tables hold foreign keys to them.
    import books_kernel.models  # noqa: F401
    # fmt: off
    import books_modules.inventory.orm  # noqa: F401
    import books_modules.assets.orm  # noqa: F401
    import books_modules.planning.orm  # noqa: F401
    import books_modules.costing.orm  # noqa: F401
    # fmt: on


def create_all_tables(engine: Engine | None = None) -> None:
    """Register all ORM models and create every table."""
    from books_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
