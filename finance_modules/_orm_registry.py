"""
Module ORM Registry (``finance_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``create_all_tables()`` is the entry point that registers every
model and then creates the schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``finance_modules``
packages and from ``finance_kernel.db.engine`` (allowed: modules -> kernel).
MUST NOT be imported by ``finance_kernel``.

Usage
-----
Scripts and ``tests/conftest.py`` call ``create_all_tables()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``finance_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import finance_kernel.models  # noqa: F401
    import finance_modules.project.orm  # noqa: F401
    import finance_modules.revenue.orm  # noqa: F401
    import finance_modules.wip.orm  # noqa: F401


def create_all_tables() -> None:
    """Register every ORM model, then create all tables on the active engine."""
    from finance_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
