"""Alembic helpers for developers sharing a database with QRLogin."""

from typing import Any

QRLOGIN_TABLES = frozenset(
    {
        "qrlogin_tokens",
        "qrlogin_alembic_version",
    }
)


def alembic_filters() -> dict[str, Any]:
    """Return Alembic filters that skip the QRLogin-managed tables.

    QRLogin migrates its own tables (``qr.migrate()``); autogenerate in the
    host application should leave them alone. Spread into your
    ``context.configure()``::

        from qrlogin import alembic_filters

        context.configure(
            ...,
            **alembic_filters(),
        )
    """

    def include_name(name: str | None, type_: str, parent_names: dict) -> bool:
        return not (type_ == "table" and name in QRLOGIN_TABLES)

    def include_object(
        object: Any, name: str | None, type_: str, reflected: bool, compare_to: Any
    ) -> bool:
        return not (type_ == "table" and name in QRLOGIN_TABLES)

    return {"include_name": include_name, "include_object": include_object}
