"""
Module: warehouse_kernel.db.base
Responsibility: Declarative base for every ORM model in the kernel: UUID
    primary keys stored as text, named constraints, and the TrackedBase
    audit columns that the write paths stamp on every Core UPDATE.
Architecture position: Kernel > DB.  Imported by models/ and services/;
    imports nothing from the kernel itself.

Invariants enforced:
    - Primary keys are uuid4 values stored as String(36), so the same schema
      runs on PostgreSQL and SQLite.
    - Constraints and indexes get deterministic names from
      ``NAMING_CONVENTION``; the constraint that blocks deleting a reserved
      record is called ``fk_stock_reservations_...`` on every database.
    - Audited tables always know who created a row; who last changed it is
      filled by ``TrackedBase.audit_values``.
"""

from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, MetaData, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """UUID column stored as its 36-character text form.

    Accepts UUID objects or any string ``uuid.UUID`` parses (hex with or
    without dashes, any case) and always writes the canonical lowercase
    form, so ids coming from URLs or spreadsheets match stored rows.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, PyUUID):
            value = PyUUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        return PyUUID(value) if value is not None else None


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Rows with creation and last-change audit columns.

    ``updated_at`` refreshes on every UPDATE, including the Core statements
    the write paths issue; ``updated_by_id`` only when the writer passes
    ``audit_values(actor_id)`` along with its own column values.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(UUIDString(), nullable=False)

    updated_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)

    @classmethod
    def audit_values(cls, actor_id: PyUUID | None) -> dict[str, Any]:
        """Extra ``values()`` for a Core UPDATE made on behalf of ``actor_id``."""
        return {"updated_by_id": actor_id} if actor_id is not None else {}


UUID = PyUUID
