"""SQLAlchemy mapping metadata for the reconciliation domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    event,
    orm,
)
from sqlalchemy.orm import object_session, relationship

from valuation_recon.domain.errors import ImmutableRecordError
from valuation_recon.domain.model import (
    ChangeLedgerEntry,
    ChangeType,
    EntityKind,
    LineItem,
    LineItemVerdict,
    Override,
    Recommendation,
    ReconciliationSession,
    SessionStatus,
    Snapshot,
    SnapshotData,
    SnapshotReason,
    ValidationRun,
    Valuation,
    Verdict,
    parse_code_list,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.engine import Connection, Engine
    from sqlalchemy.orm import Mapper

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]

_VERDICTS_ADAPTER = TypeAdapter(list[LineItemVerdict])
_SNAPSHOT_ADAPTER = TypeAdapter(SnapshotData)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class CodeListType(TypeDecorator[tuple[str, ...]]):
    """Stores ``("A", "B")`` as ``"A,B"``, the provider's own list format."""

    impl = String(1024)
    cache_ok = True

    def process_bind_param(self, value: Iterable[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        codes = parse_code_list(value)
        return ",".join(codes) if codes else None

    def process_result_value(self, value: str | None, dialect: Dialect) -> tuple[str, ...]:
        _ = dialect
        return parse_code_list(value)


class VerdictListType(TypeDecorator[tuple[LineItemVerdict, ...]]):
    impl = Text
    cache_ok = True

    def process_bind_param(
        self, value: Iterable[LineItemVerdict] | None, dialect: Dialect
    ) -> str | None:
        _ = dialect
        if value is None:
            return None
        return _VERDICTS_ADAPTER.dump_json(list(value)).decode()

    def process_result_value(
        self, value: str | None, dialect: Dialect
    ) -> tuple[LineItemVerdict, ...]:
        _ = dialect
        if value is None:
            return ()
        return tuple(_VERDICTS_ADAPTER.validate_json(value))


class SnapshotDataType(TypeDecorator[SnapshotData]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: SnapshotData | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return _SNAPSHOT_ADAPTER.dump_json(value).decode()

    def process_result_value(self, value: str | None, dialect: Dialect) -> SnapshotData | None:
        _ = dialect
        if value is None:
            return None
        return _SNAPSHOT_ADAPTER.validate_json(value)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _value_columns() -> list[Column[Any]]:
    names = (
        "base_clean_trade_in",
        "base_average_trade_in",
        "base_rough_trade_in",
        "base_clean_retail",
        "base_loan_value",
        "clean_trade_in",
        "average_trade_in",
        "rough_trade_in",
        "clean_retail",
        "loan_value",
        "mileage_adjustment",
        "options_trade_in",
        "options_retail",
        "options_loan",
    )
    return [Column(name, Integer, nullable=True) for name in names]


# Valuations -------------------------------------------------------------------

valuation_table = Table(
    "valuation",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("vehicle_id", String(64), nullable=False),
    Column("provider", String(32), nullable=False),
    Column("provider_vehicle_id", String(64), nullable=True),
    Column("region", Integer, nullable=False, default=1),
    Column("mileage", Integer, nullable=True),
    *_value_columns(),
    Column("request_id", String(128), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_valuation_vehicle_provider", "vehicle_id", "provider", "created_at"),
)

line_item_table = Table(
    "line_item",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "valuation_id",
        UUIDColumnType,
        ForeignKey("valuation.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("code", String(64), nullable=False),
    Column("name", String(255), nullable=False),
    Column("category", String(64), nullable=True),
    Column("item_type", String(64), nullable=True),
    Column("msrp", Integer, nullable=True),
    Column("clean_trade_adj", Integer, nullable=True),
    Column("average_trade_adj", Integer, nullable=True),
    Column("rough_trade_adj", Integer, nullable=True),
    Column("clean_retail_adj", Integer, nullable=True),
    Column("loan_adj", Integer, nullable=True),
    Column("factory_installed", Boolean, nullable=False, default=False),
    Column("is_selected", Boolean, nullable=False, default=False),
    Column("is_available", Boolean, nullable=False, default=True),
    Column("includes_codes", CodeListType(), nullable=True),
    Column("excludes_codes", CodeListType(), nullable=True),
    UniqueConstraint("valuation_id", "code"),
)

# Validation runs, snapshots and the ledger ------------------------------------

validation_run_table = Table(
    "validation_run",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("valuation_id", UUIDColumnType, ForeignKey("valuation.id"), nullable=False),
    Column("source", String(32), nullable=False),
    Column("verdicts", VerdictListType(), nullable=False),
    Column("raw_payload", JSON, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_validation_run_valuation_id", "valuation_id"),
)

snapshot_table = Table(
    "snapshot",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("validation_run_id", UUIDColumnType, ForeignKey("validation_run.id"), nullable=False),
    Column("valuation_id", UUIDColumnType, ForeignKey("valuation.id"), nullable=False),
    Column("reason", Enum(SnapshotReason, native_enum=False), nullable=False),
    Column("description", Text, nullable=True),
    Column("data", SnapshotDataType(), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    UniqueConstraint("validation_run_id"),
)

change_ledger_table = Table(
    "change_ledger_entry",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("validation_run_id", UUIDColumnType, ForeignKey("validation_run.id"), nullable=False),
    Column("valuation_id", UUIDColumnType, ForeignKey("valuation.id"), nullable=False),
    Column("sequence", Integer, nullable=False),
    Column("change_type", Enum(ChangeType, native_enum=False), nullable=False),
    Column("entity_kind", Enum(EntityKind, native_enum=False), nullable=False),
    Column("entity_id", UUIDColumnType, nullable=True),
    Column("entity_code", String(64), nullable=True),
    Column("field_name", String(64), nullable=False),
    Column("before_value", Text, nullable=True),
    Column("after_value", Text, nullable=True),
    Column("value_delta", Integer, nullable=True),
    Column("reason", Text, nullable=False),
    Column("confidence", Float, nullable=True),
    Column("verdict", String(32), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    UniqueConstraint("validation_run_id", "sequence"),
)

# Sessions ---------------------------------------------------------------------

session_table = Table(
    "reconciliation_session",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("validation_run_id", UUIDColumnType, ForeignKey("validation_run.id"), nullable=False),
    Column("valuation_id", UUIDColumnType, ForeignKey("valuation.id"), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("expires_at", UTCDateTime(), nullable=False),
    Column("status", Enum(SessionStatus, native_enum=False), nullable=False),
    Column("applied_at", UTCDateTime(), nullable=True),
    UniqueConstraint("validation_run_id"),
    Index("ix_reconciliation_session_open", "valuation_id", "status", "expires_at"),
)

override_table = Table(
    "session_override",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "session_id",
        UUIDColumnType,
        ForeignKey("reconciliation_session.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("line_item_code", String(64), nullable=False),
    Column("line_item_name", String(255), nullable=True),
    Column("recommendation", Enum(Recommendation, native_enum=False), nullable=False),
    Column("original_selected", Boolean, nullable=False),
    Column("keep_original", Boolean, nullable=False, default=False),
    Column("verdict", Enum(Verdict, native_enum=False), nullable=True),
    Column("confidence", Float, nullable=True),
    UniqueConstraint("session_id", "line_item_code"),
)


def _reject_update(mapper: Mapper[Any], connection: Connection, target: object) -> None:
    _ = (mapper, connection)
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutableRecordError(
        f"{type(target).__name__} {getattr(target, 'id', '?')} is write-once and cannot change"
    )


@cache
def start_mappers() -> orm.registry:
    """Configure imperative mappings for domain entities."""

    mapper_registry.map_imperatively(
        LineItem,
        line_item_table,
    )
    mapper_registry.map_imperatively(
        Valuation,
        valuation_table,
        properties={
            "line_items": relationship(
                LineItem,
                cascade="all, delete-orphan",
                order_by=line_item_table.c.code,
                lazy="selectin",
            ),
        },
    )
    mapper_registry.map_imperatively(ValidationRun, validation_run_table)
    mapper_registry.map_imperatively(Snapshot, snapshot_table)
    mapper_registry.map_imperatively(ChangeLedgerEntry, change_ledger_table)
    mapper_registry.map_imperatively(Override, override_table)
    mapper_registry.map_imperatively(
        ReconciliationSession,
        session_table,
        properties={
            "overrides": relationship(
                Override,
                cascade="all, delete-orphan",
                order_by=override_table.c.line_item_code,
                lazy="selectin",
            ),
        },
    )

    for write_once in (Snapshot, ChangeLedgerEntry):
        event.listen(write_once, "before_update", _reject_update)

    log.debug("Reconciliation mappers configured")
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create tables for the current metadata (primarily for tests)."""

    mapper_registry.metadata.create_all(engine)
