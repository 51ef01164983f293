"""
SQLAlchemy-backed admission ledger.

Admission is a single conditional UPDATE (`... WHERE ticket_id = :id AND state = :expected`);
the row count tells us whether this caller won. The winning admission's audit
record is inserted in the same transaction.

An in-memory SQLite database lives on one shared connection, so its sessions are
serialised behind a lock; otherwise one thread's commit or rollback would land in
another thread's open transaction.
"""

import threading
from contextlib import nullcontext
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Engine, Integer, LargeBinary, String, create_engine, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from gatepass.ledger.base import AdmissionLedger
from gatepass.ledger.models import AdmissionAttempt, Outcome, Ticket, TicketState, TicketTier, is_legal_transition
from gatepass.logging_utils import get_logger
from gatepass.security.proofs.errors import (
    IllegalStateTransitionError,
    TicketAlreadyExistsError,
    TicketNotFoundError,
    VerificationUnavailableError,
)

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class TicketRow(Base):
    __tablename__ = "tickets"

    ticket_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    event_id: Mapped[str] = mapped_column(String(128), index=True)
    tier: Mapped[str] = mapped_column(String(16))
    owner_id: Mapped[str] = mapped_column(String(128), index=True)
    holder_display_name: Mapped[str] = mapped_column(String(256), default="")
    sealed_secret: Mapped[bytes] = mapped_column(LargeBinary)
    state: Mapped[str] = mapped_column(String(8), default=TicketState.VALID.value)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    admitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admitted_by: Mapped[str | None] = mapped_column(String(128), nullable=True)


class AdmissionAttemptRow(Base):
    __tablename__ = "admission_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attempt_id: Mapped[str] = mapped_column(String(32), unique=True)
    ticket_id: Mapped[str] = mapped_column(String(64), index=True)
    presented_proof: Mapped[str] = mapped_column(String(64))
    window_index: Mapped[int] = mapped_column(BigInteger)
    outcome: Mapped[str] = mapped_column(String(16), index=True)
    scanner_id: Mapped[str] = mapped_column(String(128))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_ticket(row: TicketRow) -> Ticket:
    return Ticket(
        ticket_id=row.ticket_id,
        event_id=row.event_id,
        tier=TicketTier(row.tier),
        owner_id=row.owner_id,
        holder_display_name=row.holder_display_name,
        sealed_secret=row.sealed_secret,
        state=TicketState(row.state),
        issued_at=_as_utc(row.issued_at),
        admitted_at=_as_utc(row.admitted_at),
        admitted_by=row.admitted_by,
    )


def _to_attempt(row: AdmissionAttemptRow) -> AdmissionAttempt:
    return AdmissionAttempt(
        attempt_id=row.attempt_id,
        ticket_id=row.ticket_id,
        presented_proof=row.presented_proof,
        window_index=row.window_index,
        outcome=Outcome(row.outcome),
        scanner_id=row.scanner_id,
        timestamp=_as_utc(row.timestamp),
    )


def _attempt_row(attempt: AdmissionAttempt) -> AdmissionAttemptRow:
    return AdmissionAttemptRow(
        attempt_id=attempt.attempt_id,
        ticket_id=attempt.ticket_id,
        presented_proof=attempt.presented_proof,
        window_index=attempt.window_index,
        outcome=attempt.outcome.value,
        scanner_id=attempt.scanner_id,
        timestamp=attempt.timestamp,
    )


class SqlLedger(AdmissionLedger):
    def __init__(self, engine: Engine, serialize_sessions: bool = False) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)
        self._lock = threading.RLock() if serialize_sessions else nullcontext()

    @classmethod
    def from_url(cls, database_url: str, create_tables: bool = True) -> "SqlLedger":
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            ledger = cls(engine, serialize_sessions=True)
        elif database_url.startswith("sqlite"):
            engine = create_engine(database_url, connect_args={"check_same_thread": False, "timeout": 15})
            ledger = cls(engine)
        else:
            engine = create_engine(database_url, pool_pre_ping=True)
            ledger = cls(engine)

        if create_tables:
            ledger.create_tables()
        return ledger

    def create_tables(self) -> None:
        with self._lock:
            Base.metadata.create_all(self.engine)

    def insert_ticket(self, ticket: Ticket) -> None:
        row = TicketRow(
            ticket_id=ticket.ticket_id,
            event_id=ticket.event_id,
            tier=ticket.tier.value,
            owner_id=ticket.owner_id,
            holder_display_name=ticket.holder_display_name,
            sealed_secret=ticket.sealed_secret,
            state=ticket.state.value,
            issued_at=ticket.issued_at,
            admitted_at=ticket.admitted_at,
            admitted_by=ticket.admitted_by,
        )
        try:
            with self._lock, self._session_factory.begin() as session:
                session.add(row)
        except IntegrityError:
            raise TicketAlreadyExistsError(ticket.ticket_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert ticket {ticket.ticket_id}: {e}")
            raise VerificationUnavailableError("Ledger unavailable") from e

    def get_ticket(self, ticket_id: str) -> Ticket:
        try:
            with self._lock, self._session_factory() as session:
                row = session.get(TicketRow, ticket_id)
                ticket = None if row is None else _to_ticket(row)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read ticket {ticket_id}: {e}")
            raise VerificationUnavailableError("Ledger unavailable") from e

        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def compare_and_set_state(
        self,
        ticket_id: str,
        expected: TicketState,
        new: TicketState,
        admitted_at: datetime | None = None,
        admitted_by: str | None = None,
        attempt: AdmissionAttempt | None = None,
    ) -> bool:
        if not is_legal_transition(expected, new):
            raise IllegalStateTransitionError(ticket_id, expected, new)

        values: dict = {"state": new.value}
        if new == TicketState.USED:
            values["admitted_at"] = admitted_at
            values["admitted_by"] = admitted_by

        stmt = (
            update(TicketRow)
            .where(TicketRow.ticket_id == ticket_id, TicketRow.state == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            with self._lock, self._session_factory.begin() as session:
                result = session.execute(stmt)
                if result.rowcount != 1:
                    exists = session.scalar(select(TicketRow.ticket_id).where(TicketRow.ticket_id == ticket_id))
                    if exists is None:
                        raise TicketNotFoundError(ticket_id)
                    return False
                if attempt is not None:
                    session.add(_attempt_row(attempt))
        except SQLAlchemyError as e:
            logger.error(f"Conditional update failed for ticket {ticket_id}: {e}")
            raise VerificationUnavailableError("Ledger unavailable") from e

        logger.debug(f"Ticket {ticket_id} moved {expected.value} -> {new.value}")
        return True

    def append_attempt(self, attempt: AdmissionAttempt) -> None:
        try:
            with self._lock, self._session_factory.begin() as session:
                session.add(_attempt_row(attempt))
        except SQLAlchemyError as e:
            logger.error(f"Failed to append admission attempt for {attempt.ticket_id}: {e}")
            raise VerificationUnavailableError("Ledger unavailable") from e

    def list_attempts(self, ticket_id: str) -> list[AdmissionAttempt]:
        stmt = (
            select(AdmissionAttemptRow)
            .where(AdmissionAttemptRow.ticket_id == ticket_id)
            .order_by(AdmissionAttemptRow.id)
        )
        try:
            with self._lock, self._session_factory() as session:
                return [_to_attempt(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list admission attempts for {ticket_id}: {e}")
            raise VerificationUnavailableError("Ledger unavailable") from e
