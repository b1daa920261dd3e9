"""
SequenceService -- persisted counter behind human-readable request ids.

Responsibility:
    Hands out monotonically increasing integers per named sequence and
    formats them as request ids (``REQ-00042``).  The counter lives in the
    ``sequence_counters`` table so numbering survives restarts.

Invariants enforced:
    - Monotonic: each call returns a value strictly greater than any value
      previously committed for the same sequence.
    - At-least-once safe: a value is committed before it is returned, so a
      crash after allocation leaves a gap, never a duplicate.

Non-goals:
    - Race-free allocation under true concurrency.  ``FOR UPDATE`` is used
      where the backend supports it; SQLite serializes writers instead.

Failure modes:
    - StorageUnavailableError on any database error.
"""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker

from approval_kernel.db.base import Base
from approval_kernel.db.engine import session_scope
from approval_kernel.exceptions import StorageUnavailableError
from approval_kernel.logging_config import get_logger

logger = get_logger("services.sequence")

REQUEST_SEQUENCE = "request_id"


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class Counter(Protocol):
    """Increment contract shared by the SQL and in-memory counters."""

    def next_value(self, sequence_name: str) -> int:
        ...


class SequenceService:
    """
    Counter persisted in ``sequence_counters``.

    Each allocation runs in its own committed transaction.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Postconditions:
            - Returns an integer > 0, strictly greater than any previously
              committed value for this sequence name.
        """
        try:
            with session_scope(self._session_factory) as session:
                value = self._increment(session, sequence_name)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("next_value", str(exc)) from exc

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing, or None if never used."""
        try:
            with session_scope(self._session_factory) as session:
                counter = session.execute(
                    select(SequenceCounter).where(SequenceCounter.name == sequence_name)
                ).scalar_one_or_none()
                return counter.current_value if counter else None
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("current_value", str(exc)) from exc

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: tests and data migrations only.  Resetting below a value
        already handed out produces duplicate request ids.
        """
        try:
            with session_scope(self._session_factory) as session:
                counter = session.execute(
                    select(SequenceCounter).where(SequenceCounter.name == sequence_name)
                ).scalar_one_or_none()
                if counter is None:
                    session.add(SequenceCounter(name=sequence_name, current_value=value))
                else:
                    counter.current_value = value
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("reset", str(exc)) from exc

    def _increment(self, session: Session, sequence_name: str) -> int:
        counter = session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
        ).scalar_one_or_none()

        if counter is None:
            savepoint = session.begin_nested()
            try:
                session.add(SequenceCounter(name=sequence_name, current_value=1))
                session.flush()
                savepoint.commit()
                return 1
            except IntegrityError:
                # Another invocation created the counter first.
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = session.execute(
                    select(SequenceCounter)
                    .where(SequenceCounter.name == sequence_name)
                    .with_for_update()
                ).scalar_one()

        counter.current_value += 1
        session.flush()
        return counter.current_value


class InMemorySequence:
    """Process-local counter for dry runs and tests."""

    def __init__(self, start: int = 0):
        self._values: dict[str, int] = {}
        self._start = start

    def next_value(self, sequence_name: str) -> int:
        value = self._values.get(sequence_name, self._start) + 1
        self._values[sequence_name] = value
        return value


class RequestIdGenerator:
    """Formats counter values as prefixed, zero-padded request ids."""

    def __init__(self, counter: Counter, prefix: str = "REQ-", width: int = 5):
        self._counter = counter
        self._prefix = prefix
        self._width = width

    def next_request_id(self) -> str:
        value = self._counter.next_value(REQUEST_SEQUENCE)
        return f"{self._prefix}{value:0{self._width}d}"
