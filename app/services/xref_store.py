"""
SQLAlchemy-backed collaborators of the cross-reference engine.

  - SqlXrefStore: persists the card_xrefs relation. The in-memory index
    writes through to it; each apply() is one database transaction, so a
    batch of saves and deletes is either fully committed or not at all.
  - SqlEntityDirectory: answers "which of these ids still exist?" for one
    table (accounts or customers). The integrity auditor uses one per
    resolver.

Each call opens its own short-lived session from the session factory,
instead of borrowing the request session from get_db(): the index must know
the write is committed before it updates its views.

Database errors that mean "someone else changed this underneath us"
(IntegrityError, OperationalError such as a locked SQLite file) are turned
into XrefError(CONFLICT) so the caller can retry. Other SQLAlchemy errors
propagate unchanged.
"""

import logging
from typing import Iterable, Protocol, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import XrefError
from app.models.card_xref import CardXref, CardXrefRow

logger = logging.getLogger(__name__)

# Stay well under SQLite's bound-parameter limit in IN (...) clauses
_CHUNK_SIZE = 500


def _chunks(items: Sequence, size: int = _CHUNK_SIZE):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class XrefStore(Protocol):
    async def load_all(self) -> list[CardXref]: ...

    async def apply(self, saves: Sequence[CardXref], deletes: Sequence[str]) -> None: ...


class EntityDirectory(Protocol):
    async def existing_ids(self, ids: Iterable[int]) -> set[int]: ...


class SqlXrefStore:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def load_all(self) -> list[CardXref]:
        """Read every persisted record in primary key order."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(CardXrefRow).order_by(CardXrefRow.card_number)
            )
            return [CardXref.from_row(row) for row in result.scalars().all()]

    async def apply(self, saves: Sequence[CardXref], deletes: Sequence[str]) -> None:
        """
        Persist a batch in a single transaction.

        Deletes run first, then saves (insert or update by card number).

        Raises:
            XrefError(CONFLICT): The database rejected the batch; nothing
                was committed.
        """
        if not saves and not deletes:
            return

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    for chunk in _chunks(list(deletes)):
                        await session.execute(
                            delete(CardXrefRow).where(CardXrefRow.card_number.in_(chunk))
                        )
                    for xref in saves:
                        await session.merge(xref.to_row())
        except (IntegrityError, OperationalError) as exc:
            logger.error(
                "Cross-reference batch rejected by the database "
                "(%d saves, %d deletes): %s",
                len(saves), len(deletes), exc.orig,
            )
            raise XrefError.conflict(
                "Cross-reference data was changed concurrently; retry the operation"
            ) from exc


class SqlEntityDirectory:
    """Existence checks against one table with an integer `id` primary key."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], model):
        self._session_factory = session_factory
        self._model = model

    async def existing_ids(self, ids: Iterable[int]) -> set[int]:
        wanted = sorted({i for i in ids if i is not None})
        found: set[int] = set()
        if not wanted:
            return found

        async with self._session_factory() as session:
            for chunk in _chunks(wanted):
                result = await session.execute(
                    select(self._model.id).where(self._model.id.in_(chunk))
                )
                found.update(result.scalars().all())
        return found
