"""
FastAPI dependencies for the cross-reference engine.

The engine is one explicitly owned object graph:

  CrossReferenceIndex  (owns the relation and its views)
      ├── IntegrityValidator   (reads the index + account/customer tables)
      ├── CascadeCoordinator   (batched removals on the index)
      └── CursorPager          (snapshots of the index)

init_xref_engine() builds that graph once and stores it on `app.state`
(the lifespan in main.py calls it at startup; tests call it with their own
session factory). Route handlers receive the pieces through the getters
below — there is no module-level index.
"""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.account import Account
from app.models.customer import Customer
from app.services.cascade_service import CascadeCoordinator
from app.services.integrity_service import IntegrityValidator
from app.services.pagination import CursorPager
from app.services.xref_index import CrossReferenceIndex
from app.services.xref_store import SqlEntityDirectory, SqlXrefStore


async def init_xref_engine(
    state,
    session_factory: async_sessionmaker[AsyncSession],
) -> CrossReferenceIndex:
    """
    Build the engine over `session_factory`, load the index from the
    database and attach everything to `state` (normally `app.state`).
    """
    index = CrossReferenceIndex(SqlXrefStore(session_factory))
    await index.load()

    state.xref_index = index
    state.integrity_validator = IntegrityValidator(
        index,
        accounts=SqlEntityDirectory(session_factory, Account),
        customers=SqlEntityDirectory(session_factory, Customer),
    )
    state.cascade_coordinator = CascadeCoordinator(index)
    state.cursor_pager = CursorPager(index)
    return index


def get_xref_index(request: Request) -> CrossReferenceIndex:
    return request.app.state.xref_index


def get_integrity_validator(request: Request) -> IntegrityValidator:
    return request.app.state.integrity_validator


def get_cascade_coordinator(request: Request) -> CascadeCoordinator:
    return request.app.state.cascade_coordinator


def get_cursor_pager(request: Request) -> CursorPager:
    return request.app.state.cursor_pager
