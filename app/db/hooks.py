"""Deferred side effects bound to the outcome of a session's transaction."""

import logging
from typing import Callable, Dict, List

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_CALLBACKS_KEY = "transaction_callbacks"


def _callbacks(db: AsyncSession) -> Dict[str, List[Callable[[], None]]]:
    """Per-session callback lists; the event listeners are installed once."""
    callbacks = db.info.get(_CALLBACKS_KEY)
    if callbacks is not None:
        return callbacks

    callbacks = {"commit": [], "rollback": []}
    db.info[_CALLBACKS_KEY] = callbacks
    sync_session = db.sync_session

    def _run(outcome: str) -> None:
        pending = list(callbacks[outcome])
        callbacks["commit"].clear()
        callbacks["rollback"].clear()
        for fn in pending:
            try:
                fn()
            except Exception as e:
                logger.error(f"after-{outcome} callback failed: {e}", exc_info=True)

    @event.listens_for(sync_session, "after_commit")
    def _after_commit(session):
        _run("commit")

    @event.listens_for(sync_session, "after_rollback")
    def _after_rollback(session):
        _run("rollback")

    return callbacks


def on_commit(db: AsyncSession, callback: Callable[[], None]) -> None:
    """Run ``callback`` once the current transaction commits.

    Callbacks are dropped if the transaction rolls back. They run
    synchronously inside ``commit()`` and must not touch the database.
    """
    _callbacks(db)["commit"].append(callback)


def on_rollback(db: AsyncSession, callback: Callable[[], None]) -> None:
    """Run ``callback`` if the current transaction rolls back; dropped on commit."""
    _callbacks(db)["rollback"].append(callback)
