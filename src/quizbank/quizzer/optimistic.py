"""Snapshot-before-mutate helper for optimistic local updates."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from .errors import StoreError

logger = logging.getLogger(__name__)

S = TypeVar("S")
R = TypeVar("R")


def optimistic_update(
    get_state: Callable[[], S],
    set_state: Callable[[S], None],
    mutate: Callable[[S], S],
    commit: Callable[[], R],
    *,
    action: str = "update",
) -> R:
    """Apply ``mutate`` locally, then ``commit`` remotely.

    When ``commit`` raises ``StoreError`` the state captured before the
    mutation is restored and the error is re-raised. ``mutate`` must return a
    new state rather than change the snapshot in place.
    """
    snapshot = get_state()
    set_state(mutate(snapshot))
    try:
        return commit()
    except StoreError as exc:
        set_state(snapshot)
        logger.warning(
            "Rolled back optimistic %s",
            action,
            extra={"action": action, "error": exc.message},
        )
        raise
