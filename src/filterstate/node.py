"""
FieldNode: the long-lived, observable holder of one field's state.

A node always has a current value. Subscribers are plain callbacks; a new
subscriber receives the current state immediately (unless it opts out),
then every subsequent state pushed with ``next``.
"""

import logging
from typing import Callable, List, Optional

from filterstate.state_model import FieldState

logger = logging.getLogger(__name__)

StateCallback = Callable[[FieldState], None]


class Subscription:
    """Handle returned by ``subscribe``; call ``unsubscribe`` to detach.

    Unsubscribing is idempotent.
    """

    def __init__(self, teardown: Optional[Callable[[], None]] = None):
        self._teardown = teardown
        self.closed = False

    def unsubscribe(self) -> None:
        if self.closed:
            return
        self.closed = True
        teardown, self._teardown = self._teardown, None
        if teardown is not None:
            teardown()


class FieldNode:
    """Current state of one field plus its subscribers.

    Nodes are created once per field when the group initializes and are
    never replaced. ``close`` drops every subscriber; a closed node ignores
    further updates.
    """

    def __init__(self, initial_state: FieldState):
        self._value = initial_state
        self._callbacks: List[StateCallback] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._value.name

    @property
    def value(self) -> FieldState:
        """Current state."""
        return self._value

    def next(self, state: FieldState) -> None:
        """Replace the current state and notify subscribers."""
        if self.closed:
            logger.debug(f"Ignoring update for closed node {self.name!r}")
            return
        self._value = state
        for callback in list(self._callbacks):
            try:
                callback(state)
            except Exception as e:
                logger.warning(f"Error in subscriber of field {self.name!r}: {e}")

    def subscribe(self, callback: StateCallback, emit_current: bool = True) -> Subscription:
        """Subscribe to state changes.

        Args:
            callback: Called with each new FieldState
            emit_current: Call back immediately with the current state

        Returns:
            Subscription that detaches the callback
        """
        if self.closed:
            subscription = Subscription()
            subscription.unsubscribe()
            return subscription
        self._callbacks.append(callback)

        def teardown():
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        subscription = Subscription(teardown)
        if emit_current:
            try:
                callback(self._value)
            except Exception as e:
                logger.warning(f"Error in subscriber of field {self.name!r}: {e}")
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def close(self) -> None:
        """Drop all subscribers and stop accepting updates."""
        self.closed = True
        self._callbacks.clear()
