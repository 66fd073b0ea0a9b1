"""
Change subscriptions for fileoverlay namespaces.

A ChangeSubscription is bound to a path pattern and fires its callbacks every
time something matching the pattern changes. Notifications carry no payload.
Callbacks run on whatever thread the namespace delivers notifications on (the
watchdog observer thread for disk namespaces), so they must not assume they
run on the caller's thread.
"""

import fnmatch
import logging
import threading
from typing import Callable, List, Optional

from .path_utils import normalize_path
from .types import ChangeCallback

logger = logging.getLogger(__name__)


class ChangeSubscription:
    """
    A cancellable subscription to changes under one path pattern.

    Unlike a one-shot change token, the subscription stays live across
    notifications until it is cancelled. ``has_changed`` records whether at
    least one notification has been delivered.
    """

    def __init__(self, pattern: str, on_cancel: Optional[Callable[['ChangeSubscription'], None]] = None):
        self.pattern = pattern
        self._match_pattern = normalize_path(pattern).casefold()
        self._on_cancel = on_cancel
        self._callbacks: List[ChangeCallback] = []
        self._lock = threading.Lock()
        self._active = True
        self.has_changed = False

    @property
    def active(self) -> bool:
        return self._active

    def matches(self, path: str) -> bool:
        """
        Check whether a namespace path falls under this subscription.

        Patterns use fnmatch syntax against the whole normalized path, so '*'
        also spans '/' ("*.html" matches "sub/page.html"). To watch one file
        whose name contains '*', '?' or '[', pass it through glob.escape().
        """
        return fnmatch.fnmatchcase(normalize_path(path).casefold(), self._match_pattern)

    def register_callback(self, callback: ChangeCallback) -> 'ChangeSubscription':
        """
        Add a callback invoked on every change notification.

        Args:
            callback: Zero-argument callable

        Returns:
            The subscription itself, for chaining

        Raises:
            TypeError: If callback is not callable
        """
        if not callable(callback):
            raise TypeError(f"Change callback must be callable, got {type(callback).__name__}")
        with self._lock:
            self._callbacks.append(callback)
        return self

    def notify(self) -> None:
        """Deliver one change notification to every registered callback."""
        with self._lock:
            if not self._active:
                return
            self.has_changed = True
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Change callback for pattern '{self.pattern}' raised: {e}", exc_info=True)

    def cancel(self) -> None:
        """Stop delivering notifications. Safe to call more than once."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._callbacks.clear()
        logger.debug(f"Cancelled change subscription for pattern '{self.pattern}'")
        if self._on_cancel is not None:
            self._on_cancel(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cancel()

    def __repr__(self):
        return f"ChangeSubscription(pattern={self.pattern!r}, active={self._active})"


class ChangeSubscriptionRegistry:
    """
    Bookkeeping for the live subscriptions of one namespace.

    Namespaces create subscriptions through ``subscribe`` and report changed
    paths through ``notify``; cancelled subscriptions remove themselves.
    """

    def __init__(self, on_empty: Optional[Callable[[], None]] = None):
        self._subscriptions: List[ChangeSubscription] = []
        self._lock = threading.Lock()
        self._on_empty = on_empty

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, pattern: str) -> ChangeSubscription:
        subscription = ChangeSubscription(pattern, on_cancel=self._remove)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug(f"Created change subscription for pattern '{pattern}'")
        return subscription

    def notify(self, path: str) -> int:
        """
        Notify every subscription whose pattern matches path.

        Args:
            path: Namespace path that changed

        Returns:
            Number of subscriptions notified
        """
        with self._lock:
            matching = [s for s in self._subscriptions if s.matches(path)]
        for subscription in matching:
            subscription.notify()
        return len(matching)

    def cancel_all(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.cancel()

    def _remove(self, subscription: ChangeSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
            now_empty = not self._subscriptions
        if now_empty and self._on_empty is not None:
            self._on_empty()
