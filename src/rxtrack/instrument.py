"""Binding between a SubscriptionTracker and reactivex observables.

reactivex's ``Observable.subscribe`` returns a plain disposable that cannot
report completion or error. This module adapts it to the tracker's contract
by returning a :class:`TrackedDisposable` whose teardown callbacks fire on
dispose, completion and error, then installs the tracker-wrapped result on
the observable class.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from threading import RLock
from typing import Any

import reactivex
from reactivex import abc
from reactivex.internal import default_error

from rxtrack.exceptions import AlreadyInstalledError, InstrumentationError
from rxtrack.logging import get_logger
from rxtrack.tracker import SubscriptionTracker

LOG = get_logger(__name__)

_TRACKER_ATTR = "_rxtrack_tracker"
_PREVIOUS_ATTR = "_rxtrack_previous"
_RESTORE_ATTR = "_rxtrack_restore"


def _run_callbacks(callbacks: list[Callable[[], None]]) -> None:
    """Run every callback; re-raise the first failure once all have run."""
    first_error: Exception | None = None
    for callback in callbacks:
        try:
            callback()
        except Exception as exc:
            LOG.warning("teardown_callback_failed", error=str(exc))
            if first_error is None:
                first_error = exc
    if first_error is not None:
        raise first_error


class TrackedDisposable(abc.DisposableBase):
    """Disposable that runs registered teardown callbacks exactly once.

    Teardown happens on the first of ``dispose()`` or ``teardown()``; the
    latter is what completion and error paths call, since reactivex already
    disposes the underlying subscription there. Callbacks added after
    teardown run immediately.
    """

    def __init__(self) -> None:
        self._disposable: abc.DisposableBase | None = None
        self._callbacks: list[Callable[[], None]] = []
        self._torn_down = False
        self.is_disposed = False
        self.lock = RLock()
        super().__init__()

    def attach(self, disposable: abc.DisposableBase) -> None:
        """Attach the subscription this disposable stands for."""
        with self.lock:
            self._disposable = disposable
            dispose_now = self.is_disposed
        if dispose_now:
            disposable.dispose()

    def add(self, callback: Callable[[], None]) -> None:
        """Register a teardown callback.

        Args:
            callback: Zero-argument callable run once on teardown.
        """
        with self.lock:
            if not self._torn_down:
                self._callbacks.append(callback)
                return
        _run_callbacks([callback])

    @property
    def torn_down(self) -> bool:
        return self._torn_down

    def teardown(self) -> None:
        """Run the teardown callbacks if they have not run yet."""
        with self.lock:
            if self._torn_down:
                return
            self._torn_down = True
            callbacks, self._callbacks = self._callbacks, []
        _run_callbacks(callbacks)

    def dispose(self) -> None:
        """Dispose the underlying subscription, then tear down."""
        with self.lock:
            if self.is_disposed:
                return
            self.is_disposed = True
            disposable = self._disposable
        try:
            if disposable is not None:
                disposable.dispose()
        finally:
            self.teardown()


def _detach(tracker: SubscriptionTracker, callback: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(callback)
    def detached(*args: Any) -> Any:
        with tracker.detached():
            return callback(*args)

    return detached


def subscribe_with_teardown(
    subscribe: Callable[..., abc.DisposableBase], tracker: SubscriptionTracker
) -> Callable[..., TrackedDisposable]:
    """Adapt ``Observable.subscribe`` to return a :class:`TrackedDisposable`.

    Args:
        subscribe: The unbound ``subscribe`` function to adapt.
        tracker: Tracker whose root scope is suspended around the observer
            callbacks of root subscriptions.

    Returns:
        An unbound subscribe function with the same signature.
    """

    @functools.wraps(subscribe)
    def subscribe_(
        source: abc.ObservableBase[Any],
        on_next: Any = None,
        on_error: Callable[[Exception], None] | None = None,
        on_completed: Callable[[], None] | None = None,
        *,
        scheduler: abc.SchedulerBase | None = None,
    ) -> TrackedDisposable:
        if isinstance(on_next, abc.ObserverBase) or callable(getattr(on_next, "on_next", None)):
            observer = on_next
            on_next = observer.on_next
            on_error = observer.on_error
            on_completed = observer.on_completed

        handle_error = on_error or default_error
        if tracker.is_root_call:
            if on_next is not None:
                on_next = _detach(tracker, on_next)
            handle_error = _detach(tracker, handle_error)
            if on_completed is not None:
                on_completed = _detach(tracker, on_completed)

        tracked = TrackedDisposable()

        def on_error_(error: Exception) -> None:
            try:
                handle_error(error)
            finally:
                tracked.teardown()

        def on_completed_() -> None:
            try:
                if on_completed is not None:
                    on_completed()
            finally:
                tracked.teardown()

        tracked.attach(subscribe(source, on_next, on_error_, on_completed_, scheduler=scheduler))
        return tracked

    return subscribe_


def _target_name(observable_cls: type) -> str:
    return f"{observable_cls.__module__}.{observable_cls.__qualname__}"


def is_installed(tracker: SubscriptionTracker, observable_cls: type = reactivex.Observable) -> bool:
    """Check whether a tracker is installed on an observable class."""
    current = observable_cls.__dict__.get("subscribe")
    while current is not None and hasattr(current, _TRACKER_ATTR):
        if getattr(current, _TRACKER_ATTR) is tracker:
            return True
        current = getattr(current, _PREVIOUS_ATTR)
    return False


def install(tracker: SubscriptionTracker, observable_cls: type = reactivex.Observable) -> None:
    """Route every subscribe on ``observable_cls`` through the tracker.

    Several trackers may be installed on one class; each sees every
    subscription.

    Args:
        tracker: Tracker to install.
        observable_cls: Class whose ``subscribe`` is replaced.

    Raises:
        AlreadyInstalledError: If the tracker is already installed there.
    """
    target = _target_name(observable_cls)
    if is_installed(tracker, observable_cls):
        raise AlreadyInstalledError(target)

    previous = observable_cls.subscribe
    tracked = tracker.wrap(subscribe_with_teardown(previous, tracker))
    setattr(tracked, _TRACKER_ATTR, tracker)
    setattr(tracked, _PREVIOUS_ATTR, previous)
    setattr(tracked, _RESTORE_ATTR, observable_cls.__dict__.get("subscribe"))
    observable_cls.subscribe = tracked
    LOG.info("subscribe_instrumented", target=target)


def uninstall(tracker: SubscriptionTracker, observable_cls: type = reactivex.Observable) -> None:
    """Restore the ``subscribe`` that was in place before :func:`install`.

    Raises:
        InstrumentationError: If the tracker is not the most recent
            instrumentation on the class.
    """
    target = _target_name(observable_cls)
    current = observable_cls.__dict__.get("subscribe")
    if getattr(current, _TRACKER_ATTR, None) is not tracker:
        raise InstrumentationError(f"Tracker is not the active instrumentation on {target}")

    restore = getattr(current, _RESTORE_ATTR)
    if restore is None:
        delattr(observable_cls, "subscribe")
    else:
        observable_cls.subscribe = restore
    tracker.unwrap()
    LOG.info("subscribe_uninstrumented", target=target)


@contextmanager
def instrumented(
    tracker: SubscriptionTracker | None = None, observable_cls: type = reactivex.Observable
) -> Iterator[SubscriptionTracker]:
    """Install a tracker for the duration of the block.

    Example:
        >>> with instrumented() as tracker, tracker.tracking():
        ...     source.subscribe()
    """
    tracker = tracker or SubscriptionTracker()
    install(tracker, observable_cls)
    try:
        yield tracker
    finally:
        uninstall(tracker, observable_cls)
