"""Shared fixtures and fakes for unit tests."""

from collections.abc import Callable, Iterator
from typing import Any

import pytest

from rxtrack.instrument import install, uninstall
from rxtrack.tracker import SubscriptionTracker


class FakeDisposer:
    """Minimal disposer honouring the tracker's teardown contract."""

    def __init__(self) -> None:
        self.callbacks: list[Callable[[], None]] = []
        self.disposed = False

    def add(self, callback: Callable[[], None]) -> None:
        if self.disposed:
            callback()
        else:
            self.callbacks.append(callback)

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        for callback in self.callbacks:
            callback()


def fake_subscribe(*inner: Callable[[], Any]) -> FakeDisposer:
    """Subscribe function that runs nested subscribe calls before returning."""
    for subscribe in inner:
        subscribe()
    return FakeDisposer()


@pytest.fixture
def core_tracker() -> SubscriptionTracker:
    """Tracker with no stack capture, not yet wrapping anything."""
    return SubscriptionTracker(capture_stacks=False)


@pytest.fixture
def subscribe(core_tracker: SubscriptionTracker) -> Callable[..., FakeDisposer]:
    """fake_subscribe wrapped by core_tracker."""
    return core_tracker.wrap(fake_subscribe)


@pytest.fixture
def tracker() -> Iterator[SubscriptionTracker]:
    """Tracker installed on reactivex.Observable with tracking enabled."""
    tracker = SubscriptionTracker(capture_stacks=False)
    install(tracker)
    tracker.enable()
    try:
        yield tracker
    finally:
        tracker.disable()
        uninstall(tracker)
