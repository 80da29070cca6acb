"""Subscription tracking: interception, chain ids and lifecycle."""

from __future__ import annotations

import functools
import traceback
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Protocol

from rxtrack.exceptions import NotInstalledError
from rxtrack.logging import get_logger
from rxtrack.registry import SubscriptionRecord, SubscriptionRegistry

if TYPE_CHECKING:
    from rxtrack.report import ReportConfig, SnapshotSource, SubscriptionReport

LOG = get_logger(__name__)


class Teardown(Protocol):
    """Disposer shape the tracker can instrument."""

    def add(self, callback: Callable[[], None]) -> None: ...


class SubscriptionTracker:
    """Tracks subscriptions made through the subscribe functions it wraps.

    A tracker instance owns all interception state: the nesting depth of the
    subscribe call in progress and the chain id counter. The outermost call
    of a synchronous subscribe call tree starts a new chain; every call it
    triggers while it is still running inherits that chain's id.

    Chain assignment assumes a single-threaded cooperative scheduler, where
    two unrelated root calls cannot interleave. State is not synchronized
    across threads.

    Example:
        >>> tracker = SubscriptionTracker()
        >>> subscribe = tracker.wrap(subscribe_with_teardown)
        >>> tracker.enable()
        >>> subscribe(source)
        >>> len(tracker.snapshot())
        1
    """

    def __init__(self, *, capture_stacks: bool | None = None) -> None:
        if capture_stacks is None:
            from rxtrack.config import get_settings

            capture_stacks = get_settings().capture_stacks
        self.capture_stacks = capture_stacks
        self._depth = 0
        self._chain_id = 0
        self._active_chain = 0
        self._enabled = False
        self._wraps = 0
        self._wrapped = False
        self._registry: SubscriptionRegistry | None = None

    # ------------------------------------------------------------------
    # Interception
    # ------------------------------------------------------------------

    def wrap(self, subscribe: Callable[..., Any]) -> Callable[..., Any]:
        """Wrap a subscribe function so its subscriptions are tracked.

        Args:
            subscribe: Callable returning a disposer that supports
                ``add(callback)``, with callbacks run exactly once on teardown.

        Returns:
            A function with the same signature that records each subscription
            while tracking is enabled and returns the disposer unchanged.
        """
        self._wraps += 1
        self._wrapped = True

        @functools.wraps(subscribe)
        def tracked_subscribe(*args: Any, **kwargs: Any) -> Any:
            return self._intercept(subscribe, args, kwargs)

        return tracked_subscribe

    def unwrap(self) -> None:
        """Note that one wrapper made by :meth:`wrap` is no longer in use.

        Once every wrapper is released, :meth:`enable` raises again. Records
        already collected stay available through :meth:`snapshot`.
        """
        if self._wraps:
            self._wraps -= 1

    def _intercept(
        self, subscribe: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        if self._depth == 0:
            self._chain_id += 1
            chain_id = self._chain_id
        else:
            chain_id = self._active_chain
        outer_chain = self._active_chain
        self._active_chain = chain_id
        self._depth += 1
        try:
            disposer = subscribe(*args, **kwargs)
            if self._enabled and self._registry is not None:
                self._track(disposer, self._registry, chain_id)
        finally:
            self._depth -= 1
            self._active_chain = outer_chain
        return disposer

    def _track(self, disposer: Teardown, registry: SubscriptionRegistry, chain_id: int) -> None:
        context = None
        if self.capture_stacks:
            context = traceback.StackSummary.from_list(traceback.extract_stack()[:-3])
        record = SubscriptionRecord(handle=disposer, chain_id=chain_id, captured_context=context)
        registry.add(record)
        LOG.debug("subscription_tracked", chain_id=record.chain_id, serial=record.serial)
        disposer.add(functools.partial(self._release, registry, record))

    @staticmethod
    def _release(registry: SubscriptionRegistry, record: SubscriptionRecord) -> None:
        if registry.remove(record):
            LOG.debug("subscription_released", chain_id=record.chain_id, serial=record.serial)

    @property
    def root_in_progress(self) -> bool:
        """Whether a root subscribe call is currently running."""
        return self._depth > 0

    @property
    def is_root_call(self) -> bool:
        """Whether the innermost subscribe call in progress is a chain root."""
        return self._depth == 1

    @property
    def chain_id(self) -> int:
        """Id of the most recently started chain."""
        return self._chain_id

    @contextmanager
    def detached(self) -> Iterator[None]:
        """Suspend the in-progress root while running a user callback.

        Subscriptions made inside the block start their own chains.
        """
        depth, chain_id = self._depth, self._active_chain
        self._depth = 0
        try:
            yield
        finally:
            self._depth, self._active_chain = depth, chain_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _require_installed(self, *, active: bool = True) -> None:
        if not (self._wraps if active else self._wrapped):
            raise NotInstalledError(
                "SubscriptionTracker.wrap() must be called before tracking is used"
            )

    @property
    def enabled(self) -> bool:
        """Whether subscriptions are currently being recorded."""
        return self._enabled

    @property
    def installed(self) -> bool:
        """Whether a subscribe function wrapped by the tracker is still in use."""
        return self._wraps > 0

    @property
    def registry(self) -> SubscriptionRegistry | None:
        """The live registry, or the one retained since the last ``disable()``."""
        return self._registry

    def enable(self) -> SubscriptionRegistry:
        """Start tracking with a fresh, empty registry.

        Returns:
            The live registry. Calling again while enabled returns it unchanged.

        Raises:
            NotInstalledError: If no subscribe function wrapped by the tracker
                is in use.
        """
        self._require_installed()
        if not self._enabled:
            self._registry = SubscriptionRegistry()
            self._enabled = True
            LOG.info("tracking_enabled")
        return self._registry

    def disable(self) -> SubscriptionRegistry | None:
        """Stop tracking and freeze the registry for inspection.

        Returns:
            The retained registry, or None if tracking was never enabled.
        """
        if self._enabled:
            self._enabled = False
            if self._registry is not None:
                self._registry.seal()
                LOG.info("tracking_disabled", live=len(self._registry))
        return self._registry

    def snapshot(self) -> tuple[SubscriptionRecord, ...]:
        """Return the tracked subscriptions at this point in time.

        Raises:
            NotInstalledError: If the tracker never wrapped a subscribe function.
        """
        self._require_installed(active=False)
        if self._registry is None:
            return ()
        return self._registry.snapshot()

    @contextmanager
    def tracking(self) -> Iterator[SubscriptionRegistry]:
        """Enable tracking for the duration of the block."""
        registry = self.enable()
        try:
            yield registry
        finally:
            self.disable()

    async def report(
        self,
        config: ReportConfig | None = None,
        *,
        source: SnapshotSource | None = None,
    ) -> SubscriptionReport:
        """Log the subscriptions still alive after the settle delay.

        Args:
            config: Report options. Defaults to ``ReportConfig.from_settings()``.
            source: Registry to report on instead of this tracker, e.g. the
                one returned by an earlier ``disable()``. That registry is
                sealed, so the settle delay does not change what it reports.

        Returns:
            The report that was logged.
        """
        from rxtrack.report import ReportConfig, report

        if config is None:
            config = ReportConfig.from_settings()
        return await report(self if source is None else source, config)
