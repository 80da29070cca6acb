"""Leak reports built from subscription snapshots."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from rxtrack.logging import get_logger
from rxtrack.registry import SubscriptionRecord

LOG = get_logger(__name__)

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


class SnapshotSource(Protocol):
    """Anything that can produce a snapshot of tracked subscriptions."""

    def snapshot(self) -> Sequence[SubscriptionRecord]: ...


@dataclass(frozen=True)
class ReportConfig:
    """Options for :func:`report`.

    Attributes:
        include_nested_in_chain: Report every record of a chain instead of
            only the first one seen.
        settle_delay: Seconds to wait before snapshotting, so asynchronous
            teardowns already in flight can finish.
        trace_filter: Predicate selecting which captured stack lines to keep.
        prefix: Text added to every logged event.
    """

    include_nested_in_chain: bool = False
    settle_delay: float = 0.0
    trace_filter: Callable[[str], bool] | None = None
    prefix: str = ""

    def __post_init__(self) -> None:
        if self.settle_delay < 0:
            raise ValueError(f"settle_delay must be >= 0, got {self.settle_delay}")

    @classmethod
    def from_settings(cls, **overrides: Any) -> ReportConfig:
        """Build a config from the RXTRACK_ settings, with explicit overrides."""
        from rxtrack.config import get_settings

        settings = get_settings()
        values: dict[str, Any] = {
            "include_nested_in_chain": settings.include_nested,
            "settle_delay": settings.settle_delay,
            "trace_filter": settings.get_trace_filter(),
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class ReportEntry:
    """One reported subscription."""

    chain_id: int
    handle: str
    trace: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SubscriptionReport:
    """Result of a report run.

    Attributes:
        total: Number of tracked subscriptions, nested ones included.
        entries: The subscriptions selected for display.
    """

    total: int
    entries: list[ReportEntry] = field(default_factory=list)

    @property
    def chain_ids(self) -> list[int]:
        return sorted({entry.chain_id for entry in self.entries})

    def __bool__(self) -> bool:
        return self.total > 0


def select_records(
    records: Iterable[SubscriptionRecord], include_nested: bool = False
) -> list[SubscriptionRecord]:
    """Pick the records to report.

    Args:
        records: Snapshot in insertion order.
        include_nested: Keep every record instead of the first per chain.

    Returns:
        The selected records, order preserved.
    """
    if include_nested:
        return list(records)
    seen: set[int] = set()
    selected = []
    for record in records:
        if record.chain_id in seen:
            continue
        seen.add(record.chain_id)
        selected.append(record)
    return selected


def _is_internal_frame(filename: str) -> bool:
    path = os.path.abspath(filename)
    if path.startswith(_PACKAGE_DIR + os.sep):
        return True
    parts = path.split(os.sep)
    return "reactivex" in parts


def format_trace(
    record: SubscriptionRecord, trace_filter: Callable[[str], bool] | None = None
) -> list[str]:
    """Render a record's captured stack as lines.

    Frames from reactivex and from rxtrack itself are dropped. When a filter
    is given, only lines it accepts are kept, unless that would leave nothing.

    Returns:
        Stack lines, outermost call first, or an empty list without a capture.
    """
    if record.captured_context is None:
        return []
    frames = [frame for frame in record.captured_context if not _is_internal_frame(frame.filename)]
    lines = [
        f'File "{frame.filename}", line {frame.lineno}, in {frame.name}'
        + (f": {frame.line}" if frame.line else "")
        for frame in frames
    ]
    if trace_filter is None:
        return lines
    filtered = [line for line in lines if trace_filter(line)]
    return filtered or lines


def build_report(records: Sequence[SubscriptionRecord], config: ReportConfig) -> SubscriptionReport:
    """Build a report from a snapshot without logging it."""
    entries = [
        ReportEntry(
            chain_id=record.chain_id,
            handle=repr(record.handle),
            trace=format_trace(record, config.trace_filter),
        )
        for record in select_records(records, config.include_nested_in_chain)
    ]
    return SubscriptionReport(total=len(records), entries=entries)


async def report(
    source: SnapshotSource, config: ReportConfig | None = None, *, logger: Any = None
) -> SubscriptionReport:
    """Wait for the settle delay, then log the subscriptions still alive.

    The delay only matters for a live tracker source. A registry retained
    from ``disable()`` is sealed, so teardowns during the delay never reach it.

    Args:
        source: A tracker or a registry retained from ``disable()``.
        config: Report options. Defaults to ``ReportConfig()``.
        logger: structlog logger to emit to. Defaults to this module's.

    Returns:
        The built report; empty (and not logged) when nothing is alive.
    """
    config = config or ReportConfig()
    log = logger or LOG

    if config.settle_delay:
        await asyncio.sleep(config.settle_delay)

    result = build_report(source.snapshot(), config)
    if not result:
        return result

    log.warning("live_subscriptions", prefix=config.prefix, count=result.total)
    for entry in result.entries:
        log.warning(
            "live_subscription",
            prefix=config.prefix,
            chain_id=entry.chain_id,
            handle=entry.handle,
            trace=entry.trace,
        )
    return result
