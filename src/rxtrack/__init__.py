"""rxtrack - find leaked reactivex subscriptions.

Intercepts ``Observable.subscribe`` to record every live subscription while
tracking is enabled, grouping the subscriptions an operator chain creates
internally under the chain id of the subscribe call that caused them.

This package provides:
- A subscription tracker with enable/disable/snapshot controls
- A reactivex binding that installs the tracker on Observable
- Leak reports logged through structlog or rendered with rich

Example:
    >>> from rxtrack import SubscriptionTracker, install
    >>> tracker = SubscriptionTracker()
    >>> install(tracker)
    >>> tracker.enable()
    >>> subscription = source.subscribe(print)
    >>> tracker.snapshot()
"""

from rxtrack.config import RxTrackSettings, get_settings
from rxtrack.exceptions import (
    AlreadyInstalledError,
    InstrumentationError,
    NotInstalledError,
    RxTrackError,
)
from rxtrack.instrument import TrackedDisposable, install, instrumented, is_installed, uninstall
from rxtrack.registry import SubscriptionRecord, SubscriptionRegistry
from rxtrack.report import ReportConfig, SubscriptionReport, build_report, report
from rxtrack.tracker import SubscriptionTracker

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Tracking
    "SubscriptionTracker",
    "SubscriptionRecord",
    "SubscriptionRegistry",
    # reactivex binding
    "TrackedDisposable",
    "install",
    "uninstall",
    "instrumented",
    "is_installed",
    # Reporting
    "ReportConfig",
    "SubscriptionReport",
    "build_report",
    "report",
    # Configuration
    "RxTrackSettings",
    "get_settings",
    # Exceptions
    "RxTrackError",
    "InstrumentationError",
    "NotInstalledError",
    "AlreadyInstalledError",
]
