"""Custom exceptions for rxtrack package."""


class RxTrackError(Exception):
    """Base exception class for all rxtrack errors."""


class InstrumentationError(RxTrackError):
    """Raised when the subscribe interception wrapper is set up incorrectly."""


class NotInstalledError(InstrumentationError):
    """Raised when tracking is used before the interception wrapper exists.

    Calling ``enable()`` or ``snapshot()`` on a tracker that never wrapped a
    subscribe function is a setup ordering bug, not a runtime condition.
    """

    def __init__(self, message: str = "Subscription tracker is not installed") -> None:
        super().__init__(message)
        self.message = message


class AlreadyInstalledError(InstrumentationError):
    """Raised when a tracker is installed twice on the same observable class.

    Attributes:
        target: Name of the class the tracker is already installed on.
    """

    def __init__(self, target: str) -> None:
        """Initialize AlreadyInstalledError.

        Args:
            target: Qualified name of the observable class.
        """
        super().__init__(f"Tracker already installed on {target}")
        self.target = target
