"""Recoverable error conditions raised by the discovery feed."""


class FeedError(Exception):
    """Base class for feed engine errors. None of them is fatal."""


class CollaboratorUnavailable(FeedError):
    """The catalog or the decision store could not be reached."""

    def __init__(self, collaborator: str, message: str) -> None:
        super().__init__(f"{collaborator} unavailable: {message}")
        self.collaborator = collaborator


class NoCurrentItem(FeedError):
    """Classify was called while the feed has nothing to offer."""


class ClassificationInProgress(FeedError):
    """Another classification is still advancing the feed."""


class SessionStale(FeedError):
    """A result arrived after a newer start or category switch."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"session generation {expected} superseded by {actual}")
        self.expected = expected
        self.actual = actual
