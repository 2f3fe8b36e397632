"""Core module containing the discovery feed engine and domain types."""

from cineco.core.contracts import (
    Bucket,
    Candidate,
    CatalogClient,
    Category,
    ClassifyOutcome,
    DecisionStore,
    FeedSettings,
    FeedState,
    LibraryEntry,
)
from cineco.core.errors import (
    ClassificationInProgress,
    CollaboratorUnavailable,
    FeedError,
    NoCurrentItem,
    SessionStale,
)
from cineco.core.exclusion import build_exclusion_set
from cineco.core.feed_buffer import FeedBuffer
from cineco.core.feed_controller import FeedController

__all__ = [
    # Contracts/Types
    "Bucket",
    "Candidate",
    "CatalogClient",
    "Category",
    "ClassifyOutcome",
    "DecisionStore",
    "FeedSettings",
    "FeedState",
    "LibraryEntry",
    # Errors
    "ClassificationInProgress",
    "CollaboratorUnavailable",
    "FeedError",
    "NoCurrentItem",
    "SessionStale",
    # Engine
    "build_exclusion_set",
    "FeedBuffer",
    "FeedController",
]
