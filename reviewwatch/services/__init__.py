"""Review cycle, watch loop and the heuristics they use."""

from reviewwatch.services.review_service import ReviewService, filter_comments
from reviewwatch.services.satisfaction import SatisfactionDetector, SatisfactionVerdict
from reviewwatch.services.thought_filter import ThoughtFilter
from reviewwatch.services.watcher import Watcher, WatchEvent, WatchEventType, WatchState

__all__ = [
    "ReviewService",
    "SatisfactionDetector",
    "SatisfactionVerdict",
    "ThoughtFilter",
    "WatchEvent",
    "WatchEventType",
    "WatchState",
    "Watcher",
    "filter_comments",
]
