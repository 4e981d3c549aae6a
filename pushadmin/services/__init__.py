"""Service layer package."""

from pushadmin.services.broadcast import BroadcastService
from pushadmin.services.event_stats import EventStatsAggregator
from pushadmin.services.progress_engine import ProgressEngine, ScanResult
from pushadmin.services.push_sender import PushPayload, PushSender, WebPushSender
from pushadmin.services.registration import SubscriptionService
from pushadmin.services.segments import SegmentService
from pushadmin.services.step_sequences import StepSequenceService

__all__ = [
    "BroadcastService",
    "EventStatsAggregator",
    "ProgressEngine",
    "PushPayload",
    "PushSender",
    "ScanResult",
    "SegmentService",
    "StepSequenceService",
    "SubscriptionService",
    "WebPushSender",
]
