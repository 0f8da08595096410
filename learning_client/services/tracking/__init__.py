"""
Client-side learning progress tracking
"""
from .activity_monitor import ActivityMonitor, ACTIVITY_EVENTS
from .elements import EventSource, MediaPlayback, ScrollableContent
from .heartbeat_emitter import HeartbeatEmitter
from .material_tracker import MaterialTracker, TrackingSlot
from .progress_estimator import ProgressEstimator, ProgressSample
from .visibility_tracker import VisibilityTracker

__all__ = [
    "ACTIVITY_EVENTS",
    "ActivityMonitor",
    "EventSource",
    "HeartbeatEmitter",
    "MaterialTracker",
    "MediaPlayback",
    "ProgressEstimator",
    "ProgressSample",
    "ScrollableContent",
    "TrackingSlot",
    "VisibilityTracker",
]
