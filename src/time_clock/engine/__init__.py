"""Session engine and its collaborators."""

from time_clock.engine.events import ENGINE_TOPIC, RealTimeUpdate, UpdateType
from time_clock.engine.pubsub import InProcessPubSub, MulticastPubSub, PubSub
from time_clock.engine.scheduler import AsyncioScheduler, CancelHandle, Scheduler, VirtualScheduler
from time_clock.engine.session import EngineSettings, EngineStatus, SessionEngine

__all__ = [
    "ENGINE_TOPIC",
    "AsyncioScheduler",
    "CancelHandle",
    "EngineSettings",
    "EngineStatus",
    "InProcessPubSub",
    "MulticastPubSub",
    "PubSub",
    "RealTimeUpdate",
    "Scheduler",
    "SessionEngine",
    "UpdateType",
    "VirtualScheduler",
]
