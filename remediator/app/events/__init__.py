from .models import RemediationEvent, RemediationEventType
from .emitter import EventEmitter, NullEventEmitter
from .memory_emitter import MemoryQueueEventEmitter

__all__ = [
    "RemediationEvent",
    "RemediationEventType",
    "EventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
