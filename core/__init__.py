"""Core contracts and shared types for live artifact synchronization."""

from .contracts import (
    Artifact,
    ArtifactKind,
    ArtifactSource,
    ConsumerState,
    Event,
    RawEvent,
    ReadinessPing,
    ResourceHandle,
    TaskCompletion,
    TaskHandle,
    UnknownEvent,
    UnparseableEvent,
)

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ArtifactSource",
    "ConsumerState",
    "Event",
    "RawEvent",
    "ReadinessPing",
    "ResourceHandle",
    "TaskCompletion",
    "TaskHandle",
    "UnknownEvent",
    "UnparseableEvent",
]
