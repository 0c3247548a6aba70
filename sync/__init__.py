"""Consumer-side synchronization primitives."""

from .correlator import TaskCorrelator
from .fetcher import ArtifactFetcher
from .lifetime import ConsumerLifetime
from .readiness import ReadinessStateMachine
from .resources import BaseResourceStore, ResourceLifecycleManager, TempFileResourceStore

__all__ = [
    "ArtifactFetcher",
    "BaseResourceStore",
    "ConsumerLifetime",
    "ReadinessStateMachine",
    "ResourceLifecycleManager",
    "TaskCorrelator",
    "TempFileResourceStore",
]
