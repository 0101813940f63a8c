"""Observation engine: reversible call, mutation and file interceptors."""

from hostkit.observe.engine import ObservationEngine
from hostkit.observe.hooks import Hooks, ObserverKind, ObserverRecord, ObserverSummary
from hostkit.observe.wrappers import wrap_function

__all__ = [
    "Hooks",
    "ObservationEngine",
    "ObserverKind",
    "ObserverRecord",
    "ObserverSummary",
    "wrap_function",
]
