"""Tracking package exposing the policy selector, strategies and models."""

from .models import STATUS_SENT, StaticIdentity, TrackingKind, TrackingRecord
from .registry import TrackingPolicySelector, build_strategies
from .store import PersistenceStore, SqlTrackingStore

__all__ = [
    "STATUS_SENT",
    "PersistenceStore",
    "SqlTrackingStore",
    "StaticIdentity",
    "TrackingKind",
    "TrackingPolicySelector",
    "TrackingRecord",
    "build_strategies",
]
