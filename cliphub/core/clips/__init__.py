"""
Clip lifecycle logic.

Contains the domain models, object-name derivation, the lifecycle
controller, engagement mutations and the reconciliation pass.
"""

from .engagement import EngagementMutator, LikeResult
from .lifecycle import (
    ClipLifecycleController,
    CreatedClip,
    DeletionResult,
    ResolvedClip,
)
from .models import (
    AccessGrant,
    Clip,
    ClipPatch,
    ClipStatus,
    GrantPermission,
    ObjectRole,
    StoredObject,
)
from .reconcile import ClipReconciler, ReconciliationReport

__all__ = [
    "AccessGrant",
    "Clip",
    "ClipLifecycleController",
    "ClipPatch",
    "ClipReconciler",
    "ClipStatus",
    "CreatedClip",
    "DeletionResult",
    "EngagementMutator",
    "GrantPermission",
    "LikeResult",
    "ObjectRole",
    "ReconciliationReport",
    "ResolvedClip",
    "StoredObject",
]
