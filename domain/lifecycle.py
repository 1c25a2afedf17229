"""
Domain: Sale lifecycle state machine.

The ONLY allowed status edges:

    DRAFT -> IN_PROGRESS -> ANALYZED -> FINISHED
    ANALYZED | FINISHED -> IN_PROGRESS          (regression)

Rules:
- DRAFT is the only initial state.
- DRAFT -> IN_PROGRESS requires CREATE_SALES and is driven by the owning seller.
- Every other edge, regression included, requires APPROVE_SALES.
- A regression requires a justification of at least 5 characters after trimming.
- Checks run in order edge -> capability -> ownership -> justification; a failed
  check produces no new Sale.

No I/O, no side effects. Persistence is the caller's job.
"""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional, Tuple

from .errors import InvalidTransition, PermissionDenied, ValidationError
from .roles import Permission, PermissionRegistry
from .sale import Sale, SaleStatus, StatusHistoryEntry, is_regression
from .user import Actor

MIN_REASON_LENGTH = 5

TRANSITIONS: Mapping[SaleStatus, frozenset[SaleStatus]] = {
    SaleStatus.DRAFT: frozenset({SaleStatus.IN_PROGRESS}),
    SaleStatus.IN_PROGRESS: frozenset({SaleStatus.ANALYZED}),
    SaleStatus.ANALYZED: frozenset({SaleStatus.FINISHED, SaleStatus.IN_PROGRESS}),
    SaleStatus.FINISHED: frozenset({SaleStatus.IN_PROGRESS}),
}


def can_transition(current: SaleStatus, target: SaleStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def required_permission(current: SaleStatus, target: SaleStatus) -> Permission:
    if current is SaleStatus.DRAFT:
        return Permission.CREATE_SALES
    return Permission.APPROVE_SALES


def clean_reason(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    text = reason.strip()
    return text or None


def plan_transition(
    sale: Sale,
    target: SaleStatus,
    actor: Actor,
    registry: PermissionRegistry,
    now: datetime,
    reason: Optional[str] = None,
) -> Tuple[Sale, bool]:
    """
    Compute the Sale that results from moving `sale` to `target`.

    Returns:
        (updated Sale, whether the edge was a regression)

    Raises:
        InvalidTransition: edge is not in the graph
        PermissionDenied: actor lacks the capability, or is not the draft's owner
        ValidationError: regression without an adequate justification
    """

    current = sale.status
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value)

    permission = required_permission(current, target)
    if not registry.check(actor, permission):
        raise PermissionDenied(
            f"Role {actor.role.value} lacks {permission.value} for {current.value} -> {target.value}"
        )
    if current is SaleStatus.DRAFT and actor.id != sale.seller_id:
        raise PermissionDenied("Only the owning seller may submit a draft")

    regression = is_regression(current, target)
    justification = clean_reason(reason) if regression else None
    if regression and (justification is None or len(justification) < MIN_REASON_LENGTH):
        raise ValidationError(
            "A detailed justification is required to return a sale",
            {"reason": f"At least {MIN_REASON_LENGTH} characters"},
        )

    entry = StatusHistoryEntry(
        status=target,
        updated_by=actor.name,
        updated_at=now,
        reason=justification,
    )
    return sale.with_transition(entry, return_reason=justification), regression


__all__ = [
    "MIN_REASON_LENGTH",
    "TRANSITIONS",
    "can_transition",
    "required_permission",
    "plan_transition",
]
