"""
Commission calculator and commission administration.

Creation:
- Runs synchronously inside whichever intake path confirms payment, right
  after the order reaches a payment-confirmed state.
- Uses the consultant's rate at confirmation time; reference month and year
  come from the confirmation date, not the order date.
- Never fails the surrounding payment flow. A storage error is logged as
  "needs reconciliation" and the order stands.

Administration:
- Batch approve / pay / cancel with all-or-nothing validation.
- Read-only summary for the back-office commission views.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from domain.commission import (
    Commission,
    CommissionAction,
    CommissionStatus,
    calculate_commission_amount,
)
from domain.errors import DuplicateCommissionError, InvalidCommissionTransitionError
from domain.order import Order
from domain.ports import CommissionFilters, CommissionStore, NotificationSink
from domain.time import utc_now
from repositories.stores import Stores

logger = logging.getLogger(__name__)


def create_commission_if_attributed(
    stores: Stores,
    order: Order,
    default_rate: Decimal,
    notifications: Optional[NotificationSink] = None,
    now: Optional[datetime] = None,
) -> Optional[Commission]:
    """
    Create the commission for a payment-confirmed, attributed order.

    Returns the new commission, or None when the order is unattributed, when
    a commission already exists for it, or when creation failed (logged).

    Example:
        order = stores.orders.update_payment_status(order_id, PaymentStatus.PAID)
        create_commission_if_attributed(stores, order, settings.default_commission_percentage)
    """

    if order.consultant_id is None:
        return None

    confirmed_at = now or utc_now()
    log_context = {"order_id": str(order.id), "consultant_id": str(order.consultant_id)}

    try:
        consultant = stores.consultants.get_by_id(order.consultant_id)
        if consultant is not None:
            rate = consultant.commission_percentage
        else:
            logger.warning(
                "Attributed consultant not found, using default commission rate",
                extra={**log_context, "default_rate": str(default_rate)},
            )
            rate = default_rate

        commission = Commission(
            id=uuid4(),
            consultant_id=order.consultant_id,
            order_id=order.id,
            order_amount=order.total,
            commission_rate=rate,
            commission_amount=calculate_commission_amount(order.total, rate),
            status=CommissionStatus.PENDING,
            reference_month=confirmed_at.month,
            reference_year=confirmed_at.year,
            order_date=order.created_at,
            created_at=confirmed_at,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
        )
        created = stores.commissions.insert_commission(commission)

    except DuplicateCommissionError:
        logger.info("Commission already recorded for order", extra=log_context)
        return None
    except Exception as e:
        logger.error(
            f"Commission creation failed, order stands: {e}",
            extra={**log_context, "needs_reconciliation": True},
        )
        return None

    logger.info(
        "Commission created",
        extra={**log_context, "commission_amount": str(created.commission_amount)},
    )

    if notifications is not None and consultant is not None:
        try:
            result = notifications.notify_new_commission(consultant, created)
            if not result.success:
                logger.warning(f"New-commission notification failed: {result.error}", extra=log_context)
        except Exception as e:
            logger.warning(f"New-commission notification failed: {e}", extra=log_context)

    return created


@dataclass(frozen=True, slots=True)
class CommissionSummary:
    total: int = 0
    counts: Dict[str, int] = field(default_factory=dict)
    amounts: Dict[str, Decimal] = field(default_factory=dict)
    total_amount: Decimal = Decimal("0.00")


@dataclass(frozen=True, slots=True)
class CommissionPage:
    data: List[Commission]
    summary: CommissionSummary
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def summarize_commissions(commissions: Sequence[Commission]) -> CommissionSummary:
    counts = {status.value: 0 for status in CommissionStatus}
    amounts = {status.value: Decimal("0.00") for status in CommissionStatus}
    total_amount = Decimal("0.00")

    for commission in commissions:
        counts[commission.status.value] += 1
        amounts[commission.status.value] += commission.commission_amount
        total_amount += commission.commission_amount

    return CommissionSummary(
        total=len(commissions),
        counts=counts,
        amounts=amounts,
        total_amount=total_amount,
    )


def get_commission_summary(
    commissions: CommissionStore,
    filters: CommissionFilters,
    page: int = 1,
    limit: int = 50,
) -> CommissionPage:
    """
    One page of commissions plus a summary over the whole filtered set.
    """

    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive")

    matching = commissions.list_commissions(filters)
    start = (page - 1) * limit

    return CommissionPage(
        data=matching[start:start + limit],
        summary=summarize_commissions(matching),
        total=len(matching),
        page=page,
        limit=limit,
    )


def apply_commission_action(
    commissions: CommissionStore,
    commission_ids: Sequence[UUID],
    action: CommissionAction,
    *,
    payment_method: str = "bank_transfer",
    payment_reference: Optional[str] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Commission]:
    """
    Apply an administrative action to a batch of commissions.

    Every commission is validated before any is written; one invalid id or
    state rejects the whole batch with InvalidCommissionTransitionError.
    """

    if not commission_ids:
        raise InvalidCommissionTransitionError(["No commission IDs provided"])

    acted_at = now or utc_now()
    current = commissions.get_commissions_by_ids(commission_ids)
    found = {c.id for c in current}

    errors = [f"Commission {cid} not found" for cid in commission_ids if cid not in found]
    for commission in current:
        error = commission.transition_error(action)
        if error is not None:
            errors.append(error)
    if errors:
        raise InvalidCommissionTransitionError(errors)

    updated: List[Commission] = []
    for commission in current:
        if action == CommissionAction.APPROVE:
            changed = commission.approved(acted_at)
        elif action == CommissionAction.PAY:
            changed = commission.paid(acted_at, payment_method, payment_reference)
        else:
            changed = commission.cancelled(acted_at, reason)
        updated.append(commissions.update_commission(changed))

    logger.info(
        f"Commission batch {action.value} applied",
        extra={"action": action.value, "count": len(updated)},
    )
    return updated


__all__ = [
    "CommissionPage",
    "CommissionSummary",
    "apply_commission_action",
    "create_commission_if_attributed",
    "get_commission_summary",
    "summarize_commissions",
]
