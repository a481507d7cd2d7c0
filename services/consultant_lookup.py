"""
Consultant directory lookup.

Resolves a human-entered referral code to an active consultant. Misses never
raise: an empty code, an unknown code, or an inactive or suspended consultant
all resolve to None, and the caller proceeds with an unattributed order.

The lookup only reads, so concurrent calls from different intake paths for
the same code are safe.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from domain.attribution import canonicalize_code
from domain.consultant import Consultant
from domain.ports import ConsultantStore

logger = logging.getLogger(__name__)


def resolve_consultant(consultants: ConsultantStore, code: Optional[str]) -> Optional[Consultant]:
    canonical = canonicalize_code(code)
    if canonical is None:
        return None

    consultant = consultants.find_active_by_code(canonical)

    # Inactive consultants are never attributed, whatever the store returns
    if consultant is None or not consultant.is_active():
        logger.info(
            "Referral code did not resolve to an active consultant",
            extra={"consultant_code": canonical},
        )
        return None
    return consultant


def resolve(consultants: ConsultantStore, code: Optional[str]) -> Optional[UUID]:
    """Consultant id for a referral code, or None."""

    consultant = resolve_consultant(consultants, code)
    return consultant.id if consultant else None


__all__ = ["resolve", "resolve_consultant"]
