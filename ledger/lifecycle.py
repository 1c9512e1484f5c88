# ledger/lifecycle.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from .constants import ACCOUNT_DELETE_GRACE_DAYS
from .errors import StateConflict
from .models import (
    CompletionRecord,
    DailyAssignment,
    ReferralBonusGrant,
    Wallet,
    WithdrawalRequest,
)

log = logging.getLogger(__name__)


# =========================
# Deletion request / cancel
# =========================

def request_account_deletion(user, *, now: Optional[datetime] = None):
    """
    Schedule the account for purge after the grace period. Both stamps are
    written together. Asking again keeps the first schedule.
    """
    now = now or timezone.now()
    if user.delete_effective_at is not None:
        return user

    UserModel = get_user_model()
    effective = now + timedelta(days=ACCOUNT_DELETE_GRACE_DAYS)
    UserModel.objects.filter(pk=user.pk, delete_effective_at__isnull=True).update(
        delete_requested_at=now,
        delete_effective_at=effective,
    )
    user.refresh_from_db(fields=["delete_requested_at", "delete_effective_at"])
    log.info("user %s requested deletion, effective %s", user.pk, user.delete_effective_at.isoformat())
    return user


def cancel_account_deletion(user, *, now: Optional[datetime] = None):
    now = now or timezone.now()
    if user.delete_effective_at is None:
        return user
    if user.delete_effective_at <= now:
        raise StateConflict("Deletion already took effect.", code="deletion_effective")

    UserModel = get_user_model()
    UserModel.objects.filter(pk=user.pk, delete_effective_at__gt=now).update(
        delete_requested_at=None,
        delete_effective_at=None,
    )
    user.refresh_from_db(fields=["delete_requested_at", "delete_effective_at"])
    log.info("user %s cancelled account deletion", user.pk)
    return user


# =========================
# Reaper
# =========================

def due_for_purge(now: Optional[datetime] = None):
    now = now or timezone.now()
    return get_user_model().objects.filter(
        delete_effective_at__isnull=False,
        delete_effective_at__lte=now,
    )


@transaction.atomic
def purge_account(user_id: int, now: Optional[datetime] = None) -> bool:
    """
    Remove one account and everything it owns, children before parent.
    Only accounts whose deletion time has passed at `now` are touched.
    Grants are matched on both sides (as referrer and as referred user).
    Ledger foreign keys are PROTECT, so nothing here relies on cascades.
    """
    UserModel = get_user_model()
    user = (
        UserModel.objects.select_for_update()
        .filter(pk=user_id, delete_effective_at__lte=now or timezone.now())
        .first()
    )
    if user is None:
        return False

    completions, _ = CompletionRecord.objects.filter(user_id=user_id).delete()
    withdrawals, _ = WithdrawalRequest.objects.filter(user_id=user_id).delete()
    assignments, _ = DailyAssignment.objects.filter(user_id=user_id).delete()
    grants, _ = ReferralBonusGrant.objects.filter(
        Q(referrer_id=user_id) | Q(referred_user_id=user_id)
    ).delete()
    Wallet.objects.filter(user_id=user_id).delete()
    user.delete()

    log.warning(
        "purged user %s (completions=%d withdrawals=%d assignments=%d grants=%d)",
        user_id, completions, withdrawals, assignments, grants,
    )
    return True


def purge_deleted_accounts(now: Optional[datetime] = None) -> List[int]:
    """
    One sweep: purge every account whose deletion time has passed.
    Each account is its own transaction so one failure does not undo the rest.
    Returns the ids purged in this sweep.
    """
    now = now or timezone.now()
    purged: List[int] = []
    for user_id in list(due_for_purge(now).values_list("pk", flat=True)):
        if purge_account(user_id, now):
            purged.append(user_id)

    if purged:
        log.info("purge sweep removed %d account(s)", len(purged))
    return purged
