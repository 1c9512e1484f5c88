# ledger/referrals.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import F

from .constants import REFERRAL_BONUS_AMOUNT, REFERRAL_REDEEM_BLOCK
from .errors import StateConflict
from .models import CompletionRecord, CustomUser, ReferralBonusGrant, Wallet

log = logging.getLogger(__name__)


def on_first_completion(user) -> bool:
    """
    Pay the referrer once when a referred user completes their first task.

    The ReferralBonusGrant row is the only record of "already paid": the
    grant insert and the bonus credit share one savepoint, and a unique
    clash on (referrer, referred_user) means a retry got here first, so
    nothing is credited. Returns True only when this call paid the bonus.
    """
    referrer_id = user.referred_by_id
    if not referrer_id:
        return False
    if CompletionRecord.objects.filter(user=user).count() != 1:
        return False

    try:
        with transaction.atomic():
            ReferralBonusGrant.objects.create(
                referrer_id=referrer_id,
                referred_user=user,
                amount=REFERRAL_BONUS_AMOUNT,
            )
            # fixture-loaded or bulk-created users may have no wallet row yet
            Wallet.objects.get_or_create(user_id=referrer_id)
            Wallet.objects.filter(user_id=referrer_id).update(
                bonus_balance=F("bonus_balance") + REFERRAL_BONUS_AMOUNT
            )
    except IntegrityError:
        log.info("referral bonus for %s -> %s already granted; skipped", referrer_id, user.pk)
        return False

    log.info("referral bonus %d credited to user %s for referring %s", REFERRAL_BONUS_AMOUNT, referrer_id, user.pk)
    return True


@dataclass
class ReferralStatus:
    referral_count: int     # users who signed up with this user's code
    verified_count: int     # of those, how many have earned the referrer a bonus
    bonus_balance: int
    redeem_block: int

    @property
    def can_redeem(self) -> bool:
        return self.bonus_balance >= self.redeem_block


def referral_status(user) -> ReferralStatus:
    wallet, _ = Wallet.objects.get_or_create(user=user)
    return ReferralStatus(
        referral_count=CustomUser.objects.filter(referred_by=user).count(),
        verified_count=ReferralBonusGrant.objects.filter(referrer=user).count(),
        bonus_balance=int(wallet.bonus_balance),
        redeem_block=REFERRAL_REDEEM_BLOCK,
    )


@transaction.atomic
def redeem_bonus(user) -> Wallet:
    """
    Move one REFERRAL_REDEEM_BLOCK from bonus_balance to balance.
    The threshold check and both updates happen under the wallet row lock.
    """
    wallet, _ = Wallet.objects.get_or_create(user=user)
    wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
    if wallet.bonus_balance < REFERRAL_REDEEM_BLOCK:
        raise StateConflict(
            f"Bonus must reach KSH {REFERRAL_REDEEM_BLOCK:,} to redeem.",
            code="bonus_threshold",
        )

    Wallet.objects.filter(pk=wallet.pk).update(
        bonus_balance=F("bonus_balance") - REFERRAL_REDEEM_BLOCK,
        balance=F("balance") + REFERRAL_REDEEM_BLOCK,
    )
    wallet.refresh_from_db(fields=["balance", "bonus_balance"])
    log.info("user %s redeemed %d bonus into balance", user.pk, REFERRAL_REDEEM_BLOCK)
    return wallet
