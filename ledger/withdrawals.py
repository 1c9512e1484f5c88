# ledger/withdrawals.py
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

import phonenumbers
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .constants import HISTORY_PAGE_SIZE, WITHDRAWAL_MIN_AMOUNT
from .errors import StateConflict
from .models import Wallet, WithdrawalMethod, WithdrawalRequest, WithdrawalStatus

log = logging.getLogger(__name__)


# =========================
# Input normalisation
# =========================

def normalize_phone(raw) -> str:
    """
    Parse a payout number (local or international form) and return E.164.
    Local numbers are read in PHONENUMBER_DEFAULT_REGION.
    """
    number = "".join(ch for ch in str(raw or "").strip() if ch.isdigit() or ch == "+")
    if not number:
        raise ValidationError("Phone number is required.", code="invalid_phone")

    region = getattr(settings, "PHONENUMBER_DEFAULT_REGION", "KE")
    try:
        parsed = phonenumbers.parse(number, None if number.startswith("+") else region)
    except phonenumbers.NumberParseException:
        raise ValidationError("Invalid phone number format.", code="invalid_phone")

    if not phonenumbers.is_possible_number(parsed) or not phonenumbers.is_valid_number(parsed):
        raise ValidationError("This phone number is not valid.", code="invalid_phone")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def normalize_method(raw) -> str:
    value = str(raw or "").strip()
    if not value:
        return WithdrawalMethod.MPESA
    for choice, label in WithdrawalMethod.choices:
        if value.lower() in (choice, label.lower()):
            return choice
    raise ValidationError("Unsupported payment method.", code="invalid_method")


def normalize_amount(raw) -> int:
    # Whole currency units only; "200" and 200 are fine, 200.5 is not
    if raw is None or isinstance(raw, bool):
        raise ValidationError("Enter a valid amount.", code="invalid_amount")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValidationError("Enter a valid amount.", code="invalid_amount")
    if not value.is_finite() or value != value.to_integral_value():
        raise ValidationError("Enter a valid amount.", code="invalid_amount")

    amount = int(value)
    if amount <= 0 or amount < WITHDRAWAL_MIN_AMOUNT:
        raise ValidationError(f"Minimum withdrawal is KSH {max(1, WITHDRAWAL_MIN_AMOUNT):,}.", code="invalid_amount")
    return amount


# =========================
# Core actions
# =========================

def request_withdrawal(user, amount, phone, method=None) -> WithdrawalRequest:
    """
    Debit `amount` from the wallet and record a pending withdrawal, atomically.
    The balance check runs on the locked wallet row inside the same
    transaction as the debit.
    """
    amount = normalize_amount(amount)
    phone = normalize_phone(phone)
    method = normalize_method(method)

    with transaction.atomic():
        wallet, _ = Wallet.objects.get_or_create(user=user)
        wallet = Wallet.objects.select_for_update().select_related("user").get(pk=wallet.pk)

        if wallet.user.delete_effective_at is not None:
            raise StateConflict("Account deletion is pending.", code="deletion_pending")
        if amount > wallet.balance:
            raise StateConflict("Insufficient balance.", code="insufficient_balance")

        Wallet.objects.filter(pk=wallet.pk).update(balance=F("balance") - amount)
        wr = WithdrawalRequest.objects.create(
            user=user,
            amount=amount,
            phone=phone,
            method=method,
            status=WithdrawalStatus.PENDING,
        )

    log.info("withdrawal #%s requested by user %s: %d via %s", wr.pk, user.pk, amount, method)
    return wr


@transaction.atomic
def mark_paid(withdrawal_id: int, receipt_ref: str, *, now=None) -> WithdrawalRequest:
    """
    Privileged: pending -> paid with the payout receipt. Repeating the call
    with the same receipt is a no-op; any other attempt on a paid request
    is rejected (status never moves backwards or changes receipt).
    """
    receipt_ref = str(receipt_ref or "").strip()
    if not receipt_ref:
        raise ValidationError("Receipt reference is required.", code="receipt_required")

    wr = WithdrawalRequest.objects.select_for_update().get(pk=withdrawal_id)
    if wr.status == WithdrawalStatus.PAID:
        if wr.receipt_ref == receipt_ref:
            return wr
        raise StateConflict("Withdrawal already paid.", code="already_paid")

    wr.status = WithdrawalStatus.PAID
    wr.receipt_ref = receipt_ref
    wr.paid_at = now or timezone.now()
    wr.save(update_fields=["status", "receipt_ref", "paid_at"])

    log.info("withdrawal #%s marked paid (receipt %s)", wr.pk, receipt_ref)
    return wr


def withdrawal_history(user, limit: Optional[int] = HISTORY_PAGE_SIZE) -> List[WithdrawalRequest]:
    qs = WithdrawalRequest.objects.filter(user=user).order_by("-created_at", "-id")
    return list(qs[:limit] if limit else qs)
