# ledger/views.py
from __future__ import annotations

import json
import logging
from functools import wraps

from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.cache import never_cache
from django.views.decorators.http import require_http_methods
from django_ratelimit.decorators import ratelimit

from .allocator import ensure_assignments
from .completion import complete_task, completion_history, remaining_today
from .daykey import day_key, next_reset_at, seconds_until_reset
from .errors import StateConflict, error_code, error_message
from .lifecycle import cancel_account_deletion, request_account_deletion
from .models import Wallet, WithdrawalRequest
from .referrals import redeem_bonus, referral_status
from .withdrawals import mark_paid, request_withdrawal, withdrawal_history

log = logging.getLogger(__name__)

WRITE_RATE = getattr(settings, "LEDGER_RATELIMIT_WRITE", "30/m")


# =========================
# Plumbing
# =========================

def _error(exc: ValidationError) -> JsonResponse:
    status = 409 if isinstance(exc, StateConflict) else 400
    return JsonResponse({"ok": False, "error": error_message(exc), "code": error_code(exc)}, status=status)


def api_login_required(view):
    """login_required for JSON endpoints: 401 instead of a redirect."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"ok": False, "error": "Authentication required.", "code": "login_required"}, status=401)
        return view(request, *args, **kwargs)
    return wrapper


def api_staff_required(view):
    @wraps(view)
    @api_login_required
    def wrapper(request, *args, **kwargs):
        if not request.user.is_staff:
            return JsonResponse({"ok": False, "error": "Staff only.", "code": "forbidden"}, status=403)
        return view(request, *args, **kwargs)
    return wrapper


def _payload(request) -> dict:
    """JSON body if there is one, else form fields."""
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, ValueError):
            raise ValidationError("Invalid JSON.", code="invalid_json")
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON.", code="invalid_json")
        return data
    return request.POST.dict()


def _wallet(user) -> Wallet:
    wallet, _ = Wallet.objects.get_or_create(user=user)
    return wallet


def _task_payload(a) -> dict:
    t = a.task
    return {
        "id": t.id,
        "slot": a.slot,
        "category": a.category,
        "title": t.title,
        "prompt": t.prompt,
        "mediaUrl": t.media_url,
        "reward": t.reward,
        "completed": a.is_completed,
        "answer": a.answer if a.is_completed else None,
    }


def _withdrawal_payload(wr: WithdrawalRequest) -> dict:
    return {
        "id": wr.id,
        "amount": wr.amount,
        "phone": wr.phone,
        "method": wr.method,
        "status": wr.status,
        "receiptRef": wr.receipt_ref or None,
        "createdAt": wr.created_at.isoformat(),
        "paidAt": wr.paid_at.isoformat() if wr.paid_at else None,
    }


# =========================
# Tasks
# =========================

@never_cache
@api_login_required
@require_http_methods(["GET"])
def tasks_today(request):
    now = timezone.now()
    key = day_key(now)
    assignments = ensure_assignments(request.user, key)
    wallet = _wallet(request.user)
    return JsonResponse({
        "dayKey": key,
        "remaining": sum(1 for a in assignments if not a.is_completed),
        "balance": wallet.balance,
        "bonusBalance": wallet.bonus_balance,
        "nextResetAt": next_reset_at(now).isoformat(),
        "secondsUntilReset": seconds_until_reset(now),
        "tasks": [_task_payload(a) for a in assignments],
    })


@api_login_required
@ratelimit(key="user", rate=WRITE_RATE, method="POST", block=True)
@require_http_methods(["POST"])
def task_complete(request, task_id: int):
    try:
        data = _payload(request)
        now = timezone.now()
        balance = complete_task(request.user, task_id, data.get("answer"), now=now)
    except ValidationError as e:
        log.info("completion rejected for user %s task %s: %s", request.user.pk, task_id, error_code(e))
        return _error(e)

    return JsonResponse({
        "ok": True,
        "balance": balance,
        "remaining": remaining_today(request.user, day_key(now)),
    })


@never_cache
@api_login_required
@require_http_methods(["GET"])
def task_history(request):
    rows = completion_history(request.user)
    return JsonResponse({
        "items": [
            {
                "timestamp": r.created_at.isoformat(),
                "dayKey": r.day_key,
                "taskId": r.task_id,
                "category": r.task.category,
                "title": r.task.title,
                "reward": r.reward,
            }
            for r in rows
        ],
    })


# =========================
# Withdrawals
# =========================

@api_login_required
@ratelimit(key="user", rate=WRITE_RATE, method="POST", block=True)
@require_http_methods(["POST"])
def withdrawal_create(request):
    try:
        data = _payload(request)
        wr = request_withdrawal(
            request.user,
            data.get("amount"),
            data.get("phone"),
            data.get("method"),
        )
    except ValidationError as e:
        log.info("withdrawal rejected for user %s: %s", request.user.pk, error_code(e))
        return _error(e)

    return JsonResponse({
        "ok": True,
        "withdrawalId": wr.id,
        "status": wr.status,
        "balance": _wallet(request.user).balance,
    }, status=201)


@never_cache
@api_login_required
@require_http_methods(["GET"])
def withdrawal_list(request):
    return JsonResponse({"items": [_withdrawal_payload(wr) for wr in withdrawal_history(request.user)]})


@api_staff_required
@require_http_methods(["POST"])
def withdrawal_mark_paid(request, withdrawal_id: int):
    try:
        data = _payload(request)
        wr = mark_paid(withdrawal_id, data.get("receipt_ref") or data.get("receiptRef"))
    except WithdrawalRequest.DoesNotExist:
        return JsonResponse({"ok": False, "error": "Withdrawal not found.", "code": "withdrawal_not_found"}, status=404)
    except ValidationError as e:
        return _error(e)

    log.info("staff %s marked withdrawal #%s paid", request.user.pk, wr.pk)
    return JsonResponse({"ok": True, "withdrawal": _withdrawal_payload(wr)})


# =========================
# Referrals
# =========================

@never_cache
@api_login_required
@require_http_methods(["GET"])
def referral_overview(request):
    st = referral_status(request.user)
    return JsonResponse({
        "referralCode": request.user.referral_code,
        "referralCount": st.referral_count,
        "verifiedCount": st.verified_count,
        "bonusBalance": st.bonus_balance,
        "redeemBlock": st.redeem_block,
        "canRedeem": st.can_redeem,
    })


@api_login_required
@ratelimit(key="user", rate=WRITE_RATE, method="POST", block=True)
@require_http_methods(["POST"])
def referral_redeem(request):
    try:
        wallet = redeem_bonus(request.user)
    except ValidationError as e:
        return _error(e)
    return JsonResponse({"ok": True, "balance": wallet.balance, "bonusBalance": wallet.bonus_balance})


# =========================
# Account lifecycle
# =========================

def _deletion_payload(user) -> dict:
    return {
        "ok": True,
        "deletionPending": user.deletion_pending,
        "requestedAt": user.delete_requested_at.isoformat() if user.delete_requested_at else None,
        "effectiveAt": user.delete_effective_at.isoformat() if user.delete_effective_at else None,
    }


@api_login_required
@require_http_methods(["POST"])
def account_delete_request(request):
    user = request_account_deletion(request.user)
    return JsonResponse(_deletion_payload(user))


@api_login_required
@require_http_methods(["POST"])
def account_delete_cancel(request):
    try:
        user = cancel_account_deletion(request.user)
    except ValidationError as e:
        return _error(e)
    return JsonResponse(_deletion_payload(user))
