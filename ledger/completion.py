# ledger/completion.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .constants import ANSWER_MIN_LENGTH, HISTORY_PAGE_SIZE
from .daykey import day_key
from .errors import StateConflict
from .models import CompletionRecord, DailyAssignment, TaskDefinition, Wallet
from .referrals import on_first_completion

log = logging.getLogger(__name__)


def _clean_answer(answer) -> str:
    text = ("" if answer is None else str(answer)).strip()
    if len(text) < ANSWER_MIN_LENGTH:
        raise ValidationError("Answer is required.", code="answer_required")
    return text


def complete_task(user, task_id: int, answer, *, now: Optional[datetime] = None) -> int:
    """
    Complete today's assignment of `task_id` for `user` and return the new balance.

    Checked in order, each a distinct rejection:
      1. answer long enough            -> ValidationError(answer_required)
      2. assigned for today's day key  -> StateConflict(not_assigned)
      3. not completed yet             -> StateConflict(already_completed)
      4. task still active             -> StateConflict(task_unavailable)

    Then, in one transaction: stamp the assignment, insert the completion
    record, credit the wallet and run the first-completion referral hook.
    The assignment row is locked before the completed check and the stamp
    is a conditional update, so two racing submits cannot both pass.
    """
    text = _clean_answer(answer)
    now = now or timezone.now()
    key = day_key(now)

    with transaction.atomic():
        assignment = (
            DailyAssignment.objects
            .select_for_update()
            .filter(user=user, day_key=key, task_id=task_id)
            .first()
        )
        if assignment is None:
            raise StateConflict("Task not assigned for today.", code="not_assigned")
        if assignment.completed_at is not None:
            raise StateConflict("Task already completed.", code="already_completed")

        task = TaskDefinition.objects.filter(pk=task_id, is_active=True).first()
        if task is None:
            raise StateConflict("Task is no longer available.", code="task_unavailable")

        stamped = DailyAssignment.objects.filter(pk=assignment.pk, completed_at__isnull=True).update(
            completed_at=now,
            answer=text,
        )
        if not stamped:
            raise StateConflict("Task already completed.", code="already_completed")

        CompletionRecord.objects.create(
            user=user,
            task=task,
            assignment=assignment,
            day_key=key,
            reward=task.reward,
            answer=text,
            created_at=now,
        )

        wallet, _ = Wallet.objects.get_or_create(user=user)
        Wallet.objects.filter(pk=wallet.pk).update(balance=F("balance") + task.reward)
        wallet.refresh_from_db(fields=["balance"])

        on_first_completion(user)

    log.info("user %s completed task %s on %s: +%d, balance %d", user.pk, task_id, key, task.reward, wallet.balance)
    return int(wallet.balance)


def remaining_today(user, key: str) -> int:
    return DailyAssignment.objects.filter(user=user, day_key=key, completed_at__isnull=True).count()


def completion_history(user, limit: int = HISTORY_PAGE_SIZE) -> List[CompletionRecord]:
    """Newest first, capped at one page."""
    return list(
        CompletionRecord.objects
        .filter(user=user)
        .select_related("task")
        .order_by("-created_at", "-id")[:limit]
    )
