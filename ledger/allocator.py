# ledger/allocator.py
from __future__ import annotations

import logging
import random
from collections import defaultdict
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from django.db import IntegrityError, transaction

from .catalog import active_tasks
from .constants import DAILY_TASK_LIMIT
from .models import DailyAssignment

log = logging.getLogger(__name__)


# =========================
# Pure selection (no DB)
# =========================

def pick_daily_tasks(
    pool: Mapping[str, Sequence[int]],
    used_categories: Iterable[str],
    slots: int,
    rng: random.Random,
) -> List[Tuple[str, int]]:
    """
    Choose up to `slots` (category, task_id) pairs from `pool`
    (category -> candidate task ids), never repeating a category and never
    touching one already in `used_categories`.

    Input order does not matter: categories and ids are sorted before the
    rng sees them, so a seeded Random always yields the same picks.
    """
    if slots <= 0:
        return []
    used = set(used_categories)
    categories = sorted(c for c, ids in pool.items() if ids and c not in used)
    rng.shuffle(categories)

    picks: List[Tuple[str, int]] = []
    for category in categories[:slots]:
        picks.append((category, rng.choice(sorted(pool[category]))))
    return picks


# =========================
# Allocation against the store
# =========================

def _assignments_for(user, day_key: str) -> List[DailyAssignment]:
    return list(
        DailyAssignment.objects
        .filter(user=user, day_key=day_key)
        .select_related("task")
        .order_by("slot")
    )


def ensure_assignments(user, day_key: str, *, rng: Optional[random.Random] = None) -> List[DailyAssignment]:
    """
    Return the user's assignments for `day_key`, creating missing ones.

    - A full day (DAILY_TASK_LIMIT rows) is frozen and returned untouched.
    - New picks fill the free slots with categories not used yet that day.
    - A short catalog yields a short day, never a repeated category.
    - Each insert runs in its own savepoint; a unique-constraint clash from
      a racing request (same task, category or slot) is absorbed and the
      final answer is whatever the store holds after a re-read.
    """
    existing = _assignments_for(user, day_key)
    if len(existing) >= DAILY_TASK_LIMIT:
        return existing

    used = {a.category for a in existing}
    taken_slots = {a.slot for a in existing}
    free_slots = [s for s in range(1, DAILY_TASK_LIMIT + 1) if s not in taken_slots]

    pool = defaultdict(list)
    for category, task_id in active_tasks().exclude(category__in=used).values_list("category", "id"):
        pool[category].append(task_id)

    picks = pick_daily_tasks(pool, used, len(free_slots), rng or random.Random())
    if not picks:
        return existing

    absorbed = 0
    for slot, (category, task_id) in zip(free_slots, picks):
        try:
            with transaction.atomic():
                DailyAssignment.objects.create(
                    user=user,
                    day_key=day_key,
                    slot=slot,
                    task_id=task_id,
                    category=category,
                )
        except IntegrityError:
            absorbed += 1

    if absorbed:
        log.info("allocation for user %s on %s: %d concurrent insert(s) absorbed", user.pk, day_key, absorbed)

    assignments = _assignments_for(user, day_key)
    log.debug("user %s has %d assignment(s) on %s", user.pk, len(assignments), day_key)
    return assignments
