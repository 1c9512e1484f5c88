from datetime import timedelta
from unittest.mock import patch

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.test import TestCase

from ledger.allocator import ensure_assignments
from ledger.completion import complete_task, completion_history, remaining_today
from ledger.daykey import day_key
from ledger.errors import StateConflict
from ledger.models import CompletionRecord, DailyAssignment, TaskDefinition

from .helpers import local, make_catalog, make_user, wallet_of


class CompleteTaskTests(TestCase):
    def setUp(self):
        self.user = make_user()
        make_catalog(per_category=2, reward=25)
        self.now = local(2024, 5, 10, 14, 0)
        self.key = day_key(self.now)
        self.rows = ensure_assignments(self.user, self.key)
        self.task_id = self.rows[0].task_id

    def test_success_credits_reward_and_records(self):
        balance = complete_task(self.user, self.task_id, "  the answer  ", now=self.now)
        self.assertEqual(balance, 25)
        self.assertEqual(wallet_of(self.user).balance, 25)

        row = DailyAssignment.objects.get(pk=self.rows[0].pk)
        self.assertEqual(row.completed_at, self.now)
        self.assertEqual(row.answer, "the answer")

        rec = CompletionRecord.objects.get(user=self.user)
        self.assertEqual((rec.task_id, rec.reward, rec.day_key), (self.task_id, 25, self.key))
        self.assertEqual(rec.assignment_id, row.pk)
        self.assertEqual(remaining_today(self.user, self.key), 4)

    def test_short_answer_rejected_before_anything_else(self):
        for answer in (None, "", " ", "x", "  y  "):
            with self.assertRaises(ValidationError) as cm:
                complete_task(self.user, 999999, answer, now=self.now)
            self.assertNotIsInstance(cm.exception, StateConflict)
            self.assertEqual(cm.exception.code, "answer_required")
        self.assertEqual(wallet_of(self.user).balance, 0)

    def test_unassigned_task_rejected(self):
        assigned = {r.task_id for r in self.rows}
        stranger = TaskDefinition.objects.exclude(pk__in=assigned).first()
        with self.assertRaises(StateConflict) as cm:
            complete_task(self.user, stranger.pk, "ok", now=self.now)
        self.assertEqual(cm.exception.code, "not_assigned")

    def test_yesterdays_assignment_is_not_todays(self):
        with self.assertRaises(StateConflict) as cm:
            complete_task(self.user, self.task_id, "ok", now=self.now + timedelta(days=1))
        self.assertEqual(cm.exception.code, "not_assigned")

    def test_double_complete_rejected_and_credited_once(self):
        complete_task(self.user, self.task_id, "first", now=self.now)
        with self.assertRaises(StateConflict) as cm:
            complete_task(self.user, self.task_id, "second", now=self.now)
        self.assertEqual(cm.exception.code, "already_completed")
        self.assertEqual(wallet_of(self.user).balance, 25)
        self.assertEqual(CompletionRecord.objects.filter(user=self.user).count(), 1)
        self.assertEqual(DailyAssignment.objects.get(pk=self.rows[0].pk).answer, "first")

    def test_deactivated_task_rejected(self):
        TaskDefinition.objects.filter(pk=self.task_id).update(is_active=False)
        with self.assertRaises(StateConflict) as cm:
            complete_task(self.user, self.task_id, "ok", now=self.now)
        self.assertEqual(cm.exception.code, "task_unavailable")
        self.assertIsNone(DailyAssignment.objects.get(pk=self.rows[0].pk).completed_at)

    def test_completed_check_comes_before_active_check(self):
        complete_task(self.user, self.task_id, "ok", now=self.now)
        TaskDefinition.objects.filter(pk=self.task_id).update(is_active=False)
        with self.assertRaises(StateConflict) as cm:
            complete_task(self.user, self.task_id, "ok", now=self.now)
        self.assertEqual(cm.exception.code, "already_completed")

    def test_failure_mid_transaction_leaves_nothing(self):
        with patch("ledger.completion.CompletionRecord.objects.create", side_effect=DatabaseError("boom")):
            with self.assertRaises(DatabaseError):
                complete_task(self.user, self.task_id, "ok", now=self.now)

        self.assertIsNone(DailyAssignment.objects.get(pk=self.rows[0].pk).completed_at)
        self.assertEqual(wallet_of(self.user).balance, 0)
        self.assertFalse(CompletionRecord.objects.exists())

        # and the retry goes through cleanly
        self.assertEqual(complete_task(self.user, self.task_id, "ok", now=self.now), 25)

    def test_completing_all_five(self):
        for r in self.rows:
            complete_task(self.user, r.task_id, "done", now=self.now)
        self.assertEqual(wallet_of(self.user).balance, 125)
        self.assertEqual(remaining_today(self.user, self.key), 0)


class CompletionHistoryTests(TestCase):
    def test_newest_first_and_capped(self):
        user = make_user()
        make_catalog(per_category=1, reward=5)
        start = local(2024, 1, 1, 10, 0)
        for d in range(12):
            now = start + timedelta(days=d)
            for r in ensure_assignments(user, day_key(now)):
                complete_task(user, r.task_id, "done", now=now)

        rows = completion_history(user)
        self.assertEqual(len(rows), 50)
        stamps = [r.created_at for r in rows]
        self.assertEqual(stamps, sorted(stamps, reverse=True))
        self.assertEqual(rows[0].day_key, day_key(start + timedelta(days=11)))
        self.assertEqual(len(completion_history(user, limit=3)), 3)

