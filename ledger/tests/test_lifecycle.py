from datetime import timedelta
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase

from ledger.allocator import ensure_assignments
from ledger.completion import complete_task
from ledger.daykey import day_key
from ledger.errors import StateConflict
from ledger.lifecycle import (
    cancel_account_deletion,
    purge_account,
    purge_deleted_accounts,
    request_account_deletion,
)
from ledger.models import (
    CompletionRecord,
    DailyAssignment,
    ReferralBonusGrant,
    TaskDefinition,
    Wallet,
    WithdrawalRequest,
)
from ledger.withdrawals import request_withdrawal

from .helpers import local, make_catalog, make_user, wallet_of

User = get_user_model()


class DeletionRequestTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.now = local(2024, 8, 1, 10, 0)

    def test_request_sets_both_stamps(self):
        request_account_deletion(self.user, now=self.now)
        self.user.refresh_from_db()
        self.assertEqual(self.user.delete_requested_at, self.now)
        self.assertEqual(self.user.delete_effective_at, self.now + timedelta(days=7))
        self.assertTrue(self.user.deletion_pending)

    def test_repeat_request_keeps_schedule(self):
        request_account_deletion(self.user, now=self.now)
        request_account_deletion(self.user, now=self.now + timedelta(days=3))
        self.user.refresh_from_db()
        self.assertEqual(self.user.delete_effective_at, self.now + timedelta(days=7))

    def test_cancel_within_grace(self):
        request_account_deletion(self.user, now=self.now)
        cancel_account_deletion(self.user, now=self.now + timedelta(days=6))
        self.user.refresh_from_db()
        self.assertIsNone(self.user.delete_requested_at)
        self.assertIsNone(self.user.delete_effective_at)

    def test_cancel_after_effective_rejected(self):
        request_account_deletion(self.user, now=self.now)
        with self.assertRaises(StateConflict) as cm:
            cancel_account_deletion(self.user, now=self.now + timedelta(days=7))
        self.assertEqual(cm.exception.code, "deletion_effective")


class PurgeTests(TestCase):
    def setUp(self):
        make_catalog(per_category=1, reward=300)
        self.now = local(2024, 8, 1, 10, 0)
        self.a = make_user()
        self.b = make_user(referral_code_used=self.a.referral_code)
        self.c = make_user(referral_code_used=self.b.referral_code)

        for u in (self.b, self.c):
            rows = ensure_assignments(u, day_key(self.now))
            complete_task(u, rows[0].task_id, "done", now=self.now)
        request_withdrawal(self.b, 100, "0712345678")
        # b is both a referred user (a <- b) and a referrer (b <- c)
        self.assertEqual(ReferralBonusGrant.objects.count(), 2)

        request_account_deletion(self.b, now=self.now)

    def test_nothing_due_before_grace_ends(self):
        self.assertEqual(purge_deleted_accounts(self.now + timedelta(days=6)), [])
        self.assertTrue(User.objects.filter(pk=self.b.pk).exists())

    def test_purge_removes_user_and_owned_rows(self):
        b_id = self.b.pk
        purged = purge_deleted_accounts(self.now + timedelta(days=7))
        self.assertEqual(purged, [b_id])

        self.assertFalse(User.objects.filter(pk=b_id).exists())
        self.assertFalse(Wallet.objects.filter(user_id=b_id).exists())
        self.assertFalse(DailyAssignment.objects.filter(user_id=b_id).exists())
        self.assertFalse(CompletionRecord.objects.filter(user_id=b_id).exists())
        self.assertFalse(WithdrawalRequest.objects.filter(user_id=b_id).exists())
        self.assertFalse(ReferralBonusGrant.objects.exists())

    def test_purge_leaves_others_intact(self):
        purge_deleted_accounts(self.now + timedelta(days=8))

        self.c.refresh_from_db()
        self.assertIsNone(self.c.referred_by)
        self.assertEqual(wallet_of(self.c).balance, 300)
        self.assertEqual(CompletionRecord.objects.filter(user=self.c).count(), 1)
        # bonuses already paid stay paid
        self.assertEqual(wallet_of(self.a).bonus_balance, 100)
        # the catalog is never touched
        self.assertEqual(TaskDefinition.objects.count(), 5)

    def test_second_sweep_is_empty(self):
        purge_deleted_accounts(self.now + timedelta(days=8))
        self.assertEqual(purge_deleted_accounts(self.now + timedelta(days=9)), [])

    def test_direct_purge_refuses_account_not_yet_due(self):
        early = self.now + timedelta(days=6)
        self.assertFalse(purge_account(self.b.pk, early))
        self.assertFalse(purge_account(self.a.pk, self.now + timedelta(days=30)))
        self.assertTrue(User.objects.filter(pk=self.b.pk).exists())
        self.assertTrue(User.objects.filter(pk=self.a.pk).exists())
        self.assertEqual(ReferralBonusGrant.objects.count(), 2)

        self.assertTrue(purge_account(self.b.pk, self.now + timedelta(days=7)))
        self.assertFalse(User.objects.filter(pk=self.b.pk).exists())


class PurgeCommandTests(TestCase):
    def setUp(self):
        self.user = make_user()
        request_account_deletion(self.user, now=local(2020, 1, 1, 0, 0))

    def test_dry_run_deletes_nothing(self):
        out = StringIO()
        call_command("purge_deleted_accounts", "--dry-run", stdout=out)
        self.assertIn("1 account(s) due", out.getvalue())
        self.assertTrue(User.objects.filter(pk=self.user.pk).exists())

    def test_run_purges(self):
        out = StringIO()
        call_command("purge_deleted_accounts", stdout=out)
        self.assertIn("Purged 1 account(s)", out.getvalue())
        self.assertFalse(User.objects.filter(pk=self.user.pk).exists())

    def test_now_option(self):
        out = StringIO()
        call_command("purge_deleted_accounts", "--dry-run", "--now", "2020-01-02T00:00:00", stdout=out)
        self.assertIn("0 account(s) due", out.getvalue())
