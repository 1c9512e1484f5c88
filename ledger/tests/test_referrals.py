from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger.allocator import ensure_assignments
from ledger.completion import complete_task
from ledger.daykey import day_key
from ledger.errors import StateConflict
from ledger.models import CompletionRecord, ReferralBonusGrant, Wallet
from ledger.referrals import on_first_completion, redeem_bonus, referral_status

from .helpers import local, make_catalog, make_user, set_balance, wallet_of


class ReferralSignupTests(TestCase):
    def test_code_links_referrer(self):
        a = make_user()
        b = make_user(referral_code_used=a.referral_code.lower())
        self.assertEqual(b.referred_by, a)
        self.assertNotEqual(a.referral_code, b.referral_code)

    def test_unknown_code_rejected(self):
        with self.assertRaises(ValidationError) as cm:
            make_user(referral_code_used="NOPE0000")
        self.assertEqual(cm.exception.code, "invalid_referral_code")

    def test_no_code_no_referrer(self):
        self.assertIsNone(make_user().referred_by)


class ReferralBonusTests(TestCase):
    def setUp(self):
        make_catalog(per_category=1, reward=10)
        self.a = make_user()
        self.b = make_user(referral_code_used=self.a.referral_code)
        self.now = local(2024, 6, 1, 9, 0)
        self.rows = ensure_assignments(self.b, day_key(self.now))

    def test_first_completion_pays_once(self):
        for r in self.rows[:3]:
            complete_task(self.b, r.task_id, "done", now=self.now)

        self.assertEqual(wallet_of(self.a).bonus_balance, 100)
        self.assertEqual(wallet_of(self.a).balance, 0)
        self.assertEqual(ReferralBonusGrant.objects.filter(referrer=self.a, referred_user=self.b).count(), 1)
        # the referred user's own wallet only gets task rewards
        self.assertEqual(wallet_of(self.b).balance, 30)
        self.assertEqual(wallet_of(self.b).bonus_balance, 0)

    def test_replayed_hook_is_a_no_op(self):
        complete_task(self.b, self.rows[0].task_id, "done", now=self.now)
        self.assertFalse(on_first_completion(self.b))
        self.assertEqual(wallet_of(self.a).bonus_balance, 100)

    def test_existing_grant_absorbs_second_payment(self):
        # A grant row already exists (e.g. from a racing retry): no second credit
        ReferralBonusGrant.objects.create(referrer=self.a, referred_user=self.b, amount=100)
        complete_task(self.b, self.rows[0].task_id, "done", now=self.now)
        self.assertEqual(wallet_of(self.a).bonus_balance, 0)
        self.assertEqual(ReferralBonusGrant.objects.count(), 1)
        self.assertEqual(CompletionRecord.objects.filter(user=self.b).count(), 1)

    def test_referrer_without_wallet_row_still_gets_paid(self):
        Wallet.objects.filter(user=self.a).delete()
        complete_task(self.b, self.rows[0].task_id, "done", now=self.now)

        self.assertEqual(ReferralBonusGrant.objects.filter(referrer=self.a).count(), 1)
        self.assertEqual(wallet_of(self.a).bonus_balance, 100)

    def test_unreferred_user_pays_nobody(self):
        c = make_user()
        rows = ensure_assignments(c, day_key(self.now))
        complete_task(c, rows[0].task_id, "done", now=self.now)
        self.assertFalse(ReferralBonusGrant.objects.exists())

    def test_status_counts(self):
        make_user(referral_code_used=self.a.referral_code)
        complete_task(self.b, self.rows[0].task_id, "done", now=self.now)

        st = referral_status(self.a)
        self.assertEqual(st.referral_count, 2)
        self.assertEqual(st.verified_count, 1)
        self.assertEqual(st.bonus_balance, 100)
        self.assertEqual(st.redeem_block, 1000)
        self.assertFalse(st.can_redeem)


class RedeemBonusTests(TestCase):
    def setUp(self):
        self.user = make_user()

    def test_below_threshold_rejected(self):
        set_balance(self.user, balance=50, bonus_balance=900)
        with self.assertRaises(StateConflict) as cm:
            redeem_bonus(self.user)
        self.assertEqual(cm.exception.code, "bonus_threshold")
        w = wallet_of(self.user)
        self.assertEqual((w.balance, w.bonus_balance), (50, 900))

    def test_moves_one_block(self):
        set_balance(self.user, balance=50, bonus_balance=1200)
        w = redeem_bonus(self.user)
        self.assertEqual((w.balance, w.bonus_balance), (1050, 200))

        with self.assertRaises(StateConflict):
            redeem_bonus(self.user)

    def test_exact_block(self):
        set_balance(self.user, bonus_balance=1000)
        w = redeem_bonus(self.user)
        self.assertEqual((w.balance, w.bonus_balance), (1000, 0))
