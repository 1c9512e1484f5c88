from datetime import datetime
from itertools import count
from zoneinfo import ZoneInfo

from django.contrib.auth import get_user_model

from ledger.models import TaskCategory, TaskDefinition, Wallet

NAIROBI = ZoneInfo("Africa/Nairobi")
_phones = count(1)


def make_user(referral_code_used=None, **extra):
    phone = extra.pop("phone", None) or f"+2547000{next(_phones):05d}"
    return get_user_model().objects.create_user(phone, "pass-1234", referral_code_used=referral_code_used, **extra)


def make_catalog(per_category=2, categories=None, reward=10):
    """Active tasks for each category; returns {category: [task, ...]}."""
    out = {}
    for category in categories or TaskCategory.values:
        out[category] = [
            TaskDefinition.objects.create(
                category=category, title=f"{category} {i}", prompt="do it", reward=reward,
            )
            for i in range(per_category)
        ]
    return out


def set_balance(user, balance=None, bonus_balance=None):
    fields = {}
    if balance is not None:
        fields["balance"] = balance
    if bonus_balance is not None:
        fields["bonus_balance"] = bonus_balance
    Wallet.objects.filter(user=user).update(**fields)


def wallet_of(user) -> Wallet:
    return Wallet.objects.get(user=user)


def local(*args) -> datetime:
    return datetime(*args, tzinfo=NAIROBI)
