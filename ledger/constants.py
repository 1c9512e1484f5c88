# ledger/constants.py
from django.conf import settings

# Reset boundary: local midnight in this zone
TASK_DAY_TIMEZONE = getattr(settings, "TASK_DAY_TIMEZONE", "Africa/Nairobi")

DAILY_TASK_LIMIT = int(getattr(settings, "DAILY_TASK_LIMIT", 5))
ANSWER_MIN_LENGTH = int(getattr(settings, "TASK_ANSWER_MIN_LENGTH", 2))
HISTORY_PAGE_SIZE = int(getattr(settings, "TASK_HISTORY_PAGE_SIZE", 50))

REFERRAL_BONUS_AMOUNT = int(getattr(settings, "REFERRAL_BONUS_AMOUNT", 100))
REFERRAL_REDEEM_BLOCK = int(getattr(settings, "REFERRAL_REDEEM_BLOCK", 1000))

WITHDRAWAL_MIN_AMOUNT = int(getattr(settings, "WITHDRAWAL_MIN_AMOUNT", 1))
ACCOUNT_DELETE_GRACE_DAYS = int(getattr(settings, "ACCOUNT_DELETE_GRACE_DAYS", 7))
