# models.py
from __future__ import annotations

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.crypto import get_random_string

User = settings.AUTH_USER_MODEL

REFERRAL_CODE_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


# ---------- Custom User ----------
class CustomUserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, phone, password, referral_code_used=None, **extra_fields):
        if not phone:
            raise ValueError("The phone number must be set")
        phone = phone.replace(" ", "").replace("-", "")

        # referred_by is resolved once, here, and never reassigned afterwards
        code = (referral_code_used or "").strip().upper()
        if code:
            referrer = self.filter(referral_code=code).first()
            if referrer is None:
                raise ValidationError("Invalid referral code.", code="invalid_referral_code")
            extra_fields["referred_by"] = referrer

        user = self.model(phone=phone, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, phone, password=None, referral_code_used=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(phone, password, referral_code_used, **extra_fields)

    def create_superuser(self, phone, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")
        return self._create_user(phone, password, **extra_fields)


class CustomUser(AbstractUser):
    username = None
    phone = models.CharField(max_length=20, unique=True)
    nickname = models.CharField(max_length=50, blank=True)

    # Referral graph: weak link, set at creation only
    referral_code = models.CharField(max_length=12, unique=True, db_index=True, blank=True)
    referred_by = models.ForeignKey(
        "self", on_delete=models.SET_NULL, null=True, blank=True, related_name="referrals"
    )

    # Deletion lifecycle (both set or both empty)
    delete_requested_at = models.DateTimeField(blank=True, null=True)
    delete_effective_at = models.DateTimeField(blank=True, null=True, db_index=True)

    USERNAME_FIELD = "phone"
    REQUIRED_FIELDS = []

    objects = CustomUserManager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(delete_requested_at__isnull=True, delete_effective_at__isnull=True)
                    | Q(delete_requested_at__isnull=False, delete_effective_at__isnull=False)
                ),
                name="user_delete_stamps_paired",
            ),
        ]

    def __str__(self) -> str:
        return self.nickname or self.phone

    @staticmethod
    def generate_referral_code(length: int = 8) -> str:
        # No confusing chars like I/O/0/1
        return get_random_string(length=length, allowed_chars=REFERRAL_CODE_CHARS)

    def save(self, *args, **kwargs):
        if self.phone:
            self.phone = self.phone.replace(" ", "").replace("-", "")
        if not self.referral_code:
            code = self.generate_referral_code()
            while type(self).objects.filter(referral_code=code).exists():
                code = self.generate_referral_code()
            self.referral_code = code
        super().save(*args, **kwargs)

    @property
    def display_name(self) -> str:
        return self.nickname or self.phone

    @property
    def deletion_pending(self) -> bool:
        return self.delete_effective_at is not None


# ---------- Wallet ----------
class Wallet(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="wallet"
    )

    # Spendable: task rewards + redeemed referral blocks, minus withdrawals
    balance = models.BigIntegerField(default=0)

    # Referral bonuses; only redeemable in fixed blocks
    bonus_balance = models.BigIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(balance__gte=0), name="wallet_balance_non_negative"),
            models.CheckConstraint(condition=Q(bonus_balance__gte=0), name="wallet_bonus_non_negative"),
        ]

    @property
    def balance_ksh(self) -> str:
        return f"KSH {self.balance:,}"

    @property
    def bonus_ksh(self) -> str:
        return f"KSH {self.bonus_balance:,}"

    def __str__(self):
        return f"Wallet({self.user})"


# ---------- Task catalog (read-only for the engine) ----------
class TaskCategory(models.TextChoices):
    AUDIO_TRANSCRIPTION = "audio_transcription", "Audio transcription"
    VIDEO_TRANSCRIPTION = "video_transcription", "Video transcription"
    IMAGE_CAPTION = "image_caption", "Image caption"
    IMAGE_TAGGING = "image_tagging", "Image tagging"
    TEXT_CLEANUP = "text_cleanup", "Text cleanup"


class TaskDefinitionQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)


class TaskDefinition(models.Model):
    category = models.CharField(max_length=40, choices=TaskCategory.choices, db_index=True)
    title = models.CharField(max_length=160)
    prompt = models.TextField()
    media_url = models.URLField(blank=True, default="")
    reward = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    complexity = models.PositiveSmallIntegerField(default=1)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TaskDefinitionQuerySet.as_manager()

    class Meta:
        ordering = ["id"]
        indexes = [models.Index(fields=["is_active", "category"], name="task_active_category_idx")]
        constraints = [
            models.CheckConstraint(condition=Q(reward__gt=0), name="task_reward_positive"),
        ]

    def __str__(self):
        return f"{self.title} [{self.category}] +{self.reward}"


# ---------- Per-user daily allocation ----------
class DailyAssignment(models.Model):
    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name="daily_assignments")
    day_key = models.CharField(max_length=10)
    # 1..DAILY_TASK_LIMIT; unique per (user, day) so racing allocators cannot overfill a day
    slot = models.PositiveSmallIntegerField()
    task = models.ForeignKey(TaskDefinition, on_delete=models.PROTECT, related_name="assignments")
    # copied from the (immutable) task so the DB can refuse a second task of one type per day
    category = models.CharField(max_length=40)

    assigned_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    answer = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["slot"]
        constraints = [
            models.UniqueConstraint(fields=["user", "day_key", "task"], name="uniq_assignment_user_day_task"),
            models.UniqueConstraint(fields=["user", "day_key", "category"], name="uniq_assignment_user_day_category"),
            models.UniqueConstraint(fields=["user", "day_key", "slot"], name="uniq_assignment_user_day_slot"),
            models.CheckConstraint(condition=Q(slot__gte=1), name="assignment_slot_positive"),
        ]

    def __str__(self):
        state = "done" if self.completed_at else "open"
        return f"{self.user} {self.day_key} #{self.slot} task={self.task_id} ({state})"

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class CompletionRecord(models.Model):
    """
    Append-only proof that a reward was earned. Exactly one per completed
    assignment (enforced by the one-to-one link).
    """
    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name="completions")
    task = models.ForeignKey(TaskDefinition, on_delete=models.PROTECT, related_name="completions")
    assignment = models.OneToOneField(DailyAssignment, on_delete=models.PROTECT, related_name="completion")
    day_key = models.CharField(max_length=10)
    reward = models.PositiveIntegerField()
    answer = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["user", "-created_at"], name="completion_user_created_idx")]

    def __str__(self):
        return f"{self.user} +{self.reward} task={self.task_id} {self.day_key}"


# ---------- Referrals ----------
class ReferralBonusGrant(models.Model):
    """
    Existence of a row == the referral bonus for this pair has been paid.
    """
    referrer = models.ForeignKey(User, on_delete=models.PROTECT, related_name="referral_grants_given")
    referred_user = models.ForeignKey(User, on_delete=models.PROTECT, related_name="referral_grants_received")
    amount = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["referrer", "referred_user"], name="uniq_referral_grant_pair"),
        ]

    def __str__(self):
        return f"{self.referrer} ← {self.referred_user} (+{self.amount})"


# ---------- Withdrawals ----------
class WithdrawalMethod(models.TextChoices):
    MPESA = "mpesa", "M-Pesa"
    AIRTEL_MONEY = "airtel_money", "Airtel Money"


class WithdrawalStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"


class WithdrawalRequest(models.Model):
    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name="withdrawals")
    amount = models.PositiveBigIntegerField(validators=[MinValueValidator(1)])
    phone = models.CharField(max_length=20)
    method = models.CharField(max_length=20, choices=WithdrawalMethod.choices, default=WithdrawalMethod.MPESA)

    status = models.CharField(
        max_length=10, choices=WithdrawalStatus.choices, default=WithdrawalStatus.PENDING
    )
    receipt_ref = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    paid_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["user", "-created_at"], name="withdrawal_user_created_idx")]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="withdrawal_amount_positive"),
            models.CheckConstraint(
                condition=Q(status=WithdrawalStatus.PENDING) | ~Q(receipt_ref=""),
                name="withdrawal_paid_has_receipt",
            ),
        ]

    @property
    def is_paid(self) -> bool:
        return self.status == WithdrawalStatus.PAID

    def __str__(self):
        return f"{self.user} - KSH {self.amount:,} via {self.get_method_display()} ({self.status})"
