from __future__ import annotations

from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin
from django.contrib.auth.forms import UserChangeForm, UserCreationForm
from django.core.exceptions import ValidationError
from django.utils.html import format_html

from .errors import error_message
from .models import (
    CompletionRecord,
    CustomUser,
    DailyAssignment,
    ReferralBonusGrant,
    TaskDefinition,
    Wallet,
    WithdrawalRequest,
    WithdrawalStatus,
)
from .withdrawals import mark_paid

admin.site.site_header = "TaskHub Administration"
admin.site.site_title = "TaskHub Admin"
admin.site.index_title = "Ledger"


# ======================
# Users / Wallets
# ======================
class CustomUserCreationForm(UserCreationForm):
    class Meta(UserCreationForm.Meta):
        model = CustomUser
        fields = ("phone",)


class CustomUserChangeForm(UserChangeForm):
    class Meta(UserChangeForm.Meta):
        model = CustomUser
        fields = "__all__"


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    add_form = CustomUserCreationForm
    form = CustomUserChangeForm
    model = CustomUser

    list_display = (
        "id", "phone", "nickname", "referral_code", "referred_by",
        "delete_effective_at", "is_active", "is_staff", "date_joined",
    )
    list_display_links = ("id", "phone")
    list_filter = ("is_active", "is_staff", "is_superuser")
    search_fields = ("phone", "nickname", "referral_code")
    ordering = ("-date_joined",)
    raw_id_fields = ("referred_by",)

    fieldsets = (
        (None, {"fields": ("phone", "password")}),
        ("Profile", {"fields": ("nickname",)}),
        ("Referrals", {"fields": ("referral_code", "referred_by")}),
        ("Deletion", {"fields": ("delete_requested_at", "delete_effective_at")}),
        ("Permissions", {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
        ("Important dates", {"fields": ("last_login", "date_joined")}),
    )

    add_fieldsets = (
        (None, {
            "classes": ("wide",),
            "fields": ("phone", "password1", "password2", "is_active", "is_staff", "is_superuser"),
        }),
    )

    # referred_by is set at signup only
    readonly_fields = ("referral_code", "referred_by", "delete_requested_at", "delete_effective_at",
                       "date_joined", "last_login")


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ("user", "balance_col", "bonus_col", "updated_at")
    search_fields = ("user__phone", "user__nickname", "user__id")
    list_select_related = ("user",)
    ordering = ("-balance",)
    # Balances only move through the ledger services
    readonly_fields = ("user", "balance", "bonus_balance", "updated_at")

    @admin.display(description="Balance (KSH)", ordering="balance")
    def balance_col(self, obj):
        return f"{obj.balance:,}"

    @admin.display(description="Bonus (KSH)", ordering="bonus_balance")
    def bonus_col(self, obj):
        return f"{obj.bonus_balance:,}"

    def has_add_permission(self, request):
        return False


# ======================
# Tasks
# ======================
@admin.register(TaskDefinition)
class TaskDefinitionAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "category", "reward", "complexity", "is_active", "created_at")
    list_filter = ("category", "is_active")
    search_fields = ("title", "prompt")
    list_editable = ("is_active",)
    actions = ["mark_active", "mark_inactive"]

    @admin.action(description="Mark selected as ACTIVE")
    def mark_active(self, request, queryset):
        queryset.update(is_active=True)

    @admin.action(description="Mark selected as INACTIVE")
    def mark_inactive(self, request, queryset):
        queryset.update(is_active=False)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(DailyAssignment)
class DailyAssignmentAdmin(ReadOnlyAdmin):
    list_display = ("user", "day_key", "slot", "task", "category", "completed_at")
    list_filter = ("day_key", "category")
    search_fields = ("user__phone", "day_key")
    list_select_related = ("user", "task")


@admin.register(CompletionRecord)
class CompletionRecordAdmin(ReadOnlyAdmin):
    list_display = ("user", "task", "day_key", "reward", "created_at")
    list_filter = ("day_key",)
    search_fields = ("user__phone",)
    list_select_related = ("user", "task")


@admin.register(ReferralBonusGrant)
class ReferralBonusGrantAdmin(ReadOnlyAdmin):
    list_display = ("referrer", "referred_user", "amount", "created_at")
    search_fields = ("referrer__phone", "referred_user__phone")
    list_select_related = ("referrer", "referred_user")


# ======================
# Withdrawals
# ======================
@admin.action(description="Mark selected withdrawals as PAID")
def mark_withdrawals_paid(modeladmin, request, queryset):
    done = failed = skipped = 0
    for w in queryset.filter(status=WithdrawalStatus.PENDING):
        # The payout receipt is typed on the change form first
        if not w.receipt_ref:
            skipped += 1
            continue
        try:
            mark_paid(w.pk, w.receipt_ref)
            done += 1
        except ValidationError as e:
            failed += 1
            messages.error(request, f"#{w.pk}: {error_message(e)}")
    if done:
        messages.success(request, f"Marked {done} withdrawal(s) as paid.")
    if skipped:
        messages.warning(request, f"Skipped {skipped} withdrawal(s) with no receipt reference; enter the receipt first.")
    if not done and not failed and not skipped:
        messages.info(request, "No pending withdrawals selected.")


@admin.register(WithdrawalRequest)
class WithdrawalRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "amount_display", "method", "phone", "status_badge", "receipt_ref",
                    "created_at", "paid_at")
    list_filter = ("status", "method", "created_at")
    search_fields = ("id", "user__phone", "phone", "receipt_ref")
    list_select_related = ("user",)
    actions = [mark_withdrawals_paid]
    readonly_fields = ("user", "amount", "phone", "method", "status", "created_at", "paid_at")

    @admin.display(description="Amount", ordering="amount")
    def amount_display(self, obj):
        return f"KSH {obj.amount:,}"

    @admin.display(description="Status", ordering="status")
    def status_badge(self, obj):
        c = "#10b981" if obj.is_paid else "#f59e0b"
        return format_html(
            '<span style="padding:2px 8px;border-radius:9999px;background:{}20;color:{};font-weight:600;">{}</span>',
            c, c, obj.get_status_display(),
        )

    def get_readonly_fields(self, request, obj=None):
        if obj is not None and obj.is_paid:
            return self.readonly_fields + ("receipt_ref",)
        return self.readonly_fields

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
