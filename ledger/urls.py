# ledger/urls.py
from django.urls import path

from . import views

app_name = "ledger"

urlpatterns = [
    path("tasks/today/", views.tasks_today, name="tasks_today"),
    path("tasks/<int:task_id>/complete/", views.task_complete, name="task_complete"),
    path("tasks/history/", views.task_history, name="task_history"),

    path("withdrawals/", views.withdrawal_create, name="withdrawal_create"),
    path("withdrawals/history/", views.withdrawal_list, name="withdrawal_list"),
    path("withdrawals/<int:withdrawal_id>/mark-paid/", views.withdrawal_mark_paid, name="withdrawal_mark_paid"),

    path("referrals/status/", views.referral_overview, name="referral_status"),
    path("referrals/redeem/", views.referral_redeem, name="referral_redeem"),

    path("account/delete-request/", views.account_delete_request, name="account_delete_request"),
    path("account/delete-cancel/", views.account_delete_cancel, name="account_delete_cancel"),
]
