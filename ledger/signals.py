# ledger/signals.py
import logging

from django.apps import apps
from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Wallet

log = logging.getLogger(__name__)


# --- Signal: every account gets exactly one wallet on creation ---
@receiver(post_save, dispatch_uid="ledger_wallet_create")
def wallet_create(sender, instance, created, raw=False, **kwargs):
    """
    Runs for the AUTH_USER_MODEL only. get_or_create keeps it idempotent
    if the signal fires twice for the same user (fixtures, retries).
    """
    UserModel = apps.get_model(settings.AUTH_USER_MODEL)
    if sender is not UserModel or not created or raw:
        return

    _, made = Wallet.objects.get_or_create(user=instance)
    if made:
        log.debug("wallet created for user %s", instance.pk)
