# ledger/management/commands/purge_deleted_accounts.py
from __future__ import annotations

from datetime import timezone as dt_timezone

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from ledger.lifecycle import due_for_purge, purge_deleted_accounts


class Command(BaseCommand):
    help = "Purge accounts whose deletion grace period has ended. Meant to run from cron."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="List the accounts that would be purged and exit")
        parser.add_argument("--now", type=str, default=None,
                            help="ISO-8601 instant to treat as 'now' (default: current time)")

    def handle(self, *args, **opts):
        now = timezone.now()
        if opts["now"]:
            now = parse_datetime(opts["now"])
            if now is None:
                raise CommandError(f"Could not parse --now {opts['now']!r}")
            if timezone.is_naive(now):
                now = timezone.make_aware(now, dt_timezone.utc)

        if opts["dry_run"]:
            due = list(due_for_purge(now).values_list("pk", "phone", "delete_effective_at"))
            for pk, phone, effective in due:
                self.stdout.write(f"would purge #{pk} {phone} (effective {effective.isoformat()})")
            self.stdout.write(self.style.WARNING(f"{len(due)} account(s) due; nothing deleted (dry run)."))
            return

        purged = purge_deleted_accounts(now)
        self.stdout.write(self.style.SUCCESS(f"Purged {len(purged)} account(s)."))
