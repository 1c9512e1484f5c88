# ledger/management/commands/seed_catalog.py
from __future__ import annotations

import random

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from ledger.models import TaskCategory, TaskDefinition

SAMPLE_PROMPTS = {
    TaskCategory.AUDIO_TRANSCRIPTION: "Listen to the clip and type what is said.",
    TaskCategory.VIDEO_TRANSCRIPTION: "Watch the video and transcribe the spoken words.",
    TaskCategory.IMAGE_CAPTION: "Write a one-sentence caption for the image.",
    TaskCategory.IMAGE_TAGGING: "List the main objects you can see, comma separated.",
    TaskCategory.TEXT_CLEANUP: "Fix the spelling and punctuation of the paragraph.",
}


class Command(BaseCommand):
    help = "Seed sample TaskDefinition rows for every category."

    def add_arguments(self, parser):
        parser.add_argument("--per-category", type=int, default=3, help="Tasks to create per category")
        parser.add_argument("--min-reward", type=int, default=10, help="Lowest reward (KSH)")
        parser.add_argument("--max-reward", type=int, default=50, help="Highest reward (KSH)")
        parser.add_argument("--seed", type=int, default=None, help="Random seed for rewards")

    @transaction.atomic
    def handle(self, *args, **opts):
        per = opts["per_category"]
        lo, hi = opts["min_reward"], opts["max_reward"]
        if per < 1:
            raise CommandError("--per-category must be at least 1")
        if lo < 1 or hi < lo:
            raise CommandError("Rewards must satisfy 1 <= --min-reward <= --max-reward")

        rng = random.Random(opts["seed"])
        created = 0
        for category, label in TaskCategory.choices:
            for i in range(1, per + 1):
                TaskDefinition.objects.create(
                    category=category,
                    title=f"{label} #{i}",
                    prompt=SAMPLE_PROMPTS[category],
                    reward=rng.randint(lo, hi),
                    complexity=rng.randint(1, 3),
                )
                created += 1

        self.stdout.write(self.style.SUCCESS(f"Created {created} task(s) across {len(TaskCategory.choices)} categories."))
