from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction

from core.models import (
    DEFAULT_COURSES, DEFAULT_LEAD_STAGES, DEFAULT_LOCATIONS, DEFAULT_STATUSES, OptionSettings,
)


class Command(BaseCommand):
    help = 'Create the option settings catalog if missing and convert legacy lead stages to the label layout.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would change without touching the database.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        key = settings.OPTION_SETTINGS_KEY

        current = OptionSettings.objects.filter(key=key).first()
        if current is None:
            if dry_run:
                self.stdout.write(self.style.WARNING(f"Option settings '{key}' missing; would create defaults."))
                return
            OptionSettings.objects.create(
                key=key,
                courses=DEFAULT_COURSES,
                locations=DEFAULT_LOCATIONS,
                statuses=DEFAULT_STATUSES,
                lead_stages=DEFAULT_LEAD_STAGES,
            )
            self.stdout.write(self.style.SUCCESS(f"Created option settings '{key}' with defaults."))
            return

        normalized = OptionSettings.normalize_lead_stages(current.lead_stages)
        if normalized == current.lead_stages:
            self.stdout.write(self.style.SUCCESS('Lead stages already use the label layout.'))
            return

        self.stdout.write(self.style.WARNING(f"Converting {len(current.lead_stages)} lead stages."))
        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run complete.'))
            return

        with transaction.atomic():
            current.lead_stages = normalized
            current.save(update_fields=['lead_stages'])
        self.stdout.write(self.style.SUCCESS('Lead stages migrated.'))
