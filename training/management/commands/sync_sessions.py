"""
Management command to refresh stored session state.

This command should be run periodically (e.g., every few minutes via cron)
so stored statuses follow the clock and every recurring session has its
occurrences.
"""

from django.core.management.base import BaseCommand
from training import services


class Command(BaseCommand):
    help = 'Re-classify session statuses, regenerate missing occurrences and drop duplicates'

    def add_arguments(self, parser):
        parser.add_argument(
            '--academy',
            default=None,
            help='Only sync this academy (default: all academies)'
        )

    def handle(self, *args, **options):
        academy = options['academy']

        self.stdout.write(
            f'Syncing sessions for {academy or "all academies"}...'
        )

        report = services.sync_statuses(academy_id=academy)

        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully synced {report.academies} academy(ies): '
                f'{report.status_updates} status update(s), '
                f'{report.occurrences_created} new occurrence(s), '
                f'{report.duplicates_removed} duplicate(s) removed'
            )
        )
        if report.skipped:
            self.stdout.write(
                self.style.WARNING(f'Skipped {report.skipped} malformed document(s)')
            )
