from django.core.management.base import BaseCommand, CommandError

from apps.pricing.application.tasks import update_daily_prices
from apps.pricing.infrastructure.persistence.models import TriggerSource


class Command(BaseCommand):
    help = 'Regenerate daily prices for all active commodities'

    def add_arguments(self, parser):
        parser.add_argument(
            '--sync',
            action='store_true',
            help='Execute synchronously instead of using Celery task queue'
        )

    def handle(self, **options):
        if options['sync']:
            self.stdout.write('Running in synchronous mode...')
            try:
                result = update_daily_prices(TriggerSource.MANUAL)
            except Exception as e:
                raise CommandError(f'Failed: {e}')

            if not result['success']:
                raise CommandError(f"Failed: {result.get('message', 'Unknown error')}")

            self.stdout.write(
                self.style.SUCCESS(
                    f"Updated {result['updated']} of {result['total']} commodities"
                )
            )
            if result['skipped']:
                self.stdout.write(
                    self.style.WARNING(f"Skipped: {len(result['skipped'])}")
                )
            if result['failures']:
                self.stdout.write(
                    self.style.WARNING(f"Failures: {len(result['failures'])}")
                )
        else:
            self.stdout.write('Dispatching Celery task...')
            task = update_daily_prices.delay(TriggerSource.MANUAL)

            self.stdout.write(
                self.style.SUCCESS(
                    f'Task dispatched with ID: {task.id}'
                )
            )
            self.stdout.write(
                'Use "celery -A core inspect active" to check task status'
            )
