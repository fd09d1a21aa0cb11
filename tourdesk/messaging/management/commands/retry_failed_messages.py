from django.core.management.base import BaseCommand, CommandError

from messaging.models import Channel

ROW = '{:<6} {:<9} {:<30} {:<24} {:<16} {:<7} {}'


class Command(BaseCommand):
    help = "Retry failed messages that haven't exceeded the maximum retry attempts"

    def add_arguments(self, parser):
        parser.add_argument(
            '--limit',
            type=int,
            default=50,
            help='Maximum number of messages to retry (default: 50)',
        )
        parser.add_argument(
            '--channel',
            choices=Channel.values,
            help='Only retry messages on this channel',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List retryable messages without retrying them',
        )

    def handle(self, *args, **options):
        from messaging.notifications.retry import RetryCoordinator

        limit = options['limit']
        channel = options['channel']
        dry_run = options['dry_run']

        self.stdout.write(f"Limit: {limit}  Channel: {channel or 'all'}  Mode: {'DRY RUN' if dry_run else 'LIVE'}")

        coordinator = RetryCoordinator()
        candidates = coordinator.get_retryable_messages(limit, channel)
        if not candidates:
            self.stdout.write(self.style.SUCCESS('No retryable messages found.'))
            return

        self.stdout.write(f'Found {len(candidates)} retryable message(s):')
        self.stdout.write(ROW.format('ID', 'Channel', 'Recipient', 'Booking', 'Failed at', 'Retries', 'Error'))
        for m in candidates:
            self.stdout.write(ROW.format(
                m.pk, m.channel, m.recipient[:30],
                (m.booking.customer_name if m.booking else 'N/A')[:24],
                m.failed_at.strftime('%Y-%m-%d %H:%M') if m.failed_at else '',
                m.retry_count,
                (m.error_message or '')[:50],
            ))

        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN - no messages were retried.'))
            return

        results = coordinator.batch_retry(limit, channel)
        self.stdout.write(f"Total: {results['total']}  Success: {results['success']}  Failed: {results['failed']}")
        for r in results['results']:
            outcome = 'OK' if r['success'] else f"FAILED {(r['error'] or '')[:40]}"
            self.stdout.write(f"  #{r['message_id']} {r['channel']} {r['recipient'][:30]}: {outcome}")

        if results['failed']:
            raise CommandError(f"{results['failed']} message(s) failed to retry. Check logs for details.")
        self.stdout.write(self.style.SUCCESS('All messages retried successfully.'))
