"""Delivery monitoring queries for the back-office dashboard."""

from collections import Counter
from datetime import timedelta

from django.db.models import Avg, Count, DurationField, F, Q
from django.utils import timezone

from .exceptions import categorize_error
from .models import Channel, Message

RANGE_DAYS = {'24h': 1, '7d': 7, '30d': 30}
DELIVERY_RATE_THRESHOLD = 90.0  # percent

_DELIVERED = Q(status__in=[Message.Status.DELIVERED, Message.Status.READ])
_FAILED = Q(status=Message.Status.FAILED)
_IN_FLIGHT = Q(status__in=[Message.Status.PENDING, Message.Status.QUEUED, Message.Status.SENT])


def parse_period(params):
    """Returns (start_dt, period, error_string_or_None) for ?period=24h|7d|30d."""
    period = params.get('period', '7d')
    days = RANGE_DAYS.get(period)
    if days is None:
        return None, period, f'Invalid period. Use one of: {", ".join(RANGE_DAYS)}.'
    return timezone.now() - timedelta(days=days), period, None


def _rate(part, total):
    return round(part / total * 100, 2) if total else 0


def _counts(qs):
    agg = qs.aggregate(
        total=Count('id'),
        delivered=Count('id', filter=_DELIVERED),
        failed=Count('id', filter=_FAILED),
        pending=Count('id', filter=_IN_FLIGHT),
    )
    agg['delivery_rate'] = _rate(agg['delivered'], agg['total'])
    return agg


def get_delivery_stats(start_dt, period='7d'):
    qs = Message.objects.outbound().filter(created_at__gte=start_dt)

    overview = _counts(qs)
    overview['delivery_rate_status'] = (
        'healthy' if overview['delivery_rate'] >= DELIVERY_RATE_THRESHOLD else 'warning'
    )

    by_channel = {
        channel: _counts(qs.filter(channel=channel))
        for channel in Channel.values
    }

    avg_delivery = qs.filter(
        sent_at__isnull=False, delivered_at__isnull=False,
    ).aggregate(avg=Avg(F('delivered_at') - F('sent_at'), output_field=DurationField()))['avg']

    # Categorised in Python: the buckets are substring rules on free text
    categories = Counter(
        categorize_error(error)
        for error in qs.filter(_FAILED).values_list('error_message', flat=True)
    )

    return {
        'period': period,
        'start_date': start_dt.isoformat(),
        'overview': overview,
        'by_channel': by_channel,
        'avg_delivery_time_seconds': round(avg_delivery.total_seconds()) if avg_delivery else None,
        'error_categories': dict(categories),
        'retryable': Message.objects.retryable().outbound().count(),
    }
