import django_filters

from .models import Channel, Message


class MessageFilter(django_filters.FilterSet):
    channel = django_filters.ChoiceFilter(choices=Channel.choices)
    status = django_filters.MultipleChoiceFilter(choices=Message.Status.choices)
    direction = django_filters.ChoiceFilter(choices=Message.Direction.choices)
    booking = django_filters.NumberFilter(field_name='booking_id')
    recipient = django_filters.CharFilter(lookup_expr='icontains')
    created_after = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = Message
        fields = ['channel', 'status', 'direction', 'booking']
