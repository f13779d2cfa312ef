import django_filters as filters

from notifications.models import Notification


class NotificationFilter(filters.FilterSet):
    is_read = filters.BooleanFilter(field_name="is_read")
    type = filters.CharFilter(field_name="type_key")

    class Meta:
        model = Notification
        fields = ["is_read", "type"]
