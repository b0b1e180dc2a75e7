from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.management.base import BaseCommand
from django.utils import timezone

from portal.realtime.consumers import DIRECTORY_GROUP
from portal.serializers.doctors import DoctorSearchQuerySerializer
from portal.services.doctors import (
    ALL_LOCATIONS,
    LOCATIONS,
    SORT_EXPERIENCE,
    SORT_RATING,
    cached_search,
    invalidate_directory_cache,
)


class Command(BaseCommand):
    help = "Invalidate the doctor directory cache, pre-compute common searches and notify directory sockets."

    def handle(self, *args, **options):
        now = timezone.now()
        invalidate_directory_cache()

        # the unfiltered first screen in both sort orders, plus each listed city
        variants = [{'sort': SORT_RATING}, {'sort': SORT_EXPERIENCE}]
        variants += [{'location': loc} for loc in LOCATIONS if loc != ALL_LOCATIONS]

        for query in variants:
            s = DoctorSearchQuerySerializer(data=query)
            s.is_valid(raise_exception=True)
            cached_search(s.to_search_params())

        layer = get_channel_layer()
        if layer is not None:
            async_to_sync(layer.group_send)(DIRECTORY_GROUP, {
                "type": "broadcast.refresh",
                "keys": ["doctors"],
                "version": int(now.timestamp()),
                "ts": now.isoformat(),
            })

        self.stdout.write(self.style.SUCCESS(f"Warmed {len(variants)} directory queries at {now}"))
