from django.apps import AppConfig
from django.conf import settings


class TrainingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'training'
    verbose_name = 'Training sessions'

    def ready(self):
        from .cache import ExpiringCache

        self.metrics_cache = ExpiringCache(
            maxsize=settings.METRICS_CACHE_SIZE,
            max_age=settings.METRICS_CACHE_TTL_SECONDS,
        )
