import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class MarketplaceConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "marketplace"
    verbose_name = "RideCycle Marketplace"

    def ready(self):
        if not getattr(settings, "OTEL_ENABLED", False):
            return
        try:
            from infrastructure.observability import setup_tracing

            setup_tracing(
                service_name=getattr(settings, "OTEL_SERVICE_NAME", "ridecycle-marketplace"),
                otlp_endpoint=getattr(settings, "OTEL_EXPORTER_OTLP_ENDPOINT", None),
            )
        except Exception as e:
            logger.error(f"Failed to initialize tracing: {e}")
