# servicehub/core/startup.py
"""
Process startup for services embedding servicehub.

Handles:
- Logging configuration
- Sentry initialization
- Primary/secondary cache construction
"""

import logging
from typing import Optional

from ..infrastructure.cache.tiered import TieredCache, build_tiered_cache
from ..monitoring.sentry import init_sentry
from .config import Settings, settings as default_settings
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


class ServiceStartup:
    """Boot sequence shared by the API process and workers."""

    @staticmethod
    async def initialize(config: Optional[Settings] = None) -> TieredCache:
        """Configure logging and monitoring, then return the cache pair."""
        config = config or default_settings

        # 1. Logging first so the remaining steps are visible
        configure_logging(config.log_level, config.log_json)
        ServiceStartup._quiet_noisy_loggers()

        # 2. Error reporting
        if config.sentry_dsn:
            init_sentry(config.sentry_dsn, config.environment)
        else:
            logger.info("Sentry disabled (no DSN configured)")

        # 3. Cache
        cache = await build_tiered_cache()
        logger.info(
            "servicehub initialized",
            extra={
                "environment": config.environment,
                "cache_primary": type(cache.primary).__name__ if cache.primary else None,
            },
        )
        return cache

    @staticmethod
    def _quiet_noisy_loggers() -> None:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("stripe").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)
