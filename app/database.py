import asyncio
import logging

import config
from store import ShortlinkStore

logger = logging.getLogger("shortlinks.store")

# Process memory is the only storage: links do not survive a restart
store = ShortlinkStore(
    code_length=config.SHORTCODE_LENGTH,
    max_attempts=config.MAX_SHORTCODE_ATTEMPTS,
    default_validity_minutes=config.DEFAULT_VALIDITY_MINUTES,
)


def get_store() -> ShortlinkStore:
    return store


async def run_sweeper(target: ShortlinkStore, interval: float) -> None:
    """Periodically drop expired links so untouched ones don't pile up."""
    while True:
        await asyncio.sleep(interval)
        removed = target.sweep()
        if removed:
            logger.info("Swept %d expired link(s)", removed)
