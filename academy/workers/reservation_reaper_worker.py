"""Executable worker that expires abandoned reservations and frees their seats."""

from __future__ import annotations

import asyncio
import logging
import os

from academy.core.database import session_scope
from academy.modules.reservations.service import build_reservation_service

logger = logging.getLogger(__name__)


async def run_cycle() -> dict[str, int]:
    """Reap one batch in one DB transaction."""
    async with session_scope() as session:
        service = build_reservation_service(session)
        result = await service.reap_abandoned(limit=int(os.getenv("RESERVATION_REAPER_BATCH_SIZE", "100")))
        return {"expired": result.expired, "confirmed": result.confirmed, "skipped": result.skipped}


async def main() -> None:
    """Run once or keep polling according to worker mode."""
    logging.basicConfig(level=os.getenv("RESERVATION_REAPER_LOG_LEVEL", "INFO"))
    mode = os.getenv("RESERVATION_REAPER_MODE", "once").strip().lower()
    poll_seconds = int(os.getenv("RESERVATION_REAPER_POLL_SECONDS", "60"))

    if mode == "once":
        stats = await run_cycle()
        logger.info("Reservation reaper stats: %s", stats)
        return

    while True:
        try:
            stats = await run_cycle()
            logger.info("Reservation reaper stats: %s", stats)
        except Exception:
            logger.exception("Reservation reaper cycle failed")
        await asyncio.sleep(poll_seconds)


if __name__ == "__main__":
    asyncio.run(main())
