import asyncio
import json
import logging
from datetime import datetime, time, timedelta
from typing import Callable

import messages
from meals import aggregate_meals, build_ledger_row
from sessions import SessionStore

logger = logging.getLogger(__name__)


class DailyFlushScheduler:
    """
    Saves every non-empty session to the ledger once a day and tells the
    sender. A failure for one sender is logged and skipped, never retried.
    Today's sessions are left as they are; sessions from earlier days are
    dropped after the pass.
    """

    def __init__(
        self,
        store: SessionStore,
        ledger,
        channel,
        flush_time: time = time(0, 0),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.ledger = ledger
        self.channel = channel
        self.flush_time = flush_time
        self.clock = clock

    def next_run_after(self, moment: datetime) -> datetime:
        next_run = datetime.combine(moment.date(), self.flush_time)
        if next_run <= moment:
            next_run += timedelta(days=1)
        return next_run

    def seconds_until_next_run(self, now: datetime = None) -> float:
        now = now or self.clock()
        return (self.next_run_after(now) - now).total_seconds()

    def flush_all(self) -> int:
        logger.info("Running daily auto-save...")
        flushed = 0
        for session in self.store.snapshot():
            if not session.meals:
                continue
            try:
                self.ledger.upsert(session.owner, build_ledger_row(session.day, session.meals))
                self.channel.push(session.owner, messages.format_auto_save(aggregate_meals(session.meals)))
            except Exception as e:
                logger.error(json.dumps({
                    "severity": "ERROR",
                    "message": "Daily auto-save failed",
                    "user_id": session.owner,
                    "error": str(e)
                }))
                continue
            flushed += 1
            logger.info(f"Saved data for {session.owner}")

        # a past day's log gets one auto-save, then it is gone
        dropped = self.store.discard_stale()
        if dropped:
            logger.info(f"Dropped {dropped} sessions from previous days")
        return flushed

    async def run_forever(self):
        next_run = self.next_run_after(self.clock())
        while True:
            delay = max(0.0, (next_run - self.clock()).total_seconds())
            logger.info(f"Next daily auto-save at {next_run.isoformat(timespec='minutes')}")
            await asyncio.sleep(delay)
            try:
                await asyncio.to_thread(self.flush_all)
            except Exception:
                logger.exception("Daily auto-save iteration error")
            # sleep() may return a little early; never fire twice for one slot
            next_run = self.next_run_after(max(self.clock(), next_run))
