"""
Promotion Processor - Fans a paid promotion out to every social channel.

Posts run immediately, or on plain asyncio timers for the plan's schedule:
  Basic:    one post 10 minutes after payment
  Advanced: four posts over 3 hours (0h, 1h, 2h, 3h)
Timers live in the server process and are dropped on restart.
"""

import asyncio
import itertools
import logging

from . import promotion_registry, token_info
from .social import PostResult, default_posters

logger = logging.getLogger("Processor")

SCHEDULES = {
    "Basic": [(10 * 60, "Scheduled post")],
    "Advanced": [
        (0, "Initial post"),
        (60 * 60, "1 hour update"),
        (2 * 60 * 60, "2 hour update"),
        (3 * 60 * 60, "Final post"),
    ],
}


class PromotionProcessor:
    def __init__(self, posters=None):
        self.posters = posters if posters is not None else default_posters()
        self._handles = {}
        self._handle_ids = itertools.count()
        self._tasks = set()

    async def _token_data(self, address):
        try:
            return await token_info.verify_token(address)
        except token_info.TokenNotFound:
            logger.info(f"No market data for {address[:10]}..., using placeholder")
            return token_info.placeholder_token(address)

    async def process_promotion(self, promotion):
        """Post to every channel in order. One channel failing does not stop the rest."""
        address, plan = promotion["tokenAddress"], promotion["plan"]
        logger.info(f"🚀 Processing promotion for token: {address} ({plan})")

        token = await self._token_data(address)
        results = {}
        for poster in self.posters:
            message = poster.generate_message(token, plan)
            logger.info(f"📣 Posting to {poster.channel}...")
            try:
                result = await asyncio.to_thread(poster.post, message)
            except Exception as e:
                logger.exception(f"🔥 {poster.channel} poster raised")
                result = PostResult(success=False, error=str(e) or type(e).__name__)
            results[poster.channel] = result.to_dict()

        success = all(r["success"] for r in results.values())
        results["timestamp"] = promotion_registry.utc_timestamp()

        if promotion.get("id") is not None:
            record = promotion_registry.get_promotion(promotion["id"]) or {}
            promotion_registry.update_promotion(
                promotion["id"],
                status="Success" if success else "Partial",
                postsCompleted=record.get("postsCompleted", 0) + 1,
                lastResult=results,
            )

        if success:
            logger.info("✅ Promotion posted to all channels")
        else:
            failed = [c for c, r in results.items() if isinstance(r, dict) and not r["success"]]
            logger.warning(f"⚠️ Promotion incomplete, failed channels: {failed}")
        return {"success": success, "data": results}

    def _run_scheduled(self, handle_id, promotion, label):
        self._handles.pop(handle_id, None)
        logger.info(f"⏰ {promotion['plan']} promotion: {label}")
        task = asyncio.ensure_future(self.process_promotion(promotion))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            logger.error(f"🔥 Scheduled promotion failed: {task.exception()}")

    def schedule_promotion(self, promotion):
        """Arm the plan's timers. Must be called from inside the event loop."""
        schedule = SCHEDULES.get(promotion["plan"])
        if not schedule:
            logger.warning(f"No schedule for plan {promotion['plan']}")
            return 0

        loop = asyncio.get_running_loop()
        for delay, label in schedule:
            handle_id = next(self._handle_ids)
            self._handles[handle_id] = loop.call_later(delay, self._run_scheduled, handle_id, promotion, label)

        last = schedule[-1][0]
        logger.info(f"⏰ {promotion['plan']} promotion scheduled: {len(schedule)} post(s) over {last // 60} min")
        return len(schedule)

    @property
    def pending(self):
        """Timers armed and not yet fired."""
        return len(self._handles)

    def cancel_all(self):
        for handle in self._handles.values():
            handle.cancel()
        for task in list(self._tasks):
            task.cancel()
        cancelled = len(self._handles)
        self._handles.clear()
        return cancelled
