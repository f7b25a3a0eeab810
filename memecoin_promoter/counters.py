"""
Counter Service - Landing page stats persisted to a JSON file.

Counters drift upward with wall-clock time: promoted tokens grow hourly,
active users daily, and today's promotions are re-rolled once a day.
"""

import json
import time
import random
import logging
from pathlib import Path

from . import config

logger = logging.getLogger("Counters")

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

TOKENS_PER_HOUR = 5
USERS_PER_DAY = 1000
TODAY_RANGE = (50, 200)


def _now_ms():
    return int(time.time() * 1000)


def seed_counters(now_ms=None):
    now_ms = now_ms if now_ms is not None else _now_ms()
    return {
        "tokensPromoted": 1247,
        "activeUsers": 50000,
        "todayPromotions": 89,
        "lastUpdate": {
            "tokensPromoted": now_ms,
            "activeUsers": now_ms,
            "todayPromotions": now_ms,
        },
    }


class CounterService:
    def __init__(self, data_file=None, clock=_now_ms):
        self.data_file = Path(data_file) if data_file else config.DATA_DIR / "counters.json"
        self.clock = clock
        self._ensure_data_file()
        self.counters = self._load()

    def _ensure_data_file(self):
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        if not self.data_file.exists():
            with open(self.data_file, 'w') as f:
                json.dump(seed_counters(self.clock()), f, indent=2)

    def _load(self):
        try:
            with open(self.data_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.error(f"Error loading counters: {e}")
            return seed_counters(self.clock())

    def _save(self):
        try:
            with open(self.data_file, 'w') as f:
                json.dump(self.counters, f, indent=2)
        except IOError as e:
            logger.error(f"Error saving counters: {e}")

    def _elapsed(self, name, unit_ms):
        return (self.clock() - self.counters["lastUpdate"][name]) / unit_ms

    def update_tokens_promoted(self):
        hours = self._elapsed("tokensPromoted", HOUR_MS)
        if hours >= 1:
            increase = int(hours) * TOKENS_PER_HOUR
            self.counters["tokensPromoted"] += increase
            self.counters["lastUpdate"]["tokensPromoted"] = self.clock()
            self._save()
            logger.info(f"📈 Tokens promoted updated: +{increase} ({hours:.1f} hours)")

    def update_active_users(self):
        days = self._elapsed("activeUsers", DAY_MS)
        if days >= 1:
            increase = int(days) * USERS_PER_DAY
            self.counters["activeUsers"] += increase
            self.counters["lastUpdate"]["activeUsers"] = self.clock()
            self._save()
            logger.info(f"👥 Active users updated: +{increase} ({days:.1f} days)")

    def update_today_promotions(self):
        days = self._elapsed("todayPromotions", DAY_MS)
        if days >= 1:
            self.counters["todayPromotions"] = random.randint(*TODAY_RANGE)
            self.counters["lastUpdate"]["todayPromotions"] = self.clock()
            self._save()
            logger.info(f"📊 Today's promotions re-rolled: {self.counters['todayPromotions']}")

    def get_counters(self):
        self.update_tokens_promoted()
        self.update_active_users()
        self.update_today_promotions()
        return {
            "totalPromoted": self.counters["tokensPromoted"],
            "activeUsers": self.counters["activeUsers"],
            "todayPromotions": self.counters["todayPromotions"],
        }

    def add_promotion(self):
        self.counters["tokensPromoted"] += 1
        self.counters["todayPromotions"] += 1
        self._save()
        logger.info("🎉 Promotion counted")
