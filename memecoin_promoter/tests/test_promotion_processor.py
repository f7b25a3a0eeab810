import asyncio
from unittest.mock import AsyncMock, patch

from memecoin_promoter import promotion_processor, promotion_registry, token_info
from memecoin_promoter.promotion_processor import PromotionProcessor
from memecoin_promoter.social import PostResult

BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


class FakePoster:
    def __init__(self, channel, succeed=True):
        self.channel = channel
        self.succeed = succeed
        self.posted = []

    def generate_message(self, token, plan):
        return f"{plan}: ${token['symbol']}"

    def post(self, message):
        self.posted.append(message)
        if self.succeed:
            return PostResult(success=True, id=f"{self.channel}-{len(self.posted)}", text=message)
        return PostResult(success=False, error=f"{self.channel} is down")


def test_process_posts_to_every_channel():
    posters = [FakePoster("twitter"), FakePoster("discord"), FakePoster("telegram")]
    processor = PromotionProcessor(posters)

    outcome = asyncio.run(processor.process_promotion({"tokenAddress": BONK, "plan": "Basic"}))

    assert outcome["success"] is True
    assert set(outcome["data"]) == {"twitter", "discord", "telegram", "timestamp"}
    for poster in posters:
        assert poster.posted == ["Basic: $BONK"]


def test_one_failing_channel_does_not_stop_the_rest():
    posters = [FakePoster("twitter", succeed=False), FakePoster("discord"), FakePoster("telegram")]
    processor = PromotionProcessor(posters)

    outcome = asyncio.run(processor.process_promotion({"tokenAddress": BONK, "plan": "Advanced"}))

    assert outcome["success"] is False
    assert outcome["data"]["twitter"] == {"success": False, "error": "twitter is down", "mock": False}
    assert posters[2].posted == ["Advanced: $BONK"]


def test_unknown_token_uses_placeholder():
    poster = FakePoster("twitter")
    processor = PromotionProcessor([poster])
    with patch.object(token_info, "verify_token", AsyncMock(side_effect=token_info.TokenNotFound("nope"))):
        asyncio.run(processor.process_promotion({"tokenAddress": "whatever", "plan": "Basic"}))
    assert poster.posted == ["Basic: $DOGY"]


def test_process_updates_registry():
    promo = promotion_registry.create_promotion({"tokenAddress": BONK, "plan": "Basic", "status": "Processing"})
    processor = PromotionProcessor([FakePoster("twitter")])
    asyncio.run(processor.process_promotion(promo))

    stored = promotion_registry.get_promotion(promo["id"])
    assert stored["status"] == "Success"
    assert stored["postsCompleted"] == 1
    assert stored["lastResult"]["twitter"]["success"] is True

    asyncio.run(PromotionProcessor([FakePoster("discord", succeed=False)]).process_promotion(promo))
    stored = promotion_registry.get_promotion(promo["id"])
    assert stored["status"] == "Partial"
    assert stored["postsCompleted"] == 2


def test_schedules_match_plans():
    basic = promotion_processor.SCHEDULES["Basic"]
    advanced = promotion_processor.SCHEDULES["Advanced"]
    assert [delay for delay, _ in basic] == [600]
    assert [delay for delay, _ in advanced] == [0, 3600, 7200, 10800]


def test_schedule_and_cancel():
    processor = PromotionProcessor([FakePoster("twitter")])

    async def scenario():
        armed = processor.schedule_promotion({"tokenAddress": BONK, "plan": "Basic"})
        pending = processor.pending
        cancelled = processor.cancel_all()
        return armed, pending, cancelled, processor.pending

    assert asyncio.run(scenario()) == (1, 1, 1, 0)


def test_scheduled_posts_fire(monkeypatch):
    monkeypatch.setitem(promotion_processor.SCHEDULES, "Advanced", [(0, "Initial post"), (0.01, "Update")])
    poster = FakePoster("twitter")
    processor = PromotionProcessor([poster])

    async def scenario():
        processor.schedule_promotion({"tokenAddress": BONK, "plan": "Advanced"})
        await asyncio.sleep(0.5)

    asyncio.run(scenario())
    assert poster.posted == ["Advanced: $BONK", "Advanced: $BONK"]
    assert processor.pending == 0
    assert processor.cancel_all() == 0


def test_unknown_plan_schedules_nothing():
    processor = PromotionProcessor([])

    async def scenario():
        return processor.schedule_promotion({"tokenAddress": BONK, "plan": "Premium"})

    assert asyncio.run(scenario()) == 0


class CrashingPoster(FakePoster):
    def post(self, message):
        raise RuntimeError("socket closed")


def test_poster_exception_becomes_failed_result():
    posters = [CrashingPoster("twitter"), FakePoster("discord")]
    promo = promotion_registry.create_promotion({"tokenAddress": BONK, "plan": "Basic", "status": "Processing"})

    outcome = asyncio.run(PromotionProcessor(posters).process_promotion(promo))

    assert outcome["success"] is False
    assert outcome["data"]["twitter"] == {"success": False, "error": "socket closed", "mock": False}
    assert posters[1].posted == ["Basic: $BONK"]
    assert promotion_registry.get_promotion(promo["id"])["status"] == "Partial"


def test_fired_timers_are_forgotten(monkeypatch):
    monkeypatch.setitem(promotion_processor.SCHEDULES, "Advanced", [(0, "Initial post"), (3600, "Later")])
    processor = PromotionProcessor([FakePoster("twitter")])

    async def scenario():
        processor.schedule_promotion({"tokenAddress": BONK, "plan": "Advanced"})
        armed = processor.pending
        await asyncio.sleep(0.2)
        return armed, processor.pending, processor.cancel_all()

    assert asyncio.run(scenario()) == (2, 1, 1)
