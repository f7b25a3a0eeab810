import pytest

from memecoin_promoter import config, server
from memecoin_promoter.tests.helpers import RECIPIENT

SOCIAL_SETTINGS = [
    "TWITTER_API_KEY", "TWITTER_API_SECRET", "TWITTER_ACCESS_TOKEN", "TWITTER_ACCESS_SECRET",
    "DISCORD_BOT_TOKEN", "DISCORD_CHANNEL_ID", "DISCORD_WEBHOOK_URL",
    "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID",
]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Fresh data dir, a known payment address and every social channel in mock mode."""
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    monkeypatch.setattr(config, "SOLANA_PAYMENT_ADDRESS", RECIPIENT)
    monkeypatch.setattr(config, "SCHEDULE_PROMOTIONS", False)
    monkeypatch.setattr(config, "PUBLIC_BASE_URL", "http://localhost:3001")
    for name in SOCIAL_SETTINGS:
        monkeypatch.setattr(config, name, None)

    monkeypatch.setattr(server, "_counters", None)
    monkeypatch.setattr(server, "_processor", None)
    server.RATE_LIMITS.clear()
    yield tmp_path
    server.RATE_LIMITS.clear()
