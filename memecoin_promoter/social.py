"""
Social Posters - Twitter/X, Discord and Telegram.

Every poster is optional. Without credentials it runs in mock mode: the
message is logged and a fake id is returned, so the promotion flow works
end-to-end in development. Posting never raises; failures come back as
`PostResult(success=False, error=...)`.
"""

import html
import time
import logging
from dataclasses import dataclass, asdict
from typing import Optional

import requests
import tweepy

from . import config

logger = logging.getLogger("Social")

HASHTAGS = "#Solana #Crypto #Degen #MemeCoin"

TWITTER_LIMIT = 280
DISCORD_LIMIT = 2000
TELEGRAM_LIMIT = 4096

DISCORD_API = "https://discord.com/api/v10"
TELEGRAM_API = "https://api.telegram.org"


@dataclass
class PostResult:
    success: bool
    id: Optional[str] = None
    text: Optional[str] = None
    error: Optional[str] = None
    mock: bool = False

    def to_dict(self):
        return {k: v for k, v in asdict(self).items() if v is not None}


def _mock_result(channel, message):
    logger.info(f"📝 Mock {channel} post:\n{message}")
    return PostResult(success=True, id=f"mock_{channel}_{int(time.time() * 1000)}",
                      text=message, mock=True)


class TwitterPoster:
    channel = "twitter"

    def __init__(self, api_key=None, api_secret=None, access_token=None, access_secret=None):
        api_key = api_key or config.TWITTER_API_KEY
        api_secret = api_secret or config.TWITTER_API_SECRET
        access_token = access_token or config.TWITTER_ACCESS_TOKEN
        access_secret = access_secret or config.TWITTER_ACCESS_SECRET
        self.client = None
        if api_key and api_secret and access_token and access_secret:
            self.client = tweepy.Client(
                consumer_key=api_key,
                consumer_secret=api_secret,
                access_token=access_token,
                access_token_secret=access_secret,
            )
            logger.info("✅ Twitter poster configured")

    @property
    def enabled(self):
        return self.client is not None

    def generate_message(self, token, plan):
        symbol, market_cap = token["symbol"], token["marketCap"]
        if plan == "Advanced":
            text = (
                f"🚀 ${symbol} just hit {market_cap} market cap!\n\n"
                f"🔥 Don't miss the next moonshot!\n"
                f"{HASHTAGS}"
            )
        else:
            text = (
                f"💎 ${symbol} trending! Market cap: {market_cap}\n\n"
                f"⚡ Quick pump alert!\n"
                f"{HASHTAGS}"
            )
        return text[:TWITTER_LIMIT]

    def post(self, message):
        if not self.enabled:
            return _mock_result(self.channel, message)
        try:
            response = self.client.create_tweet(text=message)
            tweet_id = str(response.data["id"])
            logger.info(f"✅ Tweet posted: {tweet_id}")
            return PostResult(success=True, id=tweet_id, text=message)
        except tweepy.TooManyRequests as e:
            logger.warning(f"⏳ Twitter rate limit hit: {e}")
            return PostResult(success=False, error="Twitter rate limit reached")
        except tweepy.TweepyException as e:
            logger.error(f"❌ Failed to post tweet: {e}")
            return PostResult(success=False, error=str(e))
        except requests.exceptions.RequestException as e:
            # tweepy does not wrap transport errors from its session
            logger.error(f"❌ Twitter unreachable: {e}")
            return PostResult(success=False, error=str(e))


class DiscordPoster:
    """Posts through a channel webhook if one is set, else as a bot."""

    channel = "discord"

    def __init__(self, bot_token=None, channel_id=None, webhook_url=None):
        self.bot_token = bot_token or config.DISCORD_BOT_TOKEN
        self.channel_id = channel_id or config.DISCORD_CHANNEL_ID
        self.webhook_url = webhook_url or config.DISCORD_WEBHOOK_URL

    @property
    def enabled(self):
        return bool(self.webhook_url or (self.bot_token and self.channel_id))

    def generate_message(self, token, plan):
        symbol, market_cap, price = token["symbol"], token["marketCap"], token["price"]
        if plan == "Advanced":
            return (
                f"🚀 **${symbol}** just hit **{market_cap}** market cap!\n\n"
                f"🔥 Don't miss the next moonshot!\n\n"
                f"💰 Price: {price}\n"
                f"📈 Market Cap: {market_cap}\n\n"
                f"{HASHTAGS}"
            )
        return (
            f"💎 **${symbol}** trending!\n\n"
            f"⚡ Quick pump alert!\n"
            f"💰 Market Cap: {market_cap}\n\n"
            f"{HASHTAGS}"
        )

    def post(self, message):
        if not self.enabled:
            return _mock_result(self.channel, message)

        payload = {"content": message[:DISCORD_LIMIT]}
        if self.webhook_url:
            url, headers = self.webhook_url, {}
            params = {"wait": "true"}
        else:
            url = f"{DISCORD_API}/channels/{self.channel_id}/messages"
            headers = {"Authorization": f"Bot {self.bot_token}"}
            params = None

        try:
            response = requests.post(url, json=payload, headers=headers, params=params, timeout=10)
            response.raise_for_status()
            message_id = str(response.json().get("id"))
            logger.info(f"✅ Discord message posted: {message_id}")
            return PostResult(success=True, id=message_id, text=message)
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Failed to post Discord message: {e}")
            return PostResult(success=False, error=str(e))


class TelegramPoster:
    channel = "telegram"

    def __init__(self, bot_token=None, chat_id=None):
        self.bot_token = bot_token or config.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id or config.TELEGRAM_CHAT_ID

    @property
    def enabled(self):
        return bool(self.bot_token and self.chat_id)

    def generate_message(self, token, plan):
        symbol = html.escape(token["symbol"])
        market_cap = html.escape(token["marketCap"])
        price = html.escape(token["price"])
        if plan == "Advanced":
            return (
                f"🚀 <b>${symbol}</b> just hit <b>{market_cap}</b> market cap!\n\n"
                f"🔥 Don't miss the next moonshot!\n\n"
                f"💰 Price: {price}\n"
                f"📈 Market Cap: {market_cap}\n\n"
                f"{HASHTAGS}"
            )
        return (
            f"💎 <b>${symbol}</b> trending!\n\n"
            f"⚡ Quick pump alert!\n"
            f"💰 Market Cap: {market_cap}\n\n"
            f"{HASHTAGS}"
        )

    def post(self, message, parse_mode="HTML"):
        if not self.enabled:
            return _mock_result(self.channel, message)

        url = f"{TELEGRAM_API}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": message[:TELEGRAM_LIMIT],
            "parse_mode": parse_mode,
        }
        try:
            response = requests.post(url, json=payload, timeout=10)
            response.raise_for_status()
            message_id = str(response.json()["result"]["message_id"])
            logger.info(f"✅ Telegram message posted: {message_id}")
            return PostResult(success=True, id=message_id, text=message)
        except (requests.exceptions.RequestException, KeyError) as e:
            logger.error(f"❌ Failed to post Telegram message: {e}")
            return PostResult(success=False, error=str(e))


def default_posters():
    return [TwitterPoster(), DiscordPoster(), TelegramPoster()]
