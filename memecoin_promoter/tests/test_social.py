from unittest.mock import MagicMock, patch

import requests
import tweepy

from memecoin_promoter import social
from memecoin_promoter.social import DiscordPoster, TelegramPoster, TwitterPoster

TOKEN = {"symbol": "BONK", "marketCap": "$1.2B", "price": "$0.000012", "address": "x"}


def response_with(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


# --- mock mode ---

def test_unconfigured_posters_run_in_mock_mode():
    for poster in social.default_posters():
        assert not poster.enabled
        result = poster.post("hello")
        assert result.success and result.mock
        assert result.id.startswith(f"mock_{poster.channel}_")
        assert result.to_dict()["text"] == "hello"
        assert "error" not in result.to_dict()


def test_messages_differ_by_plan():
    for poster in social.default_posters():
        basic = poster.generate_message(TOKEN, "Basic")
        advanced = poster.generate_message(TOKEN, "Advanced")
        assert "BONK" in basic and "BONK" in advanced
        assert basic != advanced
        assert social.HASHTAGS in advanced


def test_tweet_fits_limit():
    token = dict(TOKEN, symbol="X" * 400)
    assert len(TwitterPoster().generate_message(token, "Advanced")) <= social.TWITTER_LIMIT


def test_telegram_message_escapes_html():
    token = dict(TOKEN, symbol="<script>")
    message = TelegramPoster().generate_message(token, "Basic")
    assert "<script>" not in message
    assert "&lt;script&gt;" in message


# --- twitter ---

def test_twitter_posts_with_client():
    poster = TwitterPoster("k", "s", "t", "ts")
    assert poster.enabled
    poster.client = MagicMock()
    poster.client.create_tweet.return_value = MagicMock(data={"id": 1790000000000000000, "text": "hi"})

    result = poster.post("hi")
    poster.client.create_tweet.assert_called_once_with(text="hi")
    assert result.success and result.id == "1790000000000000000"
    assert not result.mock


def test_twitter_failure_is_reported():
    poster = TwitterPoster("k", "s", "t", "ts")
    poster.client = MagicMock()
    poster.client.create_tweet.side_effect = tweepy.TweepyException("forbidden")

    result = poster.post("hi")
    assert not result.success
    assert "forbidden" in result.error


# --- discord ---

def test_discord_webhook_post():
    poster = DiscordPoster(webhook_url="https://discord.com/api/webhooks/1/abc")
    with patch.object(social.requests, "post", return_value=response_with({"id": "555"})) as post:
        result = poster.post("gm")

    assert result.success and result.id == "555"
    args, kwargs = post.call_args
    assert args[0] == "https://discord.com/api/webhooks/1/abc"
    assert kwargs["json"] == {"content": "gm"}
    assert kwargs["params"] == {"wait": "true"}


def test_discord_bot_post():
    poster = DiscordPoster(bot_token="bot-token", channel_id="42")
    with patch.object(social.requests, "post", return_value=response_with({"id": "777"})) as post:
        result = poster.post("x" * 3000)

    assert result.success
    args, kwargs = post.call_args
    assert args[0] == "https://discord.com/api/v10/channels/42/messages"
    assert kwargs["headers"] == {"Authorization": "Bot bot-token"}
    assert len(kwargs["json"]["content"]) == social.DISCORD_LIMIT


def test_discord_failure_is_reported():
    poster = DiscordPoster(webhook_url="https://discord.com/api/webhooks/1/abc")
    with patch.object(social.requests, "post", side_effect=requests.exceptions.ConnectionError("down")):
        result = poster.post("gm")
    assert not result.success
    assert "down" in result.error


# --- telegram ---

def test_telegram_post():
    poster = TelegramPoster(bot_token="123:abc", chat_id="@memes")
    payload = {"ok": True, "result": {"message_id": 99}}
    with patch.object(social.requests, "post", return_value=response_with(payload)) as post:
        result = poster.post("<b>gm</b>")

    assert result.success and result.id == "99"
    args, kwargs = post.call_args
    assert args[0] == "https://api.telegram.org/bot123:abc/sendMessage"
    assert kwargs["json"]["chat_id"] == "@memes"
    assert kwargs["json"]["parse_mode"] == "HTML"


def test_telegram_unexpected_body_is_a_failure():
    poster = TelegramPoster(bot_token="123:abc", chat_id="@memes")
    with patch.object(social.requests, "post", return_value=response_with({"ok": False})):
        result = poster.post("gm")
    assert not result.success


def test_twitter_transport_error_is_reported():
    poster = TwitterPoster("k", "s", "t", "ts")
    poster.client.session.request = MagicMock(side_effect=requests.exceptions.ConnectionError("dns fail"))

    result = poster.post("hi")
    assert not result.success
    assert "dns fail" in result.error
