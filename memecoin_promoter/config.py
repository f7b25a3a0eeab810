"""
Runtime configuration.

Values come from the process environment, with a local `.env` loaded first.
Modules read these as `config.NAME` at call time so tests can patch them.
"""

import os
import logging
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger("Config")

REPO_ROOT = Path(__file__).resolve().parent.parent

# --- FORCE LOAD .env (container mount first, then repo root) ---
_container_env = Path("/app/.env")
if _container_env.exists():
    load_dotenv(dotenv_path=_container_env, override=True)
else:
    load_dotenv(dotenv_path=REPO_ROOT / ".env")

# --- SOLANA ---
SOLANA_PAYMENT_ADDRESS = os.getenv("SOLANA_PAYMENT_ADDRESS", "")
SOLANA_RPC_URL = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")
SOLANA_COMMITMENT = os.getenv("SOLANA_COMMITMENT", "confirmed")

# --- SERVER ---
PORT = int(os.getenv("PORT", "3001"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", f"http://localhost:{PORT}").rstrip("/")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
DATA_DIR = Path(os.getenv("DATA_DIR", str(REPO_ROOT / ".data")))
SCHEDULE_PROMOTIONS = os.getenv("SCHEDULE_PROMOTIONS", "false").lower() == "true"

# --- SOCIAL CHANNELS (all optional; unset = mock mode) ---
TWITTER_API_KEY = os.getenv("TWITTER_API_KEY")
TWITTER_API_SECRET = os.getenv("TWITTER_API_SECRET")
TWITTER_ACCESS_TOKEN = os.getenv("TWITTER_ACCESS_TOKEN")
TWITTER_ACCESS_SECRET = os.getenv("TWITTER_ACCESS_SECRET")

DISCORD_BOT_TOKEN = os.getenv("DISCORD_BOT_TOKEN")
DISCORD_CHANNEL_ID = os.getenv("DISCORD_CHANNEL_ID")
DISCORD_WEBHOOK_URL = os.getenv("DISCORD_WEBHOOK_URL")

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID")


def log_summary():
    """Print which integrations are live. Secrets are never logged."""
    logger.info("=== PROMOTER CONFIG ===")
    logger.info(f"  SOLANA_RPC_URL        = {SOLANA_RPC_URL}")
    logger.info(f"  PAYMENT_ADDRESS set   = {bool(SOLANA_PAYMENT_ADDRESS)}")
    logger.info(f"  PUBLIC_BASE_URL       = {PUBLIC_BASE_URL}")
    logger.info(f"  DATA_DIR              = {DATA_DIR}")
    logger.info(f"  Twitter configured    = {bool(TWITTER_API_KEY and TWITTER_ACCESS_TOKEN)}")
    logger.info(f"  Discord configured    = {bool(DISCORD_WEBHOOK_URL or (DISCORD_BOT_TOKEN and DISCORD_CHANNEL_ID))}")
    logger.info(f"  Telegram configured   = {bool(TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID)}")
    logger.info("=======================")
    if not SOLANA_PAYMENT_ADDRESS:
        logger.error("SOLANA_PAYMENT_ADDRESS is not set. Payments will not be verifiable.")
