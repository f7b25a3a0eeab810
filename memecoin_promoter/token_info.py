"""
Token lookups against public market-data APIs (DexScreener, Jupiter),
plus the "recently promoted" showcase list for the landing page.
"""

import random
import logging

import httpx

from .solana_payment import is_valid_address

logger = logging.getLogger("TokenInfo")

DEXSCREENER_TOKENS_URL = "https://api.dexscreener.com/latest/dex/tokens/{address}"
DEXSCREENER_TRENDING_URL = "https://api.dexscreener.com/latest/dex/tokens/solana"
JUPITER_METADATA_URL = "https://price.jup.ag/v4/metadata"
TOKEN_LIST_ICON = "https://raw.githubusercontent.com/solana-labs/token-list/main/assets/mainnet/{address}/logo.png"

HEADERS = {"User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"}

DEFAULT_MARKET_CAP = "$50K"
DEFAULT_PRICE = "$0.00005"


class TokenNotFound(LookupError):
    pass


KNOWN_TOKENS = {
    "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263": {
        "name": "Bonk", "symbol": "BONK", "marketCap": "$1.2B", "price": "$0.000012"},
    "EKpQGSJtjMFqKZ1KQanSqYXRcF8fBopzLHYxdM65Qjm": {
        "name": "dogwifhat", "symbol": "WIF", "marketCap": "$850M", "price": "$0.85"},
    "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr": {
        "name": "Popcat", "symbol": "POPCAT", "marketCap": "$45M", "price": "$0.045"},
    "HYPERfwdTp1qkC45cd2io5mm6RsBzR8qH2c1ubXMX6u8": {
        "name": "Myro", "symbol": "MYRO", "marketCap": "$12M", "price": "$0.012"},
    "79R6qbuH3whS4YEcLEmUBiu7NWkExFnx1GBjiDSWtPSc": {
        "name": "Thirsty Pig", "symbol": "Thirsty", "marketCap": "$199", "price": "$0.0000001988"},
}

# Showcase pool used when DexScreener is unreachable
TOKEN_POOL = [
    ("BONK", "Bonk", "$1.2B", "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"),
    ("WIF", "dogwifhat", "$850M", "EKpQGSJtjMFqKZ1KQanSqYXRcF8fBopzLHYxdM65Qjm"),
    ("JUP", "Jupiter", "$2.1B", "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"),
    ("RAY", "Raydium", "$180M", "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R"),
    ("SRM", "Serum", "$95M", "SRMuApVNdxXokk5GT7XD5cUUgXMBCoAz2LHeuAoKWRt"),
    ("ORCA", "Orca", "$75M", "orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE"),
    ("MNGO", "Mango", "$25M", "MangoCzJ36AjZyKwVj3VnYU4GTonjfVEnJmvvWaxLac"),
    ("STEP", "Step", "$15M", "StepAscQoEioFxxWGnh2sLBDFp9d8rvKz2Yp39iDpyT"),
    ("SAMO", "Samoyedcoin", "$6M", "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"),
    ("FIDA", "Bonfida", "$3M", "EchesyfXePKdLtoiZSL8pBe8Myagyy8ZRqsACNCFGnvp"),
    ("POPCAT", "Popcat", "$45M", "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"),
    ("MYRO", "Myro", "$12M", "HYPERfwdTp1qkC45cd2io5mm6RsBzR8qH2c1ubXMX6u8"),
]


def _token_result(address, name, symbol, market_cap, price, decimals=9, verified=True):
    return {
        "address": address,
        "name": name,
        "symbol": symbol,
        "decimals": decimals,
        "isValid": True,
        "marketCap": market_cap,
        "price": price,
        "verified": verified,
    }


def _compact_usd(value, divisor, suffix, default):
    if not value:
        return default
    return f"${float(value) / divisor:.1f}{suffix}"


async def _dexscreener_pairs(address, timeout):
    async with httpx.AsyncClient(timeout=timeout, headers=HEADERS) as client:
        resp = await client.get(DEXSCREENER_TOKENS_URL.format(address=address))
        resp.raise_for_status()
        return resp.json().get("pairs") or []


async def _jupiter_metadata(address, timeout):
    async with httpx.AsyncClient(timeout=timeout, headers=HEADERS) as client:
        resp = await client.get(JUPITER_METADATA_URL, params={"tokens": address})
        resp.raise_for_status()
        return (resp.json().get("data") or {}).get(address)


async def verify_token(address):
    """
    Resolve a mint address to token metadata.

    Known tokens answer instantly; then DexScreener, then Jupiter. An address
    that only passes the format check comes back with `verified: False`.
    """
    if address in KNOWN_TOKENS:
        t = KNOWN_TOKENS[address]
        return _token_result(address, t["name"], t["symbol"], t["marketCap"], t["price"])

    try:
        pairs = await _dexscreener_pairs(address, timeout=2.0)
        if pairs:
            pair = pairs[0]
            base = pair.get("baseToken") or {}
            return _token_result(
                address,
                base.get("name") or "Unknown Token",
                base.get("symbol") or "UNKNOWN",
                f"${pair['marketCap']}" if pair.get("marketCap") else DEFAULT_MARKET_CAP,
                f"${pair['priceUsd']}" if pair.get("priceUsd") else DEFAULT_PRICE,
                decimals=base.get("decimals") or 9,
            )
    except (httpx.HTTPError, ValueError) as e:
        logger.info(f"DexScreener API error: {e}")

    try:
        meta = await _jupiter_metadata(address, timeout=1.5)
        if meta:
            return _token_result(
                address,
                meta.get("name") or "Unknown Token",
                meta.get("symbol") or "UNKNOWN",
                DEFAULT_MARKET_CAP,
                DEFAULT_PRICE,
                decimals=meta.get("decimals") or 9,
            )
    except (httpx.HTTPError, ValueError) as e:
        logger.info(f"Jupiter API error: {e}")

    if is_valid_address(address):
        return _token_result(address, "Unknown Token", "UNKNOWN",
                             DEFAULT_MARKET_CAP, DEFAULT_PRICE, verified=False)

    raise TokenNotFound("Token not found on Solana blockchain")


async def get_market_data(address):
    try:
        pairs = await _dexscreener_pairs(address, timeout=3.0)
    except (httpx.HTTPError, ValueError) as e:
        logger.info(f"DexScreener API error: {e}")
        pairs = []

    if not pairs:
        raise TokenNotFound("Market data not available for this token")

    pair = pairs[0]
    volume = (pair.get("volume") or {}).get("h24")
    change = (pair.get("priceChange") or {}).get("h24")
    liquidity = (pair.get("liquidity") or {}).get("usd")
    return {
        "address": address,
        "price": f"${pair.get('priceUsd') or '0.00005'}",
        "marketCap": f"${pair.get('marketCap') or '50K'}",
        "volume24h": f"${volume if volume is not None else '10K'}",
        "change24h": f"{change if change is not None else '+15.5'}%",
        "liquidity": f"${liquidity if liquidity is not None else '100K'}",
        "dexId": pair.get("dexId"),
        "pairAddress": pair.get("pairAddress"),
    }


def _random_platforms():
    if random.random() > 0.7:
        return ["X", "Discord", "Telegram"]
    if random.random() > 0.5:
        return ["X", "Discord"]
    return ["X"]


def _showcase_entry(index, symbol, name, market_cap, icon, address, price, volume):
    return {
        "id": index + 1,
        "symbol": symbol,
        "name": name,
        "marketCap": market_cap,
        "time": f"{random.randint(1, 15)} mins ago",
        "plan": "Advanced" if random.random() > 0.5 else "Basic",
        "status": "Posted",
        "platforms": _random_platforms(),
        "icon": icon,
        "address": address,
        "price": price,
        "volume24h": volume,
    }


def fallback_tokens(count=4):
    picked = random.sample(TOKEN_POOL, k=min(count, len(TOKEN_POOL)))
    return [
        _showcase_entry(
            i, symbol, name, mcap,
            TOKEN_LIST_ICON.format(address=address),
            address,
            f"${random.random() * 0.1:.6f}",
            f"${random.random() * 100:.0f}K",
        )
        for i, (symbol, name, mcap, address) in enumerate(picked)
    ]


async def fetch_trending_tokens(count=4):
    """A shuffled handful of live Solana tokens, or a random showcase on failure."""
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            resp = await client.get(DEXSCREENER_TRENDING_URL)
            resp.raise_for_status()
            pairs = resp.json().get("pairs") or []
    except (httpx.HTTPError, ValueError) as e:
        logger.info(f"DexScreener trending failed, using showcase pool: {e}")
        pairs = []

    unique = {}
    for pair in pairs:
        base = pair.get("baseToken") or {}
        address = base.get("address")
        if not address or address in unique:
            continue
        market_cap = _compact_usd(pair.get("marketCap"), 1_000_000, "M", DEFAULT_MARKET_CAP)
        volume = _compact_usd((pair.get("volume") or {}).get("h24"), 1000, "K", "$10K")
        unique[address] = (base, market_cap, volume, pair.get("priceUsd") or "0.00005")

    if not unique:
        return fallback_tokens(count)

    entries = list(unique.items())
    random.shuffle(entries)
    return [
        _showcase_entry(
            i,
            base.get("symbol") or "UNKNOWN",
            base.get("name") or "Unknown Token",
            market_cap,
            TOKEN_LIST_ICON.format(address=address),
            address,
            f"${price}",
            volume,
        )
        for i, (address, (base, market_cap, volume, price)) in enumerate(entries[:count])
    ]


def placeholder_token(address):
    """Token data used for posts when no lookup succeeds."""
    return {
        "symbol": "DOGY",
        "marketCap": "$23K",
        "price": DEFAULT_PRICE,
        "address": address,
    }
