"""
Solana Payment Verification
===========================
Checks that a promotion was actually paid for on-chain.

The verification pipeline for a signature:
1. Fetch the transaction from the RPC node (jsonParsed, v0 supported),
   retrying transient failures a fixed number of times
2. Reject it if it is missing or failed on-chain
3. Find the System Program transfer instruction and decode it
4. Match sender, recipient (our payment address) and amount (within tolerance)

Usage:
    from memecoin_promoter import solana_payment

    receipt = await solana_payment.verify_payment(signature, sender, 0.1)
    print(receipt.amount)
"""

import asyncio
import json
import logging
import struct
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode, urlsplit, parse_qs

import base58
import httpx

from . import config

logger = logging.getLogger("SolanaPay")

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
LAMPORTS_PER_SOL = 1_000_000_000
AMOUNT_TOLERANCE_SOL = 0.00001  # absorbs float rounding on the client side

MAX_FETCH_ATTEMPTS = 3
FETCH_RETRY_DELAY = 1.0  # seconds, fixed
RPC_TIMEOUT = 10.0

# System Program instruction index for Transfer (u32 LE) followed by u64 LE lamports
_TRANSFER_IX_INDEX = 2
_TRANSFER_LAYOUT = struct.Struct("<IQ")


# --- ERRORS ---

class PaymentError(Exception):
    """Base class. `str(err)` is safe to return to API clients."""


class PaymentNotConfigured(PaymentError):
    def __init__(self):
        super().__init__("Payment system not configured. Please set SOLANA_PAYMENT_ADDRESS.")


class InvalidAddress(PaymentError):
    pass


class TransactionFetchError(PaymentError):
    pass


class NotFound(PaymentError):
    pass


class OnChainError(PaymentError):
    pass


class NoTransferFound(PaymentError):
    pass


class SenderMismatch(PaymentError):
    pass


class RecipientMismatch(PaymentError):
    pass


class AmountMismatch(PaymentError):
    pass


class ReferenceMismatch(PaymentError):
    pass


class RpcError(Exception):
    """JSON-RPC level error object returned by the node."""


# --- RESULTS ---

@dataclass
class SystemTransfer:
    source: str
    destination: str
    lamports: int


@dataclass
class PaymentReceipt:
    signature: str
    from_address: str
    to_address: str
    amount: float
    timestamp: Optional[int]
    reference: Optional[str] = None
    confirmed: bool = True

    def to_dict(self):
        return {
            "signature": self.signature,
            "fromAddress": self.from_address,
            "toAddress": self.to_address,
            "amount": self.amount,
            "confirmed": self.confirmed,
            "timestamp": self.timestamp,
            "reference": self.reference,
        }


# --- HELPERS ---

def short(value, n=10):
    if not value:
        return "missing"
    return f"{str(value)[:n]}..."


def lamports_to_sol(lamports):
    return lamports / LAMPORTS_PER_SOL


def sol_to_lamports(amount):
    return int(amount * LAMPORTS_PER_SOL)


def is_valid_address(address) -> bool:
    """A Solana public key is 32 bytes, base58 encoded."""
    if not address or not isinstance(address, str):
        return False
    try:
        return len(base58.b58decode(address)) == 32
    except ValueError:
        return False


def _require_address(address, role):
    if not is_valid_address(address):
        raise InvalidAddress(f"Invalid {role} address: {address}")


async def rpc_call(method, params):
    """Single JSON-RPC round trip. Raises httpx.HTTPError or RpcError."""
    payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
    async with httpx.AsyncClient(timeout=RPC_TIMEOUT) as client:
        resp = await client.post(config.SOLANA_RPC_URL, json=payload)
        resp.raise_for_status()
        body = resp.json()
    if body.get("error"):
        raise RpcError(body["error"].get("message", str(body["error"])))
    return body.get("result")


async def fetch_transaction(signature):
    """
    Fetch a transaction, retrying transient failures.

    Returns the RPC result, which is None when the node does not know the
    signature (not retried: absence is an answer, not a failure).
    """
    params = [signature, {
        "encoding": "jsonParsed",
        "commitment": config.SOLANA_COMMITMENT,
        "maxSupportedTransactionVersion": 0,
    }]
    last_error = None
    for attempt in range(1, MAX_FETCH_ATTEMPTS + 1):
        try:
            return await rpc_call("getTransaction", params)
        except (httpx.HTTPError, RpcError, ValueError) as e:
            last_error = e
            logger.warning(f"Retry {attempt}/{MAX_FETCH_ATTEMPTS} for transaction fetch: {e}")
            if attempt < MAX_FETCH_ATTEMPTS:
                await asyncio.sleep(FETCH_RETRY_DELAY)

    raise TransactionFetchError(
        f"Failed to fetch transaction after {MAX_FETCH_ATTEMPTS} attempts: {last_error}"
    )


def account_keys(transaction):
    """Flat list of base58 account keys, for both `json` and `jsonParsed` encodings."""
    message = transaction.get("transaction", {}).get("message", {})
    raw_keys = message.get("accountKeys", [])
    keys = [k.get("pubkey") if isinstance(k, dict) else k for k in raw_keys]
    # v0 transactions in `json` encoding keep lookup-table keys in meta
    if raw_keys and not isinstance(raw_keys[0], dict):
        loaded = (transaction.get("meta") or {}).get("loadedAddresses") or {}
        keys += loaded.get("writable", []) + loaded.get("readonly", [])
    return keys


def _resolve_account(ref, keys):
    if isinstance(ref, int):
        return keys[ref] if 0 <= ref < len(keys) else None
    return ref


def decode_system_transfer(instruction, keys) -> Optional[SystemTransfer]:
    """
    Decode a System Program transfer from a parsed or compiled instruction.

    `fetch_transaction` asks for `jsonParsed`, where the node always parses
    System Program instructions. The compiled branch serves transactions
    fetched with `json` encoding (or cached raw results) handed in directly.
    """
    program_id = instruction.get("programId")
    if program_id is None and "programIdIndex" in instruction:
        program_id = _resolve_account(instruction["programIdIndex"], keys)
    if program_id != SYSTEM_PROGRAM_ID:
        return None

    parsed = instruction.get("parsed")
    if isinstance(parsed, dict):
        if parsed.get("type") not in ("transfer", "transferWithSeed"):
            return None
        info = parsed.get("info", {})
        return SystemTransfer(
            source=info.get("source"),
            destination=info.get("destination"),
            lamports=int(info.get("lamports", 0)),
        )

    data = instruction.get("data")
    accounts = instruction.get("accounts", [])
    if not data or len(accounts) < 2:
        return None
    try:
        raw = base58.b58decode(data)
    except ValueError:
        return None
    if len(raw) < _TRANSFER_LAYOUT.size:
        return None
    ix_index, lamports = _TRANSFER_LAYOUT.unpack_from(raw)
    if ix_index != _TRANSFER_IX_INDEX:
        return None
    return SystemTransfer(
        source=_resolve_account(accounts[0], keys),
        destination=_resolve_account(accounts[1], keys),
        lamports=lamports,
    )


def find_transfer(transaction) -> Optional[SystemTransfer]:
    keys = account_keys(transaction)
    instructions = transaction.get("transaction", {}).get("message", {}).get("instructions", [])
    for ix in instructions:
        transfer = decode_system_transfer(ix, keys)
        if transfer:
            return transfer
    return None


# --- PUBLIC API ---

async def verify_payment(signature, sender_address, expected_amount, reference=None) -> PaymentReceipt:
    """
    Validate a SOL payment to the configured payment address.

    Raises a PaymentError subclass describing the first check that failed.
    """
    recipient = config.SOLANA_PAYMENT_ADDRESS
    if not recipient:
        raise PaymentNotConfigured()

    logger.info("🔍 Verifying Solana payment...")
    logger.info(f"   Signature: {short(signature, 20)}")
    logger.info(f"   From: {short(sender_address)}  Expected: {expected_amount} SOL  To: {short(recipient)}")
    if reference:
        logger.info(f"   Reference: {reference}")

    _require_address(sender_address, "sender")
    _require_address(recipient, "recipient")

    transaction = await fetch_transaction(signature)
    if not transaction:
        logger.warning(f"❌ Transaction not found for signature: {short(signature, 20)}")
        raise NotFound("Transaction not found or not yet confirmed.")

    status = (transaction.get("meta") or {}).get("err")
    if status:
        logger.warning(f"❌ Transaction failed with error: {json.dumps(status)}")
        raise OnChainError(f"Transaction failed on-chain: {json.dumps(status)}")

    transfer = find_transfer(transaction)
    if transfer is None:
        logger.warning(f"❌ No SystemProgram transfer instruction in {short(signature, 20)}")
        raise NoTransferFound("No SOL transfer instruction found in transaction.")

    if transfer.source != sender_address:
        logger.warning(f"❌ Sender mismatch. Expected: {sender_address} Got: {transfer.source}")
        raise SenderMismatch("Sender address mismatch.")

    if transfer.destination != recipient:
        logger.warning(f"❌ Recipient mismatch. Expected: {recipient} Got: {transfer.destination}")
        raise RecipientMismatch("Recipient address mismatch.")

    amount = lamports_to_sol(transfer.lamports)
    if abs(amount - expected_amount) > AMOUNT_TOLERANCE_SOL:
        logger.warning(f"❌ Amount mismatch. Expected: {expected_amount} SOL, Got: {amount} SOL")
        raise AmountMismatch(
            f"Payment amount mismatch. Expected {expected_amount} SOL, received {amount} SOL."
        )

    # Solana Pay references are public keys attached to the transfer
    if reference and is_valid_address(reference):
        if reference not in account_keys(transaction):
            logger.warning("❌ Reference mismatch")
            raise ReferenceMismatch("Payment reference mismatch.")

    logger.info(f"✅ Payment validated: {amount} SOL ({short(signature, 20)})")
    return PaymentReceipt(
        signature=signature,
        from_address=sender_address,
        to_address=recipient,
        amount=amount,
        timestamp=transaction.get("blockTime"),
        reference=reference,
    )


def create_payment_request(amount, reference, label="MemeCoin Promotion",
                           message="Payment for promotion services"):
    """Build the URL of the hosted payment page for `amount` SOL."""
    recipient = config.SOLANA_PAYMENT_ADDRESS
    if not recipient:
        raise PaymentNotConfigured()

    params = {"recipient": recipient, "amount": str(sol_to_lamports(amount))}
    if reference:
        params["reference"] = reference
    if label:
        params["label"] = label
    if message:
        params["message"] = message

    url = f"{config.PUBLIC_BASE_URL}/pay?{urlencode(params)}"
    logger.info(f"🔗 Created payment URL: {amount} SOL, ref={reference}, to={short(recipient)}")
    return {
        "paymentUrl": url,
        "amount": amount,
        "recipient": recipient,
        "reference": reference,
        "label": label,
        "message": message,
    }


def parse_payment_url(url):
    """
    Parse a `solana:` transfer URL or one of our `/pay` page URLs.

    `solana:` amounts are decimal SOL; `/pay` amounts are lamports.
    """
    try:
        parts = urlsplit(url)
        query = {k: v[0] for k, v in parse_qs(parts.query).items()}
        if parts.scheme == "solana":
            recipient = parts.path
            amount = float(query["amount"]) if "amount" in query else None
        elif parts.scheme in ("http", "https"):
            recipient = query.get("recipient")
            amount = lamports_to_sol(int(query["amount"])) if "amount" in query else None
        else:
            raise ValueError(f"unsupported scheme '{parts.scheme}'")
    except (ValueError, KeyError) as e:
        raise PaymentError(f"Failed to parse payment URL: {e}")

    if not is_valid_address(recipient):
        raise PaymentError(f"Failed to parse payment URL: invalid recipient {recipient}")

    return {
        "recipient": recipient,
        "amount": amount,
        "reference": query.get("reference"),
        "label": query.get("label"),
        "message": query.get("message"),
        "splToken": query.get("spl-token"),
    }


async def get_balance(address) -> float:
    """Balance in SOL. Errors are logged and reported as 0."""
    if not is_valid_address(address):
        logger.warning(f"Balance requested for invalid address: {address}")
        return 0.0
    try:
        result = await rpc_call("getBalance", [address, {"commitment": config.SOLANA_COMMITMENT}])
    except (httpx.HTTPError, RpcError, ValueError) as e:
        logger.error(f"Error getting balance: {e}")
        return 0.0
    return lamports_to_sol((result or {}).get("value", 0))


async def has_sufficient_balance(address, required_amount) -> bool:
    return await get_balance(address) >= required_amount


async def get_latest_blockhash() -> str:
    result = await rpc_call("getLatestBlockhash", [{"commitment": config.SOLANA_COMMITMENT}])
    return result["value"]["blockhash"]
