"""
MemeCoin Promoter - REST gateway.

Routes:
  /health, /test                      liveness
  /api/promotions/*                   showcase, stats, pricing, create, status
  /api/tokens/*                       token lookup and market data
  /api/wallet/*                       payment requests, on-chain verification, balances
  /pay                                hosted payment page

Run:
    python -m memecoin_promoter.server
"""

import re
import json
import html
import time
import logging
from collections import defaultdict
from pathlib import Path

import httpx
import uvicorn
from fastapi import FastAPI, Request, HTTPException, Depends
from fastapi.responses import JSONResponse, HTMLResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config, promotion_registry, solana_payment, token_info
from .counters import CounterService
from .plans import get_plan, pricing_table, InvalidPlan
from .promotion_processor import PromotionProcessor
from .solana_payment import PaymentError, PaymentNotConfigured, short

logger = logging.getLogger("Gateway")

PAY_PAGE = Path(__file__).parent / "landing" / "pay.html"
STARTED_AT = time.time()

app = FastAPI(title="MemeCoin Promoter API")


# --- CORS CONFIGURATION ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# --- SERVICES (created on first use so DATA_DIR can be swapped in tests) ---

_counters = None
_processor = None


def get_counters() -> CounterService:
    global _counters
    if _counters is None:
        _counters = CounterService()
    return _counters


def get_processor() -> PromotionProcessor:
    global _processor
    if _processor is None:
        _processor = PromotionProcessor()
    return _processor


@app.on_event("startup")
async def startup_event():
    config.log_summary()


@app.on_event("shutdown")
async def shutdown_event():
    if _processor is not None:
        cancelled = _processor.cancel_all()
        if cancelled:
            logger.info(f"🛑 Cancelled {cancelled} scheduled post(s)")


# --- ERROR ENVELOPE ---

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if exc.status_code == 404 and detail == "Not Found":
        detail = "Route not found"
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"🔥 Unhandled error on {request.url.path}")
    return JSONResponse(status_code=500, content={
        "success": False,
        "error": "Something went wrong!",
        "message": str(exc),
    })


def ok(data, **extra):
    return {"success": True, "data": data, **extra}


# --- IN-MEMORY RATE LIMITER ---

RATE_LIMITS = defaultdict(list)
RL_WINDOW = 60  # seconds

# Payment signatures with a create request in flight
CLAIMED_SIGNATURES = set()


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "127.0.0.1"


async def rate_limit(request: Request, max_requests: int):
    ip = get_client_ip(request)
    now = time.time()
    RATE_LIMITS[ip] = [t for t in RATE_LIMITS[ip] if now - t < RL_WINDOW]
    if len(RATE_LIMITS[ip]) >= max_requests:
        logger.warning(f"🛑 [RATE LIMIT] Blocked IP {ip}")
        raise HTTPException(status_code=429, detail="Too Many Requests")
    RATE_LIMITS[ip].append(now)


async def rl_strict(request: Request):
    await rate_limit(request, max_requests=10)


async def rl_standard(request: Request):
    await rate_limit(request, max_requests=120)


# --- REQUEST HELPERS ---

async def read_json(request: Request) -> dict:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="JSON body must be an object")
    return body


def require_strings(body, *keys):
    """Optional fields may be absent or null, but never another JSON type."""
    bad = [k for k in keys if body.get(k) is not None and not isinstance(body[k], str)]
    if bad:
        raise HTTPException(status_code=400, detail=f"Invalid field type: {', '.join(bad)} must be a string")


def plan_or_400(name):
    try:
        return get_plan(name)
    except InvalidPlan as e:
        raise HTTPException(status_code=400, detail=str(e))


async def verify_or_402(signature, sender, amount, reference=None):
    try:
        return await solana_payment.verify_payment(signature, sender, amount, reference)
    except PaymentError as e:
        logger.warning(f"❌ Payment verification failed: {e}")
        raise HTTPException(status_code=402, detail=str(e) or "Payment verification failed")


# --- HEALTH ---

@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "timestamp": promotion_registry.utc_timestamp(),
        "uptime": time.time() - STARTED_AT,
    }


@app.get("/test")
async def test_route():
    return {"message": "Test route working!"}


# --- PROMOTIONS ---

@app.get("/api/promotions/recent", dependencies=[Depends(rl_standard)])
async def recent_promotions():
    return ok(await token_info.fetch_trending_tokens())


@app.get("/api/promotions/stats")
async def promotion_stats(counters: CounterService = Depends(get_counters)):
    return ok(counters.get_counters())


@app.get("/api/promotions/pricing")
async def promotion_pricing():
    return ok(pricing_table())


@app.post("/api/promotions/create", dependencies=[Depends(rl_strict)])
async def create_promotion(
    request: Request,
    counters: CounterService = Depends(get_counters),
    processor: PromotionProcessor = Depends(get_processor),
):
    body = await read_json(request)
    token_address = body.get("tokenAddress")
    plan_name = body.get("plan")
    signature = body.get("paymentSignature")
    from_address = body.get("fromAddress")

    require_strings(body, "tokenAddress", "plan", "paymentSignature", "fromAddress", "twitterHandle")
    logger.info(f"🔍 Promotion request: token={token_address} plan={plan_name} "
                f"sig={short(signature)} from={short(from_address)}")

    if not token_address or not plan_name:
        raise HTTPException(status_code=400, detail="Token address and plan are required")
    plan = plan_or_400(plan_name)

    if not signature or not from_address:
        raise HTTPException(
            status_code=400,
            detail="Payment verification required. Please complete the wallet transaction.",
        )

    if signature in CLAIMED_SIGNATURES or promotion_registry.find_by_signature(signature):
        raise HTTPException(status_code=409, detail="Payment signature already used for a promotion.")

    # Claimed before the first await, released once the registry holds the record
    CLAIMED_SIGNATURES.add(signature)
    try:
        receipt = await verify_or_402(signature, from_address, plan.price_sol)
        logger.info(f"✅ Payment verified on-chain: {receipt.amount} SOL")

        promotion = promotion_registry.create_promotion({
            "tokenAddress": token_address,
            "plan": plan.name,
            "twitterHandle": body.get("twitterHandle"),
            "status": "Processing",
            "price": str(plan.price_sol),
            "estimatedTime": plan.duration,
            "paymentSignature": signature,
            "fromAddress": from_address,
            "amount": plan.price_sol,
        })
    finally:
        CLAIMED_SIGNATURES.discard(signature)

    if config.SCHEDULE_PROMOTIONS:
        posts = processor.schedule_promotion(promotion)
        promotion = promotion_registry.update_promotion(promotion["id"], status="Scheduled", postsScheduled=posts)
        result = {"success": True, "data": {"scheduled": posts}}
    else:
        result = await processor.process_promotion(promotion)
        promotion = promotion_registry.get_promotion(promotion["id"])

    counters.add_promotion()
    logger.info(f"🎉 Promotion created: {promotion['id']}")
    return ok(promotion, message="Promotion created and processed successfully!", result=result)


@app.get("/api/promotions/status/{promo_id}")
async def promotion_status(promo_id: str):
    record = promotion_registry.get_promotion(promo_id)
    if not record:
        return ok({"id": promo_id, "status": "Success", "progress": 100, "estimatedTime": "Completed"})

    status = record.get("status", "Processing")
    scheduled = record.get("postsScheduled") or 1
    done = record.get("postsCompleted", 0)
    progress = 100 if status in ("Success", "Partial") and done >= scheduled else int(100 * done / scheduled)
    return ok({
        "id": record["id"],
        "status": status,
        "progress": progress,
        "estimatedTime": "Completed" if progress == 100 else record.get("estimatedTime"),
        "plan": record.get("plan"),
        "tokenAddress": record.get("tokenAddress"),
    })


# --- TOKENS ---

@app.post("/api/tokens/verify", dependencies=[Depends(rl_standard)])
async def verify_token(request: Request):
    body = await read_json(request)
    address = body.get("tokenAddress")
    if not address:
        raise HTTPException(status_code=400, detail="Token address is required")
    try:
        return ok(await token_info.verify_token(address))
    except token_info.TokenNotFound as e:
        return {"success": False, "error": str(e)}


@app.get("/api/tokens/market/{address}", dependencies=[Depends(rl_standard)])
async def token_market(address: str):
    try:
        return ok(await token_info.get_market_data(address))
    except token_info.TokenNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


# --- WALLET ---

@app.post("/api/wallet/create-payment-request")
async def create_payment_request(request: Request):
    body = await read_json(request)
    require_strings(body, "plan", "reference")
    reference = body.get("reference")

    plan = plan_or_400(body.get("plan"))
    if not reference:
        raise HTTPException(status_code=400, detail="Payment reference is required")

    label = f"MemeCoin Promotion - {plan.name} Plan"
    message = f"Payment for {plan.name} promotion services"
    try:
        payment = solana_payment.create_payment_request(plan.price_sol, reference, label, message)
    except PaymentNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))

    return ok({
        "paymentUrl": payment["paymentUrl"],
        "amount": plan.price_sol,
        "currency": "SOL",
        "plan": plan.name,
        "reference": reference,
        "label": label,
        "message": message,
    })


@app.post("/api/wallet/validate-payment", dependencies=[Depends(rl_strict)])
async def validate_payment(request: Request):
    body = await read_json(request)
    required = ("from", "to", "amount", "signature", "plan")
    require_strings(body, "from", "to", "signature", "plan", "reference")
    if any(not body.get(k) for k in required):
        raise HTTPException(status_code=400, detail="All payment details are required")

    plan = plan_or_400(body["plan"])
    if body["amount"] != plan.price_sol:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid payment amount. Expected {plan.price_sol} SOL for {plan.name} plan",
        )

    receipt = await verify_or_402(body["signature"], body["from"], plan.price_sol, body.get("reference"))
    return ok({
        "transactionId": receipt.signature,
        "amount": receipt.amount,
        "plan": plan.name,
        "status": "confirmed",
        "fromAddress": receipt.from_address,
        "toAddress": receipt.to_address,
        "timestamp": receipt.timestamp,
        "reference": receipt.reference,
    })


@app.post("/api/wallet/verify-transaction", dependencies=[Depends(rl_strict)])
async def verify_transaction(request: Request):
    body = await read_json(request)
    require_strings(body, "signature", "fromAddress", "plan")
    if any(not body.get(k) for k in ("signature", "fromAddress", "amount", "plan")):
        raise HTTPException(
            status_code=400,
            detail="Transaction signature, sender address, amount, and plan are required",
        )

    plan = plan_or_400(body["plan"])
    receipt = await verify_or_402(body["signature"], body["fromAddress"], plan.price_sol)
    data = receipt.to_dict()
    data.pop("reference")
    return ok(data)


@app.get("/api/wallet/payment-address/{plan_name}")
async def payment_address(plan_name: str):
    plan = plan_or_400(plan_name)
    if not config.SOLANA_PAYMENT_ADDRESS:
        raise HTTPException(status_code=500, detail="Payment system not configured")
    return ok({
        "address": config.SOLANA_PAYMENT_ADDRESS,
        "amount": plan.price_sol,
        "currency": "SOL",
        "plan": plan.name,
    })


@app.get("/api/wallet/balance/{address}", dependencies=[Depends(rl_standard)])
async def wallet_balance(address: str):
    balance = await solana_payment.get_balance(address)
    return ok({"address": address, "balance": balance, "currency": "SOL"})


@app.get("/api/wallet/blockhash", dependencies=[Depends(rl_standard)])
async def latest_blockhash():
    try:
        blockhash = await solana_payment.get_latest_blockhash()
    except (httpx.HTTPError, solana_payment.RpcError, KeyError, TypeError) as e:
        logger.error(f"Error getting blockhash: {e}")
        raise HTTPException(status_code=500, detail="Failed to get recent blockhash")
    return {"success": True, "blockhash": blockhash}


@app.get("/api/wallet/check-balance/{address}/{plan_name}", dependencies=[Depends(rl_standard)])
async def check_balance(address: str, plan_name: str):
    try:
        plan = get_plan(plan_name)
    except InvalidPlan:
        raise HTTPException(status_code=400, detail="Valid wallet address and plan are required")

    balance = await solana_payment.get_balance(address)
    return ok({
        "address": address,
        "currentBalance": balance,
        "requiredAmount": plan.price_sol,
        "hasSufficientBalance": balance >= plan.price_sol,
        "plan": plan.name,
    })


# --- PAYMENT PAGE ---

def render_pay_page(recipient, amount, reference, label, message):
    try:
        amount_sol = f"{solana_payment.lamports_to_sol(int(amount)):.2f}"
    except (TypeError, ValueError):
        amount_sol = "0.00"

    page = PAY_PAGE.read_text(encoding="utf-8")
    replacements = {
        "__LABEL__": html.escape(label or "Payment Request"),
        "__MESSAGE__": html.escape(message or "Please complete this payment"),
        "__RECIPIENT__": html.escape(recipient or ""),
        "__AMOUNT_SOL__": amount_sol,
        "__REFERENCE_JSON__": json.dumps(reference or "").replace("</", "<\\/"),
        "__REFERENCE__": html.escape(reference or ""),
    }
    pattern = re.compile("|".join(re.escape(m) for m in replacements))
    return pattern.sub(lambda m: replacements[m.group(0)], page)


@app.get("/pay", response_class=HTMLResponse)
async def pay_page(recipient: str = "", amount: str = "0", reference: str = "",
                   label: str = "", message: str = ""):
    return HTMLResponse(render_pay_page(recipient, amount, reference, label, message))


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)-12s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(f"🚀 Server running on port {config.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    main()
