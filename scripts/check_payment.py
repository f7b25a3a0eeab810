"""
check_payment.py - Verify a promotion payment from the command line.

Usage:
  python scripts/check_payment.py <signature> <sender> <amount_sol> [--reference REF]
  python scripts/check_payment.py --url "solana:<recipient>?amount=0.1"   # just parse a payment URL
"""

import sys
import json
import asyncio
import argparse
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from memecoin_promoter import config, solana_payment


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Check a Solana promotion payment")
    parser.add_argument("signature", nargs="?", help="Transaction signature")
    parser.add_argument("sender", nargs="?", help="Claimed sender address")
    parser.add_argument("amount", nargs="?", type=float, help="Expected amount in SOL")
    parser.add_argument("--reference", default=None, help="Payment reference")
    parser.add_argument("--url", default=None, help="Parse a payment URL instead")
    return parser.parse_args(argv)


async def check_payment(args):
    print(f"🔌 RPC: {config.SOLANA_RPC_URL}")
    print(f"🎯 Payment address: {config.SOLANA_PAYMENT_ADDRESS or '(NOT SET)'}")
    print(f"🔍 Checking TX: {args.signature}")
    try:
        receipt = await solana_payment.verify_payment(
            args.signature, args.sender, args.amount, args.reference
        )
    except solana_payment.PaymentError as e:
        print(f"\n❌ {type(e).__name__}: {e}")
        return 1

    print("\n✅ Payment verified")
    print(json.dumps(receipt.to_dict(), indent=2))
    return 0


def main(argv=None):
    args = parse_args(argv)

    if args.url:
        try:
            print(json.dumps(solana_payment.parse_payment_url(args.url), indent=2))
        except solana_payment.PaymentError as e:
            print(f"❌ {e}")
            return 1
        return 0

    if not (args.signature and args.sender and args.amount is not None):
        print("Error: signature, sender and amount are required (or use --url)")
        return 1

    return asyncio.run(check_payment(args))


if __name__ == "__main__":
    sys.exit(main())
