"""Shared addresses and transaction builders for the test suite."""

import struct

import base58

from memecoin_promoter.solana_payment import SYSTEM_PROGRAM_ID

PAYER = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
RECIPIENT = "EKpQGSJtjMFqKZ1KQanSqYXRcF8fBopzLHYxdM65Qjm"
STRANGER = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"
REFERENCE_KEY = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
COMPUTE_BUDGET = "ComputeBudget111111111111111111111111111111"

SIGNATURE = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"
BLOCK_TIME = 1_700_000_000


def parsed_transfer_tx(source=PAYER, destination=RECIPIENT, lamports=100_000_000,
                       err=None, extra_keys=()):
    """A `jsonParsed` getTransaction result with a compute-budget ix before the transfer."""
    keys = [source, destination, SYSTEM_PROGRAM_ID, COMPUTE_BUDGET, *extra_keys]
    return {
        "blockTime": BLOCK_TIME,
        "slot": 250_000_000,
        "meta": {"err": err, "fee": 5000},
        "transaction": {
            "signatures": [SIGNATURE],
            "message": {
                "accountKeys": [
                    {"pubkey": k, "signer": i == 0, "writable": i < 2, "source": "transaction"}
                    for i, k in enumerate(keys)
                ],
                "instructions": [
                    {"programId": COMPUTE_BUDGET, "accounts": [], "data": "3DdGGhkhJbjm", "stackHeight": None},
                    {
                        "program": "system",
                        "programId": SYSTEM_PROGRAM_ID,
                        "parsed": {
                            "type": "transfer",
                            "info": {"source": source, "destination": destination, "lamports": lamports},
                        },
                        "stackHeight": None,
                    },
                ],
            },
        },
    }


def compiled_transfer_tx(lamports=100_000_000, instruction_index=2):
    """A `json` (compiled) getTransaction result: indexes into accountKeys and base58 data."""
    data = base58.b58encode(struct.pack("<IQ", instruction_index, lamports)).decode()
    return {
        "blockTime": BLOCK_TIME,
        "meta": {"err": None, "loadedAddresses": {"writable": [], "readonly": [REFERENCE_KEY]}},
        "transaction": {
            "message": {
                "accountKeys": [PAYER, RECIPIENT, SYSTEM_PROGRAM_ID],
                "instructions": [{"programIdIndex": 2, "accounts": [0, 1], "data": data}],
            },
        },
    }
