"""
MemeCoin Promoter
=================
Paid social promotion for Solana meme tokens.

Usage:
    python -m memecoin_promoter.server
"""

__version__ = "0.1.0"
