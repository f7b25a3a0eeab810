"""
Promotion Registry - Paid promotion records
===========================================
Keeps every promotion created through the API, keyed by id.

Storage: <DATA_DIR>/promotions.json

CLI Usage:
    python -m memecoin_promoter.promotion_registry list          # Show all promotions
    python -m memecoin_promoter.promotion_registry show <id>     # Dump one record

Import Usage:
    from memecoin_promoter import promotion_registry

    record = promotion_registry.create_promotion({...})
    promotion_registry.find_by_signature(signature)
"""

import json
import sys
import time
import shutil
import logging
import threading
from datetime import datetime, timezone

from . import config

logger = logging.getLogger("Registry")

_lock = threading.Lock()


def utc_timestamp():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _registry_file():
    return config.DATA_DIR / "promotions.json"


def _load_registry():
    """
    Load the promotion registry from disk.

    An unreadable file reads as empty; a copy is kept beside it first so the
    next save cannot erase the records.
    """
    path = _registry_file()
    if path.exists():
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            backup = path.with_name(path.name + ".corrupt")
            logger.error(f"🔥 Promotion registry is not valid JSON: {e}")
            if not backup.exists():
                shutil.copyfile(path, backup)
                logger.error(f"   Unreadable registry saved to {backup}")
            return {}
        except IOError as e:
            logger.error(f"🔥 Error loading promotion registry: {e}")
            return {}
    return {}


def _save_registry(registry):
    """Save the promotion registry to disk."""
    path = _registry_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(registry, f, indent=2, default=str)


def create_promotion(record):
    """
    Persist a new promotion.

    The id is the creation time in milliseconds, bumped on collision.
    Returns the stored record including `id` and `createdAt`.
    """
    with _lock:
        registry = _load_registry()
        promo_id = int(time.time() * 1000)
        while str(promo_id) in registry:
            promo_id += 1

        stored = dict(record)
        stored["id"] = promo_id
        stored.setdefault("createdAt", utc_timestamp())
        registry[str(promo_id)] = stored
        _save_registry(registry)
    return stored


def get_promotion(promo_id):
    return _load_registry().get(str(promo_id))


def update_promotion(promo_id, **fields):
    with _lock:
        registry = _load_registry()
        key = str(promo_id)
        if key not in registry:
            return None
        registry[key].update(fields)
        registry[key]["updatedAt"] = utc_timestamp()
        _save_registry(registry)
        return registry[key]


def find_by_signature(signature):
    """Return the promotion already paid for by `signature`, if any."""
    if not signature:
        return None
    for record in _load_registry().values():
        if record.get("paymentSignature") == signature:
            return record
    return None


def list_promotions():
    registry = _load_registry()
    return sorted(registry.values(), key=lambda r: r.get("id", 0), reverse=True)


# --- CLI Interface ---
def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage:")
        print("  python -m memecoin_promoter.promotion_registry list")
        print("  python -m memecoin_promoter.promotion_registry show <id>")
        return 1

    command = argv[0].lower()

    if command == "list":
        promotions = list_promotions()
        if not promotions:
            print("No promotions recorded.")
            return 0

        print(f"{'ID':<15} {'Plan':<10} {'Status':<12} {'Token':<20} {'Created'}")
        print("-" * 80)
        for p in promotions:
            token = p.get("tokenAddress", "")
            print(f"{p['id']:<15} {p.get('plan', ''):<10} {p.get('status', ''):<12} "
                  f"{token[:8] + '...' + token[-4:]:<20} {p.get('createdAt', '')}")
        return 0

    if command == "show":
        if len(argv) < 2:
            print("Error: promotion id required")
            return 1
        record = get_promotion(argv[1])
        if not record:
            print(f"❌ Promotion not found: {argv[1]}")
            return 1
        print(json.dumps(record, indent=2))
        return 0

    print(f"Unknown command: {command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
