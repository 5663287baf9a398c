"""Commerce management CLI.

Schema management plus the periodic sweeps, which run on an external
schedule (cron, a job runner) rather than inside the web process.

Usage:
    python src/manage.py setup-db                     # Create all tables
    python src/manage.py drop-db                      # Drop all tables
    python src/manage.py sweep-discounts              # Expire stale gift cards and vouchers
    python src/manage.py expire-carts                 # Expire idle carts
    python src/manage.py reprice --rate 18=9900       # Reprice variants with new gold rates
"""

import argparse
import json
import sys


def _domain():
    from commerce.domain import commerce
    from commerce.utils.logging import configure_logging

    configure_logging()
    commerce.init()
    return commerce


def setup_database():
    from commerce.utils.db import setup_db

    commerce = _domain()
    print("Creating commerce database schema...")
    setup_db(commerce)
    print("Done.")


def drop_database():
    from commerce.utils.db import drop_db

    commerce = _domain()
    print("Dropping commerce database schema...")
    drop_db(commerce)
    print("Done.")


def sweep_discounts():
    from commerce.discount.expiry import SweepExpiredDiscounts

    commerce = _domain()
    with commerce.domain_context():
        result = commerce.process(SweepExpiredDiscounts(), asynchronous=False)
    print(f"Expired {result['gift_cards']} gift card(s) and {result['vouchers']} voucher(s).")


def expire_carts():
    from commerce.cart.expiry import ExpireIdleCarts

    commerce = _domain()
    with commerce.domain_context():
        expired = commerce.process(ExpireIdleCarts(), asynchronous=False)
    print(f"Expired {expired} cart(s).")


def _parse_rate(value: str) -> tuple[int, float]:
    try:
        karat, rate = value.split("=", 1)
        return int(karat), float(rate)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected KARAT=RATE, got {value!r}") from None


def reprice(rates: list[tuple[int, float]] | None):
    from commerce.catalogue.repricing import RepriceCatalogue

    commerce = _domain()
    gold_rates = json.dumps(dict(rates)) if rates else None
    with commerce.domain_context():
        repriced = commerce.process(RepriceCatalogue(gold_rates=gold_rates), asynchronous=False)
    print(f"Repriced {repriced} variant(s).")


def main():
    parser = argparse.ArgumentParser(description="Commerce management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("sweep-discounts", help="Expire gift cards and vouchers past their validity")
    subparsers.add_parser("expire-carts", help="Expire carts idle past their TTL")

    reprice_parser = subparsers.add_parser("reprice", help="Recompute variant prices")
    reprice_parser.add_argument(
        "--rate",
        type=_parse_rate,
        action="append",
        metavar="KARAT=RATE",
        help="Override the per-gram gold rate for a karat (repeatable)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sweep-discounts":
        sweep_discounts()
    elif args.command == "expire-carts":
        expire_carts()
    elif args.command == "reprice":
        reprice(args.rate)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
