#!/usr/bin/env python3
"""
Demo seed script — populates the API with sample customers, accounts and
card cross-references.

!! NOT FOR PRODUCTION !!
Card numbers below are made-up test numbers. This script is intended ONLY
for local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

One dangling cross-reference (a card whose customer was never registered)
is seeded on purpose so GET /admin/xref/orphans has something to show.
"""

import argparse
import asyncio
import os
import random
import sys

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo data
# ---------------------------------------------------------------------------

CUSTOMERS = [
    {"id": 100000001, "first_name": "Alice", "last_name": "Chen",
     "accounts": [10000000001, 10000000002], "cards_per_account": 3},
    {"id": 100000002, "first_name": "Bob", "last_name": "Martinez",
     "accounts": [10000000003], "cards_per_account": 9},
    {"id": 100000003, "first_name": "Carol", "last_name": "Nguyen",
     "accounts": [10000000004], "cards_per_account": 1},
]

# Customer id that is never registered: its card becomes an orphan
UNREGISTERED_CUSTOMER = 999999999


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def random_card_number() -> str:
    return "4" + "".join(random.choice("0123456789") for _ in range(15))


async def register_customer(client: httpx.AsyncClient, customer: dict) -> None:
    resp = await client.post(f"{BASE_URL}/customers", json={
        "id": customer["id"],
        "first_name": customer["first_name"],
        "last_name": customer["last_name"],
    })
    if resp.status_code != 409:
        resp.raise_for_status()


async def register_account(client: httpx.AsyncClient, account_id: int, customer_id: int) -> None:
    resp = await client.post(f"{BASE_URL}/accounts", json={
        "id": account_id,
        "customer_id": customer_id,
    })
    if resp.status_code != 409:
        resp.raise_for_status()


async def bulk_link(client: httpx.AsyncClient, records: list[dict]) -> dict:
    resp = await client.post(f"{BASE_URL}/xref/bulk", json={"records": records})
    resp.raise_for_status()
    return resp.json()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print(f"  Start the server first: uvicorn app.main:app --reload\n")
            sys.exit(1)

        records: list[dict] = []
        for customer in CUSTOMERS:
            name = f"{customer['first_name']} {customer['last_name']}"
            print(f"Registering {name}...")
            await register_customer(client, customer)
            for account_id in customer["accounts"]:
                await register_account(client, account_id, customer["id"])
                log(f"Account {account_id}: {customer['cards_per_account']} card(s)")
                for _ in range(customer["cards_per_account"]):
                    records.append({
                        "card_number": random_card_number(),
                        "customer_id": customer["id"],
                        "account_id": account_id,
                    })

        # Dangling link for the orphan report
        records.append({
            "card_number": random_card_number(),
            "customer_id": UNREGISTERED_CUSTOMER,
            "account_id": CUSTOMERS[0]["accounts"][0],
        })

        print("\nLinking cards...")
        result = await bulk_link(client, records)
        log(f"{result['created']} of {result['submitted']} cross-references created")

        # --- Summary ---
        page = (await client.get(f"{BASE_URL}/cards")).json()
        orphans = (await client.get(f"{BASE_URL}/admin/xref/orphans")).json()

    print("\n========================================")
    print("  SEED COMPLETE")
    print("========================================")
    print(f"\n  Cards: {page['total_elements']} in {page['total_pages']} page(s)")
    print(f"  {'Card':<22s} {'Account':<12s} {'Customer'}")
    print(f"  {'─' * 22} {'─' * 12} {'─' * 9}")
    for item in page["items"]:
        print(f"  {item['masked_card_number']:<22s} "
              f"{item['account_id']:<12d} {item['customer_id']}")
    print(f"\n  Orphaned cross-references: {len(orphans)}")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "xref.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample customers, accounts, and card cross-references.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
