#!/usr/bin/env python
"""Demonstrate idempotent contact imports.

Usage:
    uv run python examples/import_demo.py

This script demonstrates:
1. Importing a batch under an Idempotency-Key
2. Replaying the same key (no writes, stored summary returned)
3. Re-importing under a new key (updates instead of inserts)
4. Inspecting the job ledger and the stored contacts

Prerequisites:
    - PostgreSQL running (docker-compose up -d)
    - Database migrated (uv run alembic upgrade head)
    - API running (uv run uvicorn app.main:app --reload --port 8123)
"""

import json
import sys
import uuid

import httpx

API_BASE = "http://localhost:8123"

BATCH = {
    "records": [
        {"name": "Alice", "email": "alice@example.com", "metadata": {"source": "demo"}},
        {"name": "Bob", "email": "bob@example.com"},
        # Same email twice: the later record wins and is counted once
        {"name": "Bob Jones", "email": "bob@example.com"},
    ]
}


def print_section(title: str) -> None:
    """Print a section header."""
    print(f"\n{'=' * 60}")
    print(f"  {title}")
    print(f"{'=' * 60}\n")


def print_response(response: httpx.Response, label: str = "") -> dict:
    """Print HTTP response details."""
    content_type = response.headers.get("content-type", "")
    data = response.json() if "json" in content_type else {}
    marker = "OK" if response.status_code < 400 else "ERR"
    print(f"[{marker}] {label} [{response.status_code}]")
    if data:
        print(json.dumps(data, indent=2, default=str))
    return data


def main() -> int:
    """Run the import demo."""
    print_section("BulkImportAPI - Idempotent Import Demo")

    client = httpx.Client(base_url=API_BASE, timeout=30)

    try:
        health = client.get("/health")
        if health.status_code != 200:
            print(f"API not healthy: {health.status_code}")
            return 1
    except httpx.ConnectError:
        print(f"Cannot connect to API at {API_BASE}")
        print("Start the API with: uv run uvicorn app.main:app --reload --port 8123")
        return 1

    key = f"demo-{uuid.uuid4().hex[:8]}"

    print_section("1. First import")
    first = print_response(
        client.post("/ingest/contacts", json=BATCH, headers={"Idempotency-Key": key}),
        f"POST /ingest/contacts (key={key})",
    )

    print_section("2. Replay with the same key")
    print_response(
        client.post("/ingest/contacts", json=BATCH, headers={"Idempotency-Key": key}),
        "POST /ingest/contacts (replay)",
    )

    print_section("3. Same batch, new key")
    print_response(
        client.post("/ingest/contacts", json=BATCH, headers={"Idempotency-Key": f"{key}-2"}),
        "POST /ingest/contacts (new key)",
    )

    print_section("4. Ledger and contacts")
    if first.get("job_id"):
        print_response(client.get(f"/jobs/{first['job_id']}"), "GET /jobs/{job_id}")
    print_response(client.get("/contacts", params={"email": "bob@example.com"}), "GET /contacts")

    return 0


if __name__ == "__main__":
    sys.exit(main())
