#!/usr/bin/env python3
"""Seed a small demo relationship map into a running relmap backend.

Usage:
    # Start the backend first:
    uvicorn relmap.web.app:create_app --factory --port 8080

    # Seed demo data as the fixture user:
    python3 scripts/seed_demo_map.py

    # Seed against a different host, then save the map as xlsx:
    python3 scripts/seed_demo_map.py --base-url http://localhost:9000 --export demo.xlsx

All data flows through the public API, so it is identical to what the
canvas front-end would produce: persons are added, connected with a
proximity choice, and placed on the canvas.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import httpx

DEFAULT_BASE_URL = "http://localhost:8080"

DEMO_PERSONS = [
    {"first_name": "Marie", "last_name": "Dupont", "company": "Acme Corp",
     "proximity": "fort", "categories": ["Partenaire"]},
    {"first_name": "Jean", "last_name": "Martin", "company": "Capital Nord",
     "proximity": "moyen", "categories": ["Investisseur"]},
    {"first_name": "Sophie", "last_name": "Bernard", "company": "Campus Pro",
     "proximity": "faible", "categories": ["Organisme de formation"]},
    {"first_name": "Luc", "last_name": "Petit", "comment": "Ancien collègue",
     "proximity": "moyen", "categories": ["Advisor", "Autre"]},
]

# (source index, target index, proximity)
DEMO_LINKS = [(0, 1, "fort"), (1, 2, "faible"), (0, 3, "moyen")]


def api(
    client: httpx.Client,
    method: str,
    path: str,
    *,
    json: dict | None = None,
    token: str | None = None,
) -> dict | list | None:
    """Make an API call and return parsed JSON, or None on failure."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    resp = client.request(method, path, json=json, headers=headers)
    if resp.status_code >= 400:
        print(f"  FAILED {method} {path} -> {resp.status_code}: {resp.text[:200]}")
        return None
    return resp.json()


def login(client: httpx.Client) -> str:
    username = os.environ.get("DEMO_USER", "marie@example.com")
    password = os.environ.get("DEMO_PASSWORD", "demo-marie")
    result = api(client, "POST", "/api/auth/login", json={
        "username": username,
        "password": password,
    })
    if not result:
        print("ERROR: login failed")
        sys.exit(1)
    print(f"  Logged in as {result['display_name']}")
    return result["token"]


def seed(client: httpx.Client, token: str) -> None:
    ids: list[str] = []
    for index, person in enumerate(DEMO_PERSONS):
        created = api(client, "POST", "/api/persons", json=person, token=token)
        if created:
            ids.append(created["id"])
            api(client, "PUT", f"/api/persons/{created['id']}/position",
                json={"x": 120.0 + 180 * index, "y": 80.0 + 60 * (index % 2)}, token=token)
            print(f"  + {person['first_name']} {person['last_name']}")

    for source, target, proximity in DEMO_LINKS:
        if source >= len(ids) or target >= len(ids):
            continue
        api(client, "POST", "/api/interaction/connect",
            json={"source_id": ids[source], "target_id": ids[target]}, token=token)
        if api(client, "POST", "/api/interaction/proximity",
               json={"proximity": proximity}, token=token):
            print(f"  ~ {ids[source]} -> {ids[target]} ({proximity})")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo map into a running relmap backend")
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"Backend base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument("--export", type=Path, help="Write the seeded map to this .xlsx path")
    args = parser.parse_args()

    with httpx.Client(base_url=args.base_url, timeout=30.0) as client:
        try:
            health = api(client, "GET", "/health")
        except httpx.ConnectError:
            health = None
        if not health:
            print(f"ERROR: Cannot reach {args.base_url}. Start the backend first:")
            print("  uvicorn relmap.web.app:create_app --factory --port 8080")
            sys.exit(1)
        print(f"Backend: {health['status']} (v{health['version']}, {health['backend']})")

        token = login(client)
        seed(client, token)

        if args.export:
            resp = client.get("/api/export", headers={"Authorization": f"Bearer {token}"})
            resp.raise_for_status()
            args.export.write_bytes(resp.content)
            print(f"  Exported to {args.export}")


if __name__ == "__main__":
    main()
