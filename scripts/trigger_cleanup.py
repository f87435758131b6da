#!/usr/bin/env python3
"""Trigger the expired-booking cleanup job on a running API.

Usage:
    python scripts/trigger_cleanup.py [base_url]

Reads CRON_SECRET from .env when the API requires it. Intended for cron.
"""

import os
import sys
from pathlib import Path

import requests
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else os.environ.get("API_URL", "http://localhost:8000")
    url = f"{base_url.rstrip('/')}/api/jobs/cancel-expired-bookings"

    headers = {"Content-Type": "application/json"}
    secret = os.environ.get("CRON_SECRET")
    if secret:
        headers["x-cron-secret"] = secret

    print(f"Triggering cleanup: {url}")
    try:
        response = requests.post(url, headers=headers, timeout=120)
    except requests.RequestException as e:
        print(f"❌ Request failed: {e}")
        return 1

    if not response.ok:
        print(f"❌ Cleanup job failed: {response.status_code} {response.text}")
        return 1

    result = response.json()
    print(f"✓ {result.get('message')}")
    print(f"  processed={result.get('processed', 0)} updated={result.get('updated', 0)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
