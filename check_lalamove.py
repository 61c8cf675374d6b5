#!/usr/bin/env python3
"""Smoke test against the Lalamove sandbox: one signed quotation request."""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from poultry_delivery.config import lalamove_settings
from poultry_delivery.models.domain import Location, ServiceType, Stop
from poultry_delivery.services.lalamove import LalamoveClient
from poultry_delivery.services.lalamove.errors import DeliveryError


async def run() -> int:
    print("=" * 60)
    print("Lalamove Connection Test")
    print("=" * 60)
    print()

    print("1. Checking Lalamove configuration...")
    try:
        client = LalamoveClient.from_settings(lalamove_settings)
    except DeliveryError as e:
        print(f"   [ERROR] {e}")
        return 1
    print(f"   [OK] Base URL: {lalamove_settings.sandbox_url}")
    print(f"   [OK] Market: {lalamove_settings.market}")
    print()

    print("2. Requesting a quotation (Ortigas -> Makati)...")
    stops = [
        Stop(location=Location(lat="14.5838", lng="121.0565"), address="ADB Ave, Ortigas Center, Pasig"),
        Stop(location=Location(lat="14.5515", lng="121.0244"), address="6750 Ayala Ave, Makati"),
    ]
    async with client:
        try:
            quote = await client.get_quote(ServiceType(lalamove_settings.service_type), stops)
        except DeliveryError as e:
            print(f"   [ERROR] Quotation failed: {e}")
            return 1

    print(f"   [OK] Quotation {quote.quotation_id}")
    print(f"   [OK] Total fee: {quote.total_fee:.2f} {quote.currency}")
    print(f"   [OK] Stop ids: {', '.join(stop.stop_id or '?' for stop in quote.stops)}")
    print()

    print("=" * 60)
    print("[SUCCESS] Lalamove sandbox is reachable and signatures are accepted!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run()))
