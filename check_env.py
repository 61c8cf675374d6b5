#!/usr/bin/env python3
"""Helper script to check the .env file for Lalamove and Supabase configuration."""

import sys
from pathlib import Path

SECRET_NAMES = ("LALAMOVE_API_SECRET", "LALAMOVE_WEBHOOK_SECRET", "POULTRY_SUPABASE_KEY")

TEMPLATE = """# Lalamove credentials (required)
# Get these from the Lalamove partner portal -> Developers -> API keys
LALAMOVE_API_KEY=pk_test_your_key
LALAMOVE_API_SECRET=sk_test_your_secret
LALAMOVE_SANDBOX_URL=https://rest.sandbox.lalamove.com
LALAMOVE_MARKET=PH
# Fallback sender phone when a seller has none on file
LALAMOVE_API_USER=09171234567
# Webhook signing secret (defaults to LALAMOVE_API_SECRET)
# LALAMOVE_WEBHOOK_SECRET=
# LALAMOVE_SERVICE_TYPE=MOTORCYCLE
# LALAMOVE_REDISPATCH_DELAY_SECONDS=60
# LALAMOVE_LOG_BODIES=false

# Order store (optional; in-memory when unset)
# POULTRY_SUPABASE_URL=https://your-project-id.supabase.co
# POULTRY_SUPABASE_KEY=your-service-role-key-here

# API Configuration
POULTRY_API_PREFIX=/api
# JSON array format: ["http://localhost:5173","http://127.0.0.1:5173"]
# POULTRY_FRONTEND_ALLOWED_ORIGINS=
"""


def _mask(value: str) -> str:
    return value[:6] + "..." + value[-4:] if len(value) > 12 else "***"


def main() -> int:
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Delivery Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f"[ERROR] .env file NOT found at: {env_file}")
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"[OK] Created template .env file at: {env_file}")
        print("     Please edit it and add your Lalamove credentials.")
        return 1

    print(f"[OK] Found .env file at: {env_file}")
    print("-" * 60)
    for line in env_file.read_text(encoding="utf-8").splitlines():
        name, sep, value = line.partition("=")
        if sep and name.strip() in SECRET_NAMES and value.strip():
            print(f"{name}={_mask(value.strip())}")
        else:
            print(line)
    print("-" * 60)
    print()

    sys.path.insert(0, str(project_root / "src"))
    try:
        from poultry_delivery.config import lalamove_settings, settings
    except Exception as e:
        print(f"[ERROR] Error loading config: {e}")
        return 1

    missing = [
        name
        for name, value in (
            ("LALAMOVE_API_KEY", lalamove_settings.api_key),
            ("LALAMOVE_API_SECRET", lalamove_settings.api_secret),
        )
        if not value
    ]
    for name in ("LALAMOVE_API_KEY", "LALAMOVE_API_SECRET"):
        print(f"{'[ERROR]' if name in missing else '[OK]'} {name}{' missing' if name in missing else ' set'}")
    print(f"[OK] Lalamove base URL: {lalamove_settings.sandbox_url} (market {lalamove_settings.market})")
    if not lalamove_settings.api_user:
        print("[WARN] LALAMOVE_API_USER not set; sellers without a phone cannot be dispatched")
    if settings.supabase_url and settings.supabase_key:
        print(f"[OK] Supabase order store: {settings.supabase_url[:30]}...")
    else:
        print("[WARN] Supabase not configured; orders are kept in memory")
    if not lalamove_settings.webhook_secret:
        print("[WARN] LALAMOVE_WEBHOOK_SECRET not set; webhooks are verified with LALAMOVE_API_SECRET")

    print()
    print("=" * 60)
    print("[ERROR] Lalamove is NOT configured" if missing else "[SUCCESS] Lalamove is configured")
    print("=" * 60)
    return 1 if missing else 0


if __name__ == "__main__":
    sys.exit(main())
