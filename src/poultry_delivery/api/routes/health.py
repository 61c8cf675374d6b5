"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import lalamove_settings, settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/lalamove", status_code=status.HTTP_200_OK)
def health_lalamove() -> dict:
    """Report the delivery provider configuration without exposing credentials."""
    config = lalamove_settings
    missing = [
        name
        for name, value in (
            ("LALAMOVE_API_KEY", config.api_key),
            ("LALAMOVE_API_SECRET", config.api_secret),
        )
        if not value
    ]
    return {
        "service": "lalamove",
        "configured": not missing,
        "missing": missing,
        "baseUrl": config.sandbox_url,
        "market": config.market,
        "serviceType": config.service_type,
        "language": config.language,
        "currency": config.currency,
        "webhookSecretConfigured": bool(config.effective_webhook_secret),
        "defaultSenderConfigured": bool(config.api_user),
        "orderStore": "supabase" if settings.supabase_url and settings.supabase_key else "memory",
    }
