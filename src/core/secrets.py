"""
Secret Manager — resolves secret names to actual values.

Priority:
1. Environment variables (RELAY_SECRET_{NAME})
2. secrets/ directory (one file per secret)

Settings values always win; secrets are the fallback for tokens that should
not live in .env (bot token, Wix refresh token).

Example:
    resolve_secret("wix_refresh_token")
    -> looks for env RELAY_SECRET_WIX_REFRESH_TOKEN
    -> falls back to secrets/wix_refresh_token
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

SECRETS_DIR = Path("secrets")


def resolve_secret(secret_name: str, default: str = "") -> str | None:
    """
    Resolve a secret by name.

    Args:
        secret_name: Secret name (e.g., "telegram_bot_token", "wix_refresh_token")
        default: Value from settings; returned as-is when non-empty.

    Returns:
        Secret value or None if not found.
    """
    if default:
        return default

    # 1. Try environment variable.
    env_key = f"RELAY_SECRET_{_slugify(secret_name)}"
    value = os.environ.get(env_key)
    if value:
        return value

    # 2. Try secrets directory.
    secret_file = SECRETS_DIR / secret_name
    if secret_file.exists():
        return secret_file.read_text(encoding="utf-8").strip()

    logger.warning("Secret not found: %s", secret_name)
    return None


def _slugify(s: str) -> str:
    """Convert name to env-safe format: wix-refresh-token -> WIX_REFRESH_TOKEN."""
    return s.replace("-", "_").upper()
