"""Connector secret lookup from the environment."""

import os
import re

from trackerbase.core.config import settings


def secret_env_name(secret_ref_id: str, prefix: str | None = None) -> str:
    """
    Environment variable holding a connector secret.

    ``"crm-api.key"`` becomes ``DYNAMIC_OPTION_SECRET_CRM_API_KEY``.
    """
    normalized = re.sub(r"[^A-Z0-9]", "_", secret_ref_id.upper())
    return f"{prefix if prefix is not None else settings.dynamic_option_secret_prefix}{normalized}"


async def resolve_env_secret(secret_ref_id: str) -> str | None:
    """Secret value for a ``secret_ref`` connector, or None when unset."""
    return os.environ.get(secret_env_name(secret_ref_id)) or None
