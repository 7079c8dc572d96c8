"""Service layer modules."""

from trackerbase.services.ai_extraction import AIOptionExtractor, get_ai_extractor
from trackerbase.services.secrets import resolve_env_secret, secret_env_name

__all__ = [
    "AIOptionExtractor",
    "get_ai_extractor",
    "resolve_env_secret",
    "secret_env_name",
]
