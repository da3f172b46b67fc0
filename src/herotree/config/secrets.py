"""Secret lookup for herotree.

The Heroku API key never lives in config.yaml. It is read from the
environment first, then from a project-local ``.env.secrets`` file.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import dotenv_values

SECRETS_FILE = ".env.secrets"
API_KEY_VAR = "HEROKU_API_KEY"


@lru_cache(maxsize=1)
def _load_secrets(secrets_path: Path | None = None) -> dict[str, str | None]:
    path = secrets_path or Path(SECRETS_FILE)
    if path.exists():
        return dotenv_values(path)
    return {}


def fetch_secret(
    key: str,
    default: str | None = None,
    secrets_path: Path | None = None,
) -> str | None:
    """Fetch a secret from the environment or ``.env.secrets``.

    Environment variables win so tests can monkeypatch them.

    Args:
        key: Variable name (e.g., "HEROKU_API_KEY").
        default: Value returned when the secret is not found.
        secrets_path: Optional explicit secrets file.
    """
    value = os.environ.get(key)
    if value is not None:
        return value

    secrets = _load_secrets(secrets_path)
    if secrets.get(key) is not None:
        return secrets[key]

    return default


def get_api_key(secrets_path: Path | None = None) -> str | None:
    """Return the configured Heroku API key, treating "" as unset."""
    return fetch_secret(API_KEY_VAR, secrets_path=secrets_path) or None


def clear_secret_cache() -> None:
    """Forget the cached ``.env.secrets`` contents."""
    _load_secrets.cache_clear()
