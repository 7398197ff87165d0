"""
Local credential store.

Keys are kept as a base64-encoded JSON map in a single file under the user's
config directory. Base64 only obfuscates the keys; the file is created with
owner-only permissions.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path

import structlog

from stratforge.core.config import get_settings

logger = structlog.get_logger()

REQUIRED_KEYS = ("openrouter",)


class CredentialStore:
    """
    Saved API keys for the CLI.

    Example:
        store = CredentialStore()
        store.set("openrouter", "sk-or-...")
        key = store.get("openrouter")
    """

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path is not None else get_settings().generation.credentials_path

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            decoded = base64.b64decode(self.path.read_bytes(), validate=True)
            keys = json.loads(decoded)
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Failed to load API keys", path=str(self.path), error=str(e))
            return {}
        if not isinstance(keys, dict):
            logger.warning("Ignoring malformed key file", path=str(self.path))
            return {}
        return {str(k): str(v) for k, v in keys.items()}

    def _save(self, keys: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        encoded = base64.b64encode(json.dumps(keys).encode("utf-8"))
        self.path.write_bytes(encoded)
        self.path.chmod(0o600)

    def get(self, name: str) -> str | None:
        """Return a saved key, or None."""
        return self._load().get(name)

    def set(self, name: str, value: str) -> None:
        """Save a key, keeping the others."""
        if not value.strip():
            raise ValueError(f"Refusing to save an empty {name} key")
        keys = self._load()
        keys[name] = value.strip()
        self._save(keys)
        logger.info("API key saved", name=name, path=str(self.path))

    def clear(self) -> None:
        """Forget every saved key."""
        if self.path.exists():
            self.path.unlink()
            logger.info("API keys cleared", path=str(self.path))

    def has_keys(self) -> bool:
        """True when every key the pipelines need is saved."""
        keys = self._load()
        return all(keys.get(name) for name in REQUIRED_KEYS)

    def masked(self) -> dict[str, str]:
        """Saved keys showing only their first six and last four characters."""
        return {name: _mask(value) for name, value in self._load().items()}


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:6]}...{value[-4:]}"
