"""Local storage for saved credentials."""

from stratforge.storage.credentials import CredentialStore

__all__ = ["CredentialStore"]
