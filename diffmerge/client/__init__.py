"""Client for the remote diff/merge service."""

from .client import DiffMergeClient
from .auth import CredentialStore, get_credential_store, set_credential_store

__all__ = [
    "DiffMergeClient",
    "CredentialStore",
    "get_credential_store",
    "set_credential_store",
]
