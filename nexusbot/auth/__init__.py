"""
Credential management for nexusbot.
"""

from nexusbot.auth.credentials import (
    Credentials,
    OverrideBundleError,
    decode_override_bundle,
    encode_override_bundle,
    init_auth_creds,
)
from nexusbot.auth.key_cache import CachedKeyStore
from nexusbot.auth.key_store import InMemoryKeyStore, KeyStore, SqlKeyStore, record_name
from nexusbot.auth.store import CREDS_RECORD, CredentialStore

__all__ = [
    "Credentials",
    "CredentialStore",
    "CREDS_RECORD",
    "OverrideBundleError",
    "decode_override_bundle",
    "encode_override_bundle",
    "init_auth_creds",
    "KeyStore",
    "SqlKeyStore",
    "InMemoryKeyStore",
    "CachedKeyStore",
    "record_name",
]
