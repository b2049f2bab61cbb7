"""
Credential material and the override bundle codec.

`Credentials` pairs the session's identity secrets (`creds`, a JSON-able
mapping) with the key store holding per-peer signal keys.

The override bundle is the operator-supplied ``SESSION_DATA`` value:
base64 text that decodes to UTF-8 JSON of the form
``{"creds": {...}, "keys": {"<type>": {"<id>": <value>}}}``.
"""

from __future__ import annotations

import base64
import binascii
import json
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from nexusbot.auth.key_store import KeyStore
from nexusbot.core.database.base import utc_now

_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


class OverrideBundleError(ValueError):
    """The override bundle did not decode to a usable credential snapshot."""


@dataclass(slots=True)
class Credentials:
    creds: Dict[str, Any]
    keys: KeyStore


def init_auth_creds() -> Dict[str, Any]:
    """
    Fresh, unregistered credentials for a session that has never paired.

    The transport fills in the identity fields during pairing and reports
    them back through ``creds.update``.
    """
    return {
        "registered": False,
        "registration_id": secrets.randbelow(16380) + 1,
        "adv_secret_key": base64.b64encode(secrets.token_bytes(32)).decode("ascii"),
        "next_pre_key_id": 1,
        "first_unuploaded_pre_key_id": 1,
        "account_sync_counter": 0,
        "processed_history_messages": [],
        "created_at": utc_now().isoformat(),
    }


def decode_override_bundle(encoded: str) -> Dict[str, Any]:
    """
    Decode an override bundle into ``{"creds": ..., "keys": ...}``.

    All-or-nothing: any decoding or shape problem raises
    `OverrideBundleError` and nothing is returned.
    """
    # Wrapped output (GNU base64), the URL-safe alphabet and missing padding
    # are all accepted.
    compact = "".join(encoded.split()).translate(_URLSAFE_TO_STANDARD)
    compact += "=" * (-len(compact) % 4)

    try:
        raw = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise OverrideBundleError(f"not valid base64: {exc}") from exc

    try:
        bundle = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise OverrideBundleError(f"not valid UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise OverrideBundleError(f"not valid JSON: {exc}") from exc

    if not isinstance(bundle, Mapping):
        raise OverrideBundleError("bundle is not a JSON object")

    missing = [field for field in ("creds", "keys") if field not in bundle]
    if missing:
        raise OverrideBundleError(f"bundle is missing {', '.join(missing)}")

    if not isinstance(bundle["creds"], Mapping) or not isinstance(bundle["keys"], Mapping):
        raise OverrideBundleError("'creds' and 'keys' must both be JSON objects")

    return {"creds": dict(bundle["creds"]), "keys": dict(bundle["keys"])}


def encode_override_bundle(creds: Mapping[str, Any], keys: Mapping[str, Any]) -> str:
    """Inverse of `decode_override_bundle`, for exporting a session."""
    payload = json.dumps({"creds": creds, "keys": keys}, default=str)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")
