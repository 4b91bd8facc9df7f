from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Iterable, Optional

_HEADER = {"alg": "HS256", "typ": "JWT"}


class JWTError(ValueError):
    pass


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(raw: str) -> bytes:
    pad = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + pad)


def _json_segment(data: Dict[str, Any]) -> str:
    return _b64url_encode(json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8"))


def _sign(signing_input: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), signing_input, hashlib.sha256).digest()


def encode_hs256(payload: Dict[str, Any], *, secret: str) -> str:
    signing_input = f"{_json_segment(_HEADER)}.{_json_segment(payload)}"
    signature = _sign(signing_input.encode("ascii"), secret)
    return f"{signing_input}.{_b64url_encode(signature)}"


def decode_hs256(token: str, *, secret: str, leeway_seconds: int = 0) -> Dict[str, Any]:
    parts = token.split(".")
    if len(parts) != 3:
        raise JWTError("Invalid token format")
    header_b64, payload_b64, sig_b64 = parts

    try:
        header = json.loads(_b64url_decode(header_b64))
        payload = json.loads(_b64url_decode(payload_b64))
        signature = _b64url_decode(sig_b64)
    except (ValueError, UnicodeDecodeError) as e:
        raise JWTError("Invalid token encoding") from e

    if not isinstance(header, dict) or header.get("alg") != "HS256":
        raise JWTError("Unsupported alg")
    if not isinstance(payload, dict):
        raise JWTError("Invalid token payload")

    expected = _sign(f"{header_b64}.{payload_b64}".encode("ascii"), secret)
    if not hmac.compare_digest(expected, signature):
        raise JWTError("Invalid signature")

    exp = payload.get("exp")
    if exp is not None:
        try:
            exp_int = int(exp)
        except (TypeError, ValueError) as e:
            raise JWTError("Invalid exp claim") from e
        if now_ts() > exp_int + int(leeway_seconds):
            raise JWTError("Token expired")

    return payload


def now_ts() -> int:
    return int(time.time())


def build_access_token_payload(
    *,
    subject_id: str,
    company_id: Optional[str] = None,
    roles: Iterable[str] = (),
    branches: Iterable[str] = (),
    kind: str = "employee",
    ttl_seconds: int = 3600,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    issued_at = now_ts()
    payload: Dict[str, Any] = {
        "sub": str(subject_id),
        "company_id": company_id,
        "roles": sorted(set(roles)),
        "branches": sorted(set(branches)),
        "kind": kind,
        "iat": issued_at,
        "exp": issued_at + int(ttl_seconds),
    }
    if extra:
        payload.update(extra)
    return payload
