# payments/services/mercadopago.py
from __future__ import annotations

import hashlib
import hmac
import json
import os
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from django.conf import settings

MERCADOPAGO_BASE = "https://api.mercadopago.com"


class GatewayError(RuntimeError):
    """
    Any failure talking to Mercado Pago (transport, HTTP status, bad JSON).
    """

    def __init__(self, message: str, *, status_code: int | None = None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


def _mp_cfg() -> dict:
    """
    Config resolver.

    Priority:
    1) settings.PAYMENTS["MERCADOPAGO"]
    2) direct env vars as fallback (MERCADOPAGO_ACCESS_TOKEN, ...)
    """
    payments = getattr(settings, "PAYMENTS", {}) or {}
    cfg = (payments.get("MERCADOPAGO") or {}) if isinstance(payments, dict) else {}
    return cfg if isinstance(cfg, dict) else {}


def _cfg_value(key: str, env_name: str) -> str:
    value = (_mp_cfg().get(key) or "").strip()
    if not value:
        value = (os.environ.get(env_name) or "").strip()
    return value


def _get_access_token() -> str:
    token = _cfg_value("ACCESS_TOKEN", "MERCADOPAGO_ACCESS_TOKEN")
    if not token:
        raise GatewayError(
            "MERCADOPAGO ACCESS_TOKEN is not configured. "
            "Expected settings.PAYMENTS['MERCADOPAGO']['ACCESS_TOKEN'] or env MERCADOPAGO_ACCESS_TOKEN."
        )
    return token


def get_webhook_secret() -> str:
    return _cfg_value("WEBHOOK_SECRET", "MERCADOPAGO_WEBHOOK_SECRET")


def _safe_preview(text: str, limit: int = 800) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ...(truncated)"


def _parse_json_or_text(raw: str) -> dict[str, Any]:
    raw = raw or ""
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {"kind": "text", "raw": raw}
    if isinstance(parsed, dict):
        return {"kind": "json", "json": parsed, "raw": raw}
    return {"kind": "json_non_object", "json": parsed, "raw": raw}


def _request_json(
    method: str,
    url: str,
    *,
    body: dict | None = None,
    idempotency_key: str | None = None,
    timeout: int = 25,
) -> dict[str, Any]:
    token = _get_access_token()
    data = None
    if body is not None:
        data = json.dumps(body, ensure_ascii=False, default=str).encode("utf-8")

    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": "courses-backend Python-urllib",
    }
    if idempotency_key:
        headers["X-Idempotency-Key"] = str(idempotency_key)

    req = Request(url, data=data, headers=headers, method=method)

    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
            parsed_any = _parse_json_or_text(raw)
    except HTTPError as e:
        try:
            raw = e.read().decode("utf-8", errors="replace")
        except OSError:
            raw = ""
        parsed_any = _parse_json_or_text(raw)

        if parsed_any.get("kind") == "json":
            j = parsed_any.get("json") or {}
            msg = j.get("message") or j.get("error") or "Mercado Pago rejected request"
            raise GatewayError(
                f"Mercado Pago HTTPError: {e.code} {msg}",
                status_code=e.code,
                payload=j,
            ) from e

        preview = _safe_preview(parsed_any.get("raw") or str(e))
        raise GatewayError(f"Mercado Pago HTTPError: {e.code} {preview}", status_code=e.code) from e
    except URLError as e:
        raise GatewayError(f"Mercado Pago URLError: {e}") from e
    except (OSError, ValueError) as e:
        raise GatewayError(f"Mercado Pago request failed: {e}") from e

    if parsed_any.get("kind") != "json":
        raise GatewayError(
            f"Mercado Pago returned non-JSON: {_safe_preview(parsed_any.get('raw') or '')}"
        )

    return parsed_any.get("json") or {}


# ============================================================
# PAYMENTS
# ============================================================


def create_payment(body: dict, *, idempotency_key: str) -> dict:
    """
    POST /v1/payments. The idempotency key makes client retries safe.
    """
    return _request_json(
        "POST",
        f"{MERCADOPAGO_BASE}/v1/payments",
        body=body,
        idempotency_key=idempotency_key,
    )


def get_payment(payment_id) -> dict:
    pid = str(payment_id or "").strip()
    if not pid:
        raise GatewayError("payment id is required")
    return _request_json("GET", f"{MERCADOPAGO_BASE}/v1/payments/{quote(pid, safe='')}")


def create_refund(payment_id, *, amount=None, idempotency_key: str | None = None) -> dict:
    """
    Full refund when amount is None, partial otherwise.
    """
    pid = str(payment_id or "").strip()
    if not pid:
        raise GatewayError("payment id is required")

    body = {} if amount is None else {"amount": float(amount)}
    return _request_json(
        "POST",
        f"{MERCADOPAGO_BASE}/v1/payments/{quote(pid, safe='')}/refunds",
        body=body,
        idempotency_key=idempotency_key,
    )


# ============================================================
# WEBHOOK SIGNATURE
# ============================================================


def parse_signature_header(header: str | None) -> tuple[str, str]:
    """
    `x-signature: ts=1704908010,v1=618c85...` -> ("1704908010", "618c85...")
    """
    ts = ""
    v1 = ""
    for part in str(header or "").split(","):
        key, sep, value = part.partition("=")
        if not sep:
            continue
        key = key.strip().lower()
        if key == "ts":
            ts = value.strip()
        elif key == "v1":
            v1 = value.strip()
    return ts, v1


def build_signature_manifest(*, data_id: str | None, request_id: str | None, ts: str) -> str:
    # Alphanumeric ids are signed in lower case; absent values are left out.
    manifest = ""
    if data_id:
        manifest += f"id:{str(data_id).lower()};"
    if request_id:
        manifest += f"request-id:{request_id};"
    manifest += f"ts:{ts};"
    return manifest


def compute_signature(*, secret: str, manifest: str) -> str:
    return hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_webhook_signature(
    *,
    signature_header: str | None,
    request_id: str | None,
    data_id: str | None,
    secret: str | None = None,
) -> bool:
    secret = secret if secret is not None else get_webhook_secret()
    if not secret:
        return False

    ts, v1 = parse_signature_header(signature_header)
    if not ts or not v1:
        return False

    manifest = build_signature_manifest(data_id=data_id, request_id=request_id, ts=ts)
    expected = compute_signature(secret=secret, manifest=manifest)
    return hmac.compare_digest(expected, v1.lower())
