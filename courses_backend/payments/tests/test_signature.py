# payments/tests/test_signature.py

from django.test import SimpleTestCase

from payments.services.mercadopago import (
    build_signature_manifest,
    compute_signature,
    parse_signature_header,
    verify_webhook_signature,
)

SECRET = "test-webhook-secret"


def _header(*, data_id, request_id, ts="1704908010"):
    manifest = build_signature_manifest(data_id=data_id, request_id=request_id, ts=ts)
    return f"ts={ts},v1={compute_signature(secret=SECRET, manifest=manifest)}"


class SignatureHeaderTests(SimpleTestCase):
    def test_parse_header(self):
        self.assertEqual(parse_signature_header("ts=123, v1=abc"), ("123", "abc"))

    def test_parse_garbage(self):
        self.assertEqual(parse_signature_header("nonsense"), ("", ""))
        self.assertEqual(parse_signature_header(None), ("", ""))

    def test_manifest_format(self):
        self.assertEqual(
            build_signature_manifest(data_id="ABC123", request_id="req-1", ts="99"),
            "id:abc123;request-id:req-1;ts:99;",
        )

    def test_manifest_skips_missing_parts(self):
        self.assertEqual(build_signature_manifest(data_id="", request_id=None, ts="99"), "ts:99;")


class VerifySignatureTests(SimpleTestCase):
    def test_valid_signature(self):
        header = _header(data_id="123456", request_id="req-1")
        self.assertTrue(
            verify_webhook_signature(
                signature_header=header, request_id="req-1", data_id="123456", secret=SECRET
            )
        )

    def test_tampered_data_id_rejected(self):
        header = _header(data_id="123456", request_id="req-1")
        self.assertFalse(
            verify_webhook_signature(
                signature_header=header, request_id="req-1", data_id="999999", secret=SECRET
            )
        )

    def test_missing_secret_rejects(self):
        header = _header(data_id="123456", request_id="req-1")
        self.assertFalse(
            verify_webhook_signature(
                signature_header=header, request_id="req-1", data_id="123456", secret=""
            )
        )

    def test_missing_header_rejects(self):
        self.assertFalse(
            verify_webhook_signature(
                signature_header=None, request_id="req-1", data_id="123456", secret=SECRET
            )
        )
