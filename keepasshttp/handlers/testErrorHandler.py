#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testErrorHandler.py

    Description:
        Test suite for ErrorHandler. Verifies that codec and cipher faults are
        normalized into CommunicationError, that protocol and caller-input
        errors pass through unchanged, that unexpected exceptions become
        INTERNAL_ERROR, and that every failure is written to the audit log.
"""

import json
import os
import tempfile
import unittest

from keepasshttp.handlers.error_handler import (
    ErrorHandler, KeePassHttpError, JSONSyntaxError, UnsupportedValueError, EncryptionError, CommunicationError,
    NotAssociatedError, MissingParameterError, NotFoundError, AmbiguousMatchError, CredentialStoreError, ApplicationCodes
)
from keepasshttp.utilities.audit_log import AuditLog


class TestErrorHandler(unittest.TestCase):

    """
        Attach the handler to a temporary audit log.
    """
    def setUp(self) -> None:

        self.tmp = tempfile.TemporaryDirectory()
        self.audit_path = os.path.join(self.tmp.name, "logs", "audit.log")
        self.handler = ErrorHandler(AuditLog(self.audit_path))

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _audit_records(self):
        with open(self.audit_path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    """
        Codec and cipher errors surface as CommunicationError with the same code.
    """
    def test_normalizes_codec_and_cipher_errors(self):

        for error in (
            EncryptionError(ApplicationCodes.DECRYPTION_FAILURE, "AES-CBC decryption failed", "ciphertext"),
            JSONSyntaxError(ApplicationCodes.MALFORMED_JSON, "Unterminated json object", "json"),
            UnsupportedValueError(ApplicationCodes.UNSUPPORTED_VALUE, "unsupported object-type: int", "value"),
        ):
            with self.subTest(error=type(error).__name__):
                normalized = self.handler.handle_client_error(error, context="get_logins")

                self.assertIsInstance(normalized, CommunicationError)
                self.assertEqual(error.application_code, normalized.application_code)
                self.assertEqual(error.field, normalized.field)
                self.assertTrue(normalized.detail.startswith("Communication with KeePass failed"))

    """
        Protocol, association and caller-input errors pass through as the same object.
    """
    def test_passes_through_client_errors(self):

        for error in (
            CommunicationError(ApplicationCodes.HTTP_STATUS, "http-returncode is 500", "status", http_code=500),
            NotAssociatedError(ApplicationCodes.NOT_ASSOCIATED, "not associated", "test-associate"),
            MissingParameterError(ApplicationCodes.MISSING_PARAMETER, "missing parameter url", "url"),
            NotFoundError(ApplicationCodes.NOT_FOUND, "No login found", "url"),
            AmbiguousMatchError(ApplicationCodes.AMBIGUOUS_MATCH, "2 logins found", "url"),
            CredentialStoreError(ApplicationCodes.CREDENTIAL_STORE_ERROR, "cannot write", "credentials"),
        ):
            with self.subTest(error=type(error).__name__):
                self.assertIs(error, self.handler.handle_client_error(error))

    """
        Anything outside the taxonomy becomes INTERNAL_ERROR.
    """
    def test_unexpected_exception(self):

        normalized = self.handler.handle_client_error(RuntimeError("boom"), context="associate")

        self.assertIsInstance(normalized, CommunicationError)
        self.assertEqual(ApplicationCodes.INTERNAL_ERROR, normalized.application_code)
        self.assertNotIn("boom", normalized.detail)

    """
        Each handled error writes one audit record with the raw detail.
    """
    def test_audit_records(self):

        self.handler.handle_client_error(RuntimeError("boom"), context="associate")
        self.handler.handle_client_error(NotFoundError(ApplicationCodes.NOT_FOUND, "No login found", "url"), context="get_login")

        records = self._audit_records()
        self.assertEqual(2, len(records))

        self.assertEqual("client_error", records[0]["event"])
        self.assertEqual("associate", records[0]["context"])
        self.assertEqual("RuntimeError", records[0]["error_type"])
        self.assertEqual(ApplicationCodes.INTERNAL_ERROR, records[0]["application_code"])
        self.assertEqual("boom", records[0]["detail"])
        self.assertTrue(records[0]["timestamp"].endswith("Z"))

        self.assertEqual("get_login", records[1]["context"])
        self.assertEqual(ApplicationCodes.NOT_FOUND, records[1]["application_code"])

    """
        Error metadata is exposed on every KeePassHttpError.
    """
    def test_error_metadata(self):

        error = CommunicationError(ApplicationCodes.HTTP_STATUS, "http-returncode is 404", "status", http_code=404)

        self.assertIsInstance(error, KeePassHttpError)
        self.assertEqual(404, error.http_code)
        self.assertEqual("status", error.field)
        self.assertEqual("http_status: http-returncode is 404", str(error))
        self.assertTrue(issubclass(NotAssociatedError, CommunicationError))


if __name__ == "__main__":
    unittest.main()
