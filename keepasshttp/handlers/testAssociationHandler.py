#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testAssociationHandler.py

    Description:
        Test suite for AssociationHandler. Exercises associate(),
        test_associate() and the one-shot re-association rule of
        ensure_associated() against the mock KeePassHttp plugin, including
        declined associations, stale keys, automatic association on missing
        credentials, persistence after success, and nonce freshness.
"""

import json
import os
import tempfile
import unittest

from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.association_handler import AssociationHandler
from keepasshttp.handlers.error_handler import NotAssociatedError, CommunicationError, ApplicationCodes
from keepasshttp.handlers.packet_handler import PacketHandler
from keepasshttp.storage.credential_store import Credentials, FileCredentialStore, MemoryCredentialStore
from keepasshttp.utilities.audit_log import AuditLog
from keepasshttp.utilities.mock_keepasshttp import create_app, FlaskClientTransport, ScriptedTransport


class TestAssociationHandler(unittest.TestCase):

    """
        Prepare a mock plugin, empty credentials and a temporary audit log.
    """
    def setUp(self) -> None:

        self.tmp = tempfile.TemporaryDirectory()
        self.audit_path = os.path.join(self.tmp.name, "audit.log")
        self.audit_log = AuditLog(self.audit_path)

        self.key = AESManager.generate_key()
        self.app = create_app(clients={"client-registered": self.key})
        self.state = self.app.config["STATE"]
        self.packet_handler = PacketHandler(FlaskClientTransport(self.app))

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _handler(self, client_id=None, key=None, store=None):
        credentials = Credentials(id=client_id, key=key)
        store = store or MemoryCredentialStore()
        return AssociationHandler(self.packet_handler, credentials, store, self.audit_log), store

    def _audit_event_names(self):
        with open(self.audit_path, "r", encoding="utf-8") as f:
            return [json.loads(line)["event"] for line in f if line.strip()]

    """
        associate() without a key generates one, stores the returned Id and persists both.
    """
    def test_associate_generates_key_and_persists(self):

        handler, store = self._handler()

        handler.associate()

        credentials = handler.credentials
        self.assertEqual("client-1", credentials.id)
        self.assertEqual(16, len(AESManager.validate_key(credentials.key)))
        self.assertTrue(handler.is_associated)
        self.assertEqual(("client-1", credentials.key), store.load())
        self.assertEqual(credentials.key, self.state.clients["client-1"])
        self.assertEqual(1, handler.associate_count)
        self.assertIn("associated", self._audit_event_names())

    """
        associate() reuses an existing key.
    """
    def test_associate_reuses_existing_key(self):

        handler, _ = self._handler(key=self.key)

        handler.associate()

        self.assertEqual(self.key, handler.credentials.key)
        self.assertEqual(self.key, self.state.clients[handler.credentials.id])

    """
        A declined association raises NotAssociatedError and persists nothing.
    """
    def test_associate_declined(self):

        self.app.config["ACCEPT_ASSOCIATION"] = False
        handler, store = self._handler()

        with self.assertRaises(NotAssociatedError) as cm:
            handler.associate()

        self.assertIsInstance(cm.exception, CommunicationError)
        self.assertEqual(ApplicationCodes.ASSOCIATION_DECLINED, cm.exception.application_code)
        self.assertIsNone(handler.credentials.id)
        self.assertIsNone(store.load())
        self.assertIn("associate_declined", self._audit_event_names())

    """
        A successful associate response without an Id is a communication failure.
    """
    def test_associate_response_without_id(self):

        self.app.config["RAW_RESPONSE"] = '{"RequestType":"associate","Success":"true"}'
        handler, store = self._handler()

        with self.assertRaises(CommunicationError) as cm:
            handler.associate()
        self.assertEqual(ApplicationCodes.MISSING_FIELDS, cm.exception.application_code)
        self.assertIsNone(store.load())

    """
        Valid credentials pass test_associate() with a single request.
    """
    def test_test_associate_valid(self):

        handler, _ = self._handler("client-registered", self.key)

        handler.test_associate()

        self.assertEqual(["test-associate"], self.state.request_types())
        self.assertEqual(0, handler.associate_count)

    """
        Missing id or key makes test_associate() associate first.
    """
    def test_test_associate_missing_credentials(self):

        for client_id, key in ((None, None), ("client-registered", None), (None, self.key)):
            with self.subTest(client_id=client_id, key=key):
                self.state.requests.clear()
                handler, _ = self._handler(client_id, key)

                handler.test_associate()

                self.assertEqual(["associate", "test-associate"], self.state.request_types())
                self.assertEqual(1, handler.associate_count)

    """
        Stale credentials fail test_associate() with NOT_ASSOCIATED.
    """
    def test_test_associate_stale_key(self):

        handler, _ = self._handler("client-registered", AESManager.generate_key())

        with self.assertRaises(NotAssociatedError) as cm:
            handler.test_associate()
        self.assertEqual(ApplicationCodes.NOT_ASSOCIATED, cm.exception.application_code)

    """
        ensure_associated() with a stale key re-associates exactly once.
    """
    def test_ensure_associated_reassociates_once(self):

        stale_key = AESManager.generate_key()
        handler, store = self._handler("client-registered", stale_key)

        handler.ensure_associated()

        self.assertEqual(["test-associate", "associate"], self.state.request_types())
        self.assertEqual(1, handler.associate_count)
        self.assertEqual("client-1", handler.credentials.id)
        self.assertEqual(("client-1", stale_key), store.load())
        self.assertIn("reassociate", self._audit_event_names())

    """
        ensure_associated() with valid credentials never associates.
    """
    def test_ensure_associated_valid(self):

        handler, _ = self._handler("client-registered", self.key)

        handler.ensure_associated()

        self.assertEqual(["test-associate"], self.state.request_types())
        self.assertEqual(0, handler.associate_count)

    """
        A declined re-association ends the attempt without looping.
    """
    def test_ensure_associated_declined(self):

        self.app.config["ACCEPT_ASSOCIATION"] = False
        handler, _ = self._handler("client-registered", AESManager.generate_key())

        with self.assertRaises(NotAssociatedError) as cm:
            handler.ensure_associated()

        self.assertEqual(ApplicationCodes.ASSOCIATION_DECLINED, cm.exception.application_code)
        self.assertEqual(["test-associate", "associate"], self.state.request_types())
        self.assertEqual(1, handler.associate_count)

    """
        When test-associate fails right after its own associate(), no second associate() follows.
    """
    def test_ensure_associated_does_not_loop(self):

        transport = ScriptedTransport([
            '{"RequestType":"associate","Success":"true","Id":"client-1"}',
            '{"RequestType":"test-associate","Success":"false"}',
        ])
        handler = AssociationHandler(PacketHandler(transport), Credentials(), MemoryCredentialStore(), self.audit_log)

        with self.assertRaises(NotAssociatedError) as cm:
            handler.ensure_associated()

        self.assertEqual(ApplicationCodes.NOT_ASSOCIATED, cm.exception.application_code)
        self.assertEqual(["associate", "test-associate"], transport.request_types)
        self.assertEqual(1, handler.associate_count)

    """
        Each request carries a new nonce and a verifier the plugin accepts.
    """
    def test_nonces_are_fresh(self):

        handler, _ = self._handler()

        handler.associate()
        for _ in range(5):
            handler.test_associate()
        handler.ensure_associated()

        nonces = self.state.nonces()
        self.assertEqual(7, len(nonces))
        self.assertEqual(len(nonces), len(set(nonces)))

    """
        associate() writes the credentials file when backed by a FileCredentialStore.
    """
    def test_associate_persists_to_file(self):

        path = os.path.join(self.tmp.name, "keepasshttpclient.json")
        store = FileCredentialStore(path, self.audit_log)
        handler, _ = self._handler(store=store)

        handler.associate()

        self.assertEqual(("client-1", handler.credentials.key), FileCredentialStore(path, self.audit_log).load())


if __name__ == "__main__":
    unittest.main()
