#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testConnector.py

    Description:
        Test suite for KeePassHttpConnector. Covers credential loading and
        persistence, supplied credentials that are never written to disk,
        error normalization at the public boundary, and an end-to-end run
        over a real loopback socket against the mock plugin served by
        werkzeug.
"""

import json
import os
import tempfile
import threading
import typing
import unittest

from werkzeug.serving import make_server

from keepasshttp.connector import KeePassHttpConnector
from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.error_handler import (
    CommunicationError, EncryptionError, NotAssociatedError, NotFoundError, AmbiguousMatchError,
    MissingParameterError, ApplicationCodes
)
from keepasshttp.handlers.login_handler import LoginRecord
from keepasshttp.handlers.transport_handler import Transport, HTTPTransport
from keepasshttp.storage.credential_store import FileCredentialStore, MemoryCredentialStore
from keepasshttp.utilities.audit_log import AuditLog
from keepasshttp.utilities.mock_keepasshttp import create_app, FlaskClientTransport, MockEntry, ScriptedTransport


ENTRIES = [
    MockEntry("github", "alice", "pw-github", url="https://github.com"),
    MockEntry("shared-1", "carol", "pw-1", url="https://shared.example"),
    MockEntry("shared-2", "dave", "pw-2", url="https://shared.example"),
]


class FailingTransport(Transport):

    def send(self, body: bytes) -> typing.Tuple[int, bytes]:
        raise RuntimeError("socket exploded")


class TestKeePassHttpConnector(unittest.TestCase):

    """
        Prepare a mock plugin, a temporary credentials file and audit log.
    """
    def setUp(self) -> None:

        self.tmp = tempfile.TemporaryDirectory()
        self.credentials_path = os.path.join(self.tmp.name, "keepasshttpclient.json")
        self.audit_path = os.path.join(self.tmp.name, "audit.log")
        self.audit_log = AuditLog(self.audit_path)

        self.app = create_app(entries=ENTRIES)
        self.state = self.app.config["STATE"]

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _connector(self, **kwargs):
        kwargs.setdefault("transport", FlaskClientTransport(self.app))
        kwargs.setdefault("audit_log", self.audit_log)
        if "client_id" not in kwargs and "key" not in kwargs:
            kwargs.setdefault("credential_store", FileCredentialStore(self.credentials_path, self.audit_log))
        return KeePassHttpConnector(**kwargs)

    def _audit_events(self):
        with open(self.audit_path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    """
        Without a credentials file the first call associates and persists {Id, Key}.
    """
    def test_first_call_associates_and_persists(self):

        connector = self._connector()
        self.assertIsNone(connector.id)
        self.assertIsNone(connector.key)
        self.assertEqual(self.credentials_path, connector.credentials.persist_file)

        logins = connector.get_logins("https://github.com")

        self.assertEqual([LoginRecord("github", "alice", "pw-github")], logins)
        self.assertEqual(["associate", "test-associate", "get-logins"], self.state.request_types())
        self.assertEqual("client-1", connector.id)

        with open(self.credentials_path, "r", encoding="utf-8") as f:
            self.assertEqual({"Id": "client-1", "Key": connector.key}, json.load(f))

    """
        A second connector reuses the persisted credentials without associating.
    """
    def test_persisted_credentials_are_reused(self):

        self._connector().associate()
        self.state.requests.clear()

        connector = self._connector()
        self.assertEqual("client-1", connector.id)

        connector.get_logins("https://github.com")

        self.assertEqual(["test-associate", "get-logins"], self.state.request_types())

    """
        A credentials file that is not UTF-8 is treated as absent and replaced on association.
    """
    def test_non_utf8_credentials_file(self):

        with open(self.credentials_path, "wb") as f:
            f.write(b'{"Id":"\xff\xfe","Key":"' + AESManager.generate_key().encode("ascii") + b'"}')

        connector = self._connector()
        self.assertIsNone(connector.id)
        self.assertIsNone(connector.key)

        connector.associate()

        with open(self.credentials_path, "r", encoding="utf-8") as f:
            self.assertEqual({"Id": "client-1", "Key": connector.key}, json.load(f))

        events = self._audit_events()
        self.assertEqual(["credentials_load_failed", "associated"], [e["event"] for e in events])
        self.assertEqual(19455, events[1]["port"])
        self.assertEqual("keepasshttp-client", events[1]["source"])

    """
        Supplied credentials are used as-is and never written to disk.
    """
    def test_supplied_credentials_are_not_persisted(self):

        previous = os.environ.get("KEEPASSHTTP_CREDENTIALS_FILE")
        os.environ["KEEPASSHTTP_CREDENTIALS_FILE"] = self.credentials_path
        try:
            connector = self._connector(client_id="client-old", key=AESManager.generate_key())
            self.assertIsNone(connector.credentials.persist_file)

            # Stale credentials force one re-association
            connector.get_logins("https://github.com")
        finally:
            if previous is None:
                del os.environ["KEEPASSHTTP_CREDENTIALS_FILE"]
            else:
                os.environ["KEEPASSHTTP_CREDENTIALS_FILE"] = previous

        self.assertEqual(["test-associate", "associate", "get-logins"], self.state.request_types())
        self.assertEqual("client-1", connector.id)
        self.assertFalse(os.path.exists(self.credentials_path))

    """
        A supplied key must be a valid AES key.
    """
    def test_supplied_key_is_validated(self):

        with self.assertRaises(EncryptionError):
            self._connector(client_id="client-1", key="c2hvcnQ=")

    """
        An explicit credential store is used for loading.
    """
    def test_explicit_credential_store(self):

        key = AESManager.generate_key()
        self.state.clients["client-7"] = key

        connector = self._connector(credential_store=MemoryCredentialStore("client-7", key))
        connector.test_associate()

        self.assertEqual("client-7", connector.id)
        self.assertEqual(["test-associate"], self.state.request_types())

    """
        get_login narrows to one record or raises NotFound / AmbiguousMatch unchanged.
    """
    def test_get_login(self):

        connector = self._connector()

        self.assertEqual("alice", connector.get_login("https://github.com").login)

        with self.assertRaises(NotFoundError):
            connector.get_login("https://unknown.example")

        with self.assertRaises(AmbiguousMatchError):
            connector.get_login("https://shared.example")

    """
        An empty url raises MissingParameterError.
    """
    def test_get_logins_missing_url(self):

        with self.assertRaises(MissingParameterError):
            self._connector().get_logins("")

    """
        A declined association surfaces as a CommunicationError.
    """
    def test_declined_association(self):

        self.app.config["ACCEPT_ASSOCIATION"] = False
        connector = self._connector()

        with self.assertRaises(CommunicationError) as cm:
            connector.get_logins("https://github.com")

        self.assertIsInstance(cm.exception, NotAssociatedError)
        self.assertEqual(["associate"], self.state.request_types())
        self.assertFalse(os.path.exists(self.credentials_path))

    """
        Cipher faults inside a response are reported as CommunicationError.
    """
    def test_cipher_fault_is_normalized(self):

        transport = ScriptedTransport([
            '{"RequestType":"test-associate","Success":"true"}',
            '{"Success":"true","Nonce":"' + AESManager.generate_nonce() + '","Entries":[{"Name":"***","Login":"b","Password":"c"}]}',
        ])
        connector = self._connector(client_id="client-1", key=AESManager.generate_key(), transport=transport)

        with self.assertRaises(CommunicationError) as cm:
            connector.get_logins("https://github.com")

        self.assertEqual(ApplicationCodes.INVALID_BASE64, cm.exception.application_code)
        self.assertIsInstance(cm.exception.__cause__, EncryptionError)

        events = [e for e in self._audit_events() if e["event"] == "client_error"]
        self.assertEqual("get_logins", events[-1]["context"])
        self.assertEqual("EncryptionError", events[-1]["error_type"])

    """
        Unexpected exceptions are reported as INTERNAL_ERROR.
    """
    def test_unexpected_error_is_normalized(self):

        connector = self._connector(client_id="client-1", key=AESManager.generate_key(), transport=FailingTransport())

        with self.assertRaises(CommunicationError) as cm:
            connector.test_associate()

        self.assertEqual(ApplicationCodes.INTERNAL_ERROR, cm.exception.application_code)
        self.assertIsInstance(cm.exception.__cause__, RuntimeError)

    """
        A non-200 status reaches the caller with its http code.
    """
    def test_http_status(self):

        self.app.config["FORCE_STATUS"] = 500

        with self.assertRaises(CommunicationError) as cm:
            self._connector().associate()

        self.assertEqual(500, cm.exception.http_code)

    """
        The default transport talks HTTP to the given port.
    """
    def test_default_transport(self):

        connector = KeePassHttpConnector(port=19456, credential_store=MemoryCredentialStore(), audit_log=self.audit_log)

        transport = connector.login_handler._packet_handler.transport
        self.assertIsInstance(transport, HTTPTransport)
        self.assertEqual("http://localhost:19456", transport.url)



class TestKeePassHttpConnectorEndToEnd(unittest.TestCase):

    """
        Serve the mock plugin on an ephemeral loopback port.
    """
    def setUp(self) -> None:

        self.tmp = tempfile.TemporaryDirectory()
        self.audit_log = AuditLog(os.path.join(self.tmp.name, "audit.log"))
        self.credentials_path = os.path.join(self.tmp.name, "keepasshttpclient.json")

        self.app = create_app(entries=ENTRIES)
        self.server = make_server("localhost", 0, self.app, threaded=True)
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()

    def tearDown(self) -> None:
        self._stop_server()
        self.tmp.cleanup()

    def _stop_server(self):
        if self.thread.is_alive():
            self.server.shutdown()
            self.server.server_close()
            self.thread.join(timeout=5)

    def _connector(self):
        return KeePassHttpConnector(
            port=self.server.server_port,
            credential_store=FileCredentialStore(self.credentials_path, self.audit_log),
            audit_log=self.audit_log,
        )

    """
        associate, test-associate and get-logins over HTTP, then reuse the stored credentials.
    """
    def test_round_trip(self):

        connector = self._connector()

        self.assertEqual(LoginRecord("github", "alice", "pw-github"), connector.get_login("https://github.com"))
        self.assertEqual(2, len(connector.get_logins("https://shared.example")))
        self.assertEqual([], connector.get_logins("https://unknown.example"))

        reopened = self._connector()
        self.assertEqual(connector.id, reopened.id)
        self.assertEqual(connector.key, reopened.key)
        self.assertEqual("pw-github", reopened.get_login("github").password)

        request_types = self.app.config["STATE"].request_types()
        self.assertEqual(1, request_types.count("associate"))

    """
        Nothing listening on the port is an IO failure.
    """
    def test_connection_refused(self):

        port = self.server.server_port
        self._stop_server()

        connector = KeePassHttpConnector(port=port, client_id="client-1", key=AESManager.generate_key(), audit_log=self.audit_log)

        with self.assertRaises(CommunicationError) as cm:
            connector.test_associate()
        self.assertIn(cm.exception.application_code, (ApplicationCodes.IO_FAILURE, ApplicationCodes.TIMEOUT))


if __name__ == "__main__":
    unittest.main()
