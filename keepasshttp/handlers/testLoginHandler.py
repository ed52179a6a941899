#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testLoginHandler.py

    Description:
        Test suite for LoginHandler. Verifies get-logins against the mock
        KeePassHttp plugin: decryption of entries with the response nonce,
        empty and absent entry lists, url / submit url handling, declined
        requests, one-shot re-association, get_login() narrowing, and the
        call phase after success and failure.
"""

import os
import tempfile
import unittest

from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.association_handler import AssociationHandler
from keepasshttp.handlers.error_handler import (
    KeePassHttpError, EncryptionError, CommunicationError, NotAssociatedError, MissingParameterError,
    NotFoundError, AmbiguousMatchError, ApplicationCodes
)
from keepasshttp.handlers.login_handler import LoginHandler, LoginRecord, CallPhase
from keepasshttp.handlers.packet_handler import PacketHandler
from keepasshttp.storage.credential_store import Credentials, MemoryCredentialStore
from keepasshttp.utilities.audit_log import AuditLog
from keepasshttp.utilities.mock_keepasshttp import create_app, FlaskClientTransport, MockEntry, ScriptedTransport


TEST_ASSOCIATE_OK = '{"RequestType":"test-associate","Success":"true"}'


class TestLoginHandler(unittest.TestCase):

    ENTRIES = [
        MockEntry("github", "alice", "pw-github", url="https://github.com"),
        MockEntry("gitlab", "bob", "pw-gitlab", url="https://gitlab.com"),
        MockEntry("shared-1", "carol", "pw-1", url="https://shared.example"),
        MockEntry("shared-2", "dave", "pw-2", url="https://shared.example"),
    ]

    """
        Prepare a mock plugin with a registered client and a login handler bound to it.
    """
    def setUp(self) -> None:

        self.tmp = tempfile.TemporaryDirectory()
        self.audit_log = AuditLog(os.path.join(self.tmp.name, "audit.log"))

        self.key = AESManager.generate_key()
        self.app = create_app(entries=self.ENTRIES, clients={"client-registered": self.key})
        self.state = self.app.config["STATE"]

        self.handler = self._login_handler(PacketHandler(FlaskClientTransport(self.app)), "client-registered", self.key)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _login_handler(self, packet_handler, client_id, key):
        credentials = Credentials(id=client_id, key=key)
        association = AssociationHandler(packet_handler, credentials, MemoryCredentialStore(client_id, key), self.audit_log)
        return LoginHandler(packet_handler, association, self.audit_log)

    def _scripted_handler(self, *bodies):
        transport = ScriptedTransport([TEST_ASSOCIATE_OK, *bodies])
        return self._login_handler(PacketHandler(transport), "client-registered", self.key), transport

    """
        A fresh handler starts idle.
    """
    def test_initial_phase(self):

        self.assertEqual(CallPhase.IDLE, self.handler.phase)

    """
        Matching entries come back decrypted, in server order.
    """
    def test_get_logins(self):

        logins = self.handler.get_logins("https://github.com")

        self.assertEqual([LoginRecord("github", "alice", "pw-github")], logins)
        self.assertEqual(["test-associate", "get-logins"], self.state.request_types())
        self.assertEqual(CallPhase.DONE, self.handler.phase)

        shared = self.handler.get_logins("https://shared.example")
        self.assertEqual(["shared-1", "shared-2"], [login.name for login in shared])

    """
        The url can also be the entry name.
    """
    def test_get_logins_by_name(self):

        logins = self.handler.get_logins("gitlab")

        self.assertEqual([LoginRecord("gitlab", "bob", "pw-gitlab")], logins)

    """
        Entries are decrypted with the response nonce, which differs from the request nonce.
    """
    def test_entries_use_response_nonce(self):

        self.handler.get_logins("https://github.com")

        request_nonce = self.state.requests[-1].get_text("Nonce")
        self.assertNotEqual(request_nonce, self.state.response_nonces[-1])

    """
        Url and SubmitUrl are sent encrypted; SubmitUrl defaults to Url.
    """
    def test_request_fields(self):

        self.handler.get_logins("https://github.com")
        self.handler.get_logins("https://gitlab.com", "https://gitlab.com/users/sign_in")

        for request, url, submit_url in (
            (self.state.requests[1], "https://github.com", "https://github.com"),
            (self.state.requests[3], "https://gitlab.com", "https://gitlab.com/users/sign_in"),
        ):
            nonce = request.get_text("Nonce")
            self.assertEqual("client-registered", request.get_text("Id"))
            self.assertNotEqual(url, request.get_text("Url"))
            self.assertEqual(url, AESManager.decrypt_from_b64(request.get_text("Url"), nonce, self.key))
            self.assertEqual(submit_url, AESManager.decrypt_from_b64(request.get_text("SubmitUrl"), nonce, self.key))
            self.assertTrue(AESManager.check_verifier(request.get_text("Verifier"), nonce, self.key))

    """
        No match yields an empty list, not an error.
    """
    def test_get_logins_no_match(self):

        self.assertEqual([], self.handler.get_logins("https://unknown.example"))
        self.assertEqual(CallPhase.DONE, self.handler.phase)

    """
        Absent or empty Entries yield an empty list even without a response nonce.
    """
    def test_get_logins_without_entries(self):

        for body in ('{"RequestType":"get-logins","Success":"true"}', '{"RequestType":"get-logins","Success":"true","Entries":[]}'):
            with self.subTest(body=body):
                handler, transport = self._scripted_handler(body)

                self.assertEqual([], handler.get_logins("https://github.com"))
                self.assertEqual(["test-associate", "get-logins"], transport.request_types)

    """
        An empty url raises MissingParameterError after the association check.
    """
    def test_get_logins_missing_url(self):

        for url in ("", None):
            with self.subTest(url=url):
                self.state.requests.clear()

                with self.assertRaises(MissingParameterError) as cm:
                    self.handler.get_logins(url)  # type: ignore[arg-type]

                self.assertEqual(ApplicationCodes.MISSING_PARAMETER, cm.exception.application_code)
                self.assertEqual(["test-associate"], self.state.request_types())
                self.assertEqual(CallPhase.FAILED, self.handler.phase)

    """
        Success != "true" on get-logins raises REQUEST_DECLINED without re-association.
    """
    def test_get_logins_declined(self):

        self.app.config["GET_LOGINS_SUCCESS"] = False

        with self.assertRaises(CommunicationError) as cm:
            self.handler.get_logins("https://github.com")

        self.assertNotIsInstance(cm.exception, NotAssociatedError)
        self.assertEqual(ApplicationCodes.REQUEST_DECLINED, cm.exception.application_code)
        self.assertEqual(["test-associate", "get-logins"], self.state.request_types())
        self.assertEqual(CallPhase.FAILED, self.handler.phase)

    """
        A stale key is replaced by exactly one associate() before get-logins.
    """
    def test_get_logins_reassociates_once(self):

        handler = self._login_handler(PacketHandler(FlaskClientTransport(self.app)), "client-registered", AESManager.generate_key())

        logins = handler.get_logins("https://github.com")

        self.assertEqual([LoginRecord("github", "alice", "pw-github")], logins)
        self.assertEqual(["test-associate", "associate", "get-logins"], self.state.request_types())

    """
        A declined re-association fails the call with no further requests.
    """
    def test_get_logins_association_declined(self):

        self.app.config["ACCEPT_ASSOCIATION"] = False
        handler = self._login_handler(PacketHandler(FlaskClientTransport(self.app)), "client-registered", AESManager.generate_key())

        with self.assertRaises(CommunicationError):
            handler.get_logins("https://github.com")

        self.assertEqual(["test-associate", "associate"], self.state.request_types())
        self.assertEqual(CallPhase.FAILED, handler.phase)

    """
        Malformed Entries fail the call.
    """
    def test_get_logins_malformed_entries(self):

        cases = (
            ('{"Success":"true","Entries":"none"}', CommunicationError, ApplicationCodes.INVALID_RESPONSE),
            ('{"Success":"true","Entries":["plain"]}', CommunicationError, ApplicationCodes.MISSING_FIELDS),
            ('{"Success":"true","Entries":[{"Name":"a","Login":"b","Password":"c"}]}', CommunicationError, ApplicationCodes.MISSING_FIELDS),
            ('{"Success":"true","Nonce":"' + AESManager.generate_nonce() + '","Entries":[{"Login":"b"}]}', CommunicationError, ApplicationCodes.MISSING_FIELDS),
            ('{"Success":"true","Nonce":"' + AESManager.generate_nonce() + '","Entries":[{"Name":"***","Login":"b","Password":"c"}]}', EncryptionError, ApplicationCodes.INVALID_BASE64),
        )

        for body, error_class, application_code in cases:
            with self.subTest(body=body):
                handler, _ = self._scripted_handler(body)

                with self.assertRaises(KeePassHttpError) as cm:
                    handler.get_logins("https://github.com")

                self.assertIsInstance(cm.exception, error_class)
                self.assertEqual(application_code, cm.exception.application_code)
                self.assertEqual(CallPhase.FAILED, handler.phase)

    """
        get_login returns the single match.
    """
    def test_get_login(self):

        login = self.handler.get_login("https://gitlab.com")

        self.assertEqual("bob", login.login)
        self.assertEqual("pw-gitlab", login.password)

    """
        get_login with no match raises NotFoundError.
    """
    def test_get_login_not_found(self):

        with self.assertRaises(NotFoundError) as cm:
            self.handler.get_login("https://unknown.example")
        self.assertEqual(ApplicationCodes.NOT_FOUND, cm.exception.application_code)

    """
        get_login with several matches raises AmbiguousMatchError.
    """
    def test_get_login_ambiguous(self):

        with self.assertRaises(AmbiguousMatchError) as cm:
            self.handler.get_login("https://shared.example")
        self.assertEqual(ApplicationCodes.AMBIGUOUS_MATCH, cm.exception.application_code)

    """
        Passwords never appear in a record's repr.
    """
    def test_login_record_repr_hides_password(self):

        record = self.handler.get_login("https://github.com")

        self.assertNotIn("pw-github", repr(record))
        self.assertIn("alice", repr(record))


if __name__ == "__main__":
    unittest.main()
