#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testPacketHandler.py

    Description:
        Test suite for PacketHandler. Verifies request construction and field
        validation for each request type, the HTTP status check, and the
        rejection of unparseable responses or responses without Success, using
        the in-process mock KeePassHttp plugin.
"""

import typing
import unittest

from keepasshttp.codec import json_parser
from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.error_handler import CommunicationError, ApplicationCodes
from keepasshttp.handlers.packet_handler import PacketHandler
from keepasshttp.handlers.transport_handler import Transport
from keepasshttp.utilities.mock_keepasshttp import create_app, FlaskClientTransport


class StaticTransport(Transport):

    def __init__(self, status: int, body: bytes) -> None:
        self.status = status
        self.body = body

    def send(self, body: bytes) -> typing.Tuple[int, bytes]:
        return self.status, self.body


class TestPacketHandler(unittest.TestCase):

    """
        Prepare a mock plugin and a packet handler bound to it.
    """
    def setUp(self) -> None:

        self.app = create_app()
        self.state = self.app.config["STATE"]
        self.transport = FlaskClientTransport(self.app)
        self.handler = PacketHandler(self.transport)

        self.key = AESManager.generate_key()
        self.nonce = AESManager.generate_nonce()

    def _associate_request(self):
        return self.handler.build_request("associate", {
            "Key": self.key,
            "Nonce": self.nonce,
            "Verifier": AESManager.make_verifier(self.nonce, self.key),
        })

    """
        The handler only accepts Transport instances.
    """
    def test_requires_transport(self):

        with self.assertRaises(CommunicationError) as cm:
            PacketHandler(object())  # type: ignore[arg-type]
        self.assertEqual(ApplicationCodes.INVALID_TYPE, cm.exception.application_code)

    """
        build_request puts RequestType first and keeps the field order.
    """
    def test_build_request(self):

        request = self._associate_request()

        self.assertEqual(["RequestType", "Key", "Nonce", "Verifier"], list(request.keys()))
        self.assertEqual("associate", request.get_text("RequestType"))
        self.assertTrue(json_parser.compose(request).startswith('{"RequestType":"associate","Key":"'))

    """
        Unknown request types are rejected.
    """
    def test_build_request_invalid_type(self):

        with self.assertRaises(CommunicationError) as cm:
            self.handler.build_request("set-login", {"Id": "client-1"})
        self.assertEqual(ApplicationCodes.INVALID_REQUEST_TYPE, cm.exception.application_code)

    """
        Missing or empty required fields are rejected before anything is sent.
    """
    def test_build_request_missing_fields(self):

        cases = (
            ("associate", {"Key": self.key, "Nonce": self.nonce}),
            ("test-associate", {"Id": "", "Nonce": self.nonce, "Verifier": "v"}),
            ("get-logins", {"Id": "client-1", "Nonce": self.nonce, "Verifier": "v", "Url": "u"}),
        )

        for request_type, fields in cases:
            with self.subTest(request_type=request_type):
                with self.assertRaises(CommunicationError) as cm:
                    self.handler.build_request(request_type, fields)
                self.assertEqual(ApplicationCodes.MISSING_FIELDS, cm.exception.application_code)

        self.assertEqual([], self.transport.sent)

    """
        Field values must be strings.
    """
    def test_build_request_non_string_field(self):

        with self.assertRaises(CommunicationError) as cm:
            self.handler.build_request("test-associate", {"Id": 7, "Nonce": self.nonce, "Verifier": "v"})  # type: ignore[dict-item]
        self.assertEqual(ApplicationCodes.INVALID_TYPE, cm.exception.application_code)

    """
        A successful exchange returns the response object and sends UTF-8 JSON.
    """
    def test_exchange_success(self):

        response = self.handler.exchange(self._associate_request())

        self.assertTrue(PacketHandler.is_success(response))
        self.assertEqual("client-1", PacketHandler.require_text(response, "Id"))
        self.assertEqual(["associate"], self.state.request_types())
        self.assertTrue(self.transport.sent[0].startswith(b'{"RequestType":"associate"'))

    """
        Any status other than 200 raises CommunicationError carrying the status.
    """
    def test_exchange_http_status(self):

        for status in (400, 404, 500, 503):
            with self.subTest(status=status):
                self.app.config["FORCE_STATUS"] = status

                with self.assertRaises(CommunicationError) as cm:
                    self.handler.exchange(self._associate_request())
                self.assertEqual(ApplicationCodes.HTTP_STATUS, cm.exception.application_code)
                self.assertEqual(status, cm.exception.http_code)

    """
        Unparseable bodies and bodies without a String Success raise INVALID_RESPONSE.
    """
    def test_exchange_invalid_response(self):

        for body in ("", "garbage", "<html></html>", '{"RequestType":"associate"}', '["true"]', '{"Success":{"a":"b"}}', '{"Success":"true"'):
            with self.subTest(body=body):
                self.app.config["RAW_RESPONSE"] = body

                with self.assertRaises(CommunicationError) as cm:
                    self.handler.exchange(self._associate_request())
                self.assertEqual(ApplicationCodes.INVALID_RESPONSE, cm.exception.application_code)

    """
        Surrounding whitespace and an unquoted Success token are tolerated.
    """
    def test_exchange_lenient_success(self):

        self.app.config["RAW_RESPONSE"] = '\r\n {"RequestType":"associate","Success":true,"Id":"abc"}\n'

        response = self.handler.exchange(self._associate_request())

        self.assertTrue(PacketHandler.is_success(response))
        self.assertEqual("abc", response.get_text("Id"))

    """
        A body that is not UTF-8 raises INVALID_RESPONSE.
    """
    def test_exchange_invalid_utf8(self):

        handler = PacketHandler(StaticTransport(200, b'{"Success":"\xff\xfe"}'))

        with self.assertRaises(CommunicationError) as cm:
            handler.exchange(self._associate_request())
        self.assertEqual(ApplicationCodes.INVALID_RESPONSE, cm.exception.application_code)

    """
        is_success only accepts the literal "true".
    """
    def test_is_success(self):

        for body, expected in (('{"Success":"true"}', True), ('{"Success":"false"}', False), ('{"Success":"True"}', False), ('{"Success":""}', False)):
            with self.subTest(body=body):
                self.assertEqual(expected, PacketHandler.is_success(json_parser.parse(body)))

    """
        require_text rejects absent and non-String fields.
    """
    def test_require_text(self):

        response = json_parser.parse('{"Success":"true","Entries":[]}')

        with self.assertRaises(CommunicationError) as cm:
            PacketHandler.require_text(response, "Id")
        self.assertEqual(ApplicationCodes.MISSING_FIELDS, cm.exception.application_code)

        with self.assertRaises(CommunicationError) as cm:
            PacketHandler.require_text(response, "Entries")
        self.assertEqual(ApplicationCodes.INVALID_RESPONSE, cm.exception.application_code)


if __name__ == "__main__":
    unittest.main()
