#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testTransportHandler.py

    Description:
        Test suite for HTTPTransport. Verifies the loopback url, the request
        shape handed to requests, and the mapping of timeouts and connection
        failures onto CommunicationError. Proxy settings from the environment
        must never divert requests away from the loopback plugin.
"""

import os
import threading
import unittest
from unittest import mock

import requests
from flask import Flask, request
from werkzeug.serving import make_server

from keepasshttp.handlers.error_handler import CommunicationError, ApplicationCodes
from keepasshttp.handlers.transport_handler import Transport, HTTPTransport
from keepasshttp.utilities.mock_keepasshttp import create_app


class TestHTTPTransport(unittest.TestCase):

    """
        The default transport targets localhost:19455.
    """
    def test_default_url(self):

        transport = HTTPTransport()

        self.assertEqual(19455, transport.port)
        self.assertEqual("http://localhost:19455", transport.url)
        self.assertEqual("http://localhost:8080", HTTPTransport(8080).url)

    """
        Ports outside 1..65535 and non-integers are rejected.
    """
    def test_invalid_port(self):

        for port in (0, -1, 65536, "19455", 19455.0, True, None):
            with self.subTest(port=port):
                with self.assertRaises(CommunicationError):
                    HTTPTransport(port)  # type: ignore[arg-type]

    """
        send() posts the body with the JSON content type and the fixed timeout.
    """
    @mock.patch.object(requests.Session, "post")
    def test_send(self, post):

        post.return_value = mock.Mock(status_code=200, content=b'{"Success":"true"}')

        status, body = HTTPTransport(19455).send(b'{"RequestType":"test-associate"}')

        self.assertEqual(200, status)
        self.assertEqual(b'{"Success":"true"}', body)
        post.assert_called_once_with(
            "http://localhost:19455",
            data=b'{"RequestType":"test-associate"}',
            headers={"Content-Type": "application/json; charset=utf-8"},
            timeout=10,
        )

    """
        Non-200 statuses are returned, not raised; the packet layer checks them.
    """
    @mock.patch.object(requests.Session, "post")
    def test_send_returns_error_status(self, post):

        post.return_value = mock.Mock(status_code=500, content=b"")

        self.assertEqual((500, b""), HTTPTransport().send(b"{}"))

    """
        A timeout maps to CommunicationError(TIMEOUT).
    """
    @mock.patch.object(requests.Session, "post")
    def test_send_timeout(self, post):

        for error in (requests.Timeout("read timed out"), requests.ConnectTimeout("connect timed out")):
            with self.subTest(error=type(error).__name__):
                post.side_effect = error

                with self.assertRaises(CommunicationError) as cm:
                    HTTPTransport().send(b"{}")

                self.assertEqual(ApplicationCodes.TIMEOUT, cm.exception.application_code)
                self.assertIs(error, cm.exception.__cause__)

    """
        Connection failures map to CommunicationError(IO_FAILURE).
    """
    @mock.patch.object(requests.Session, "post")
    def test_send_connection_error(self, post):

        post.side_effect = requests.ConnectionError("connection refused")

        with self.assertRaises(CommunicationError) as cm:
            HTTPTransport().send(b"{}")

        self.assertEqual(ApplicationCodes.IO_FAILURE, cm.exception.application_code)
        self.assertIsNone(cm.exception.http_code)

    """
        A transport that does not implement send() cannot be instantiated.
    """
    def test_transport_requires_send(self):

        class Incomplete(Transport):
            pass

        with self.assertRaises(TypeError):
            Incomplete()



class TestHTTPTransportProxyBypass(unittest.TestCase):

    """
        Serve the mock plugin and a recording HTTP proxy on ephemeral loopback ports.
    """
    def setUp(self) -> None:

        self.proxied: list = []
        proxy = Flask("recording_proxy")

        @proxy.before_request
        def record():
            self.proxied.append((request.url, request.get_data()))
            return "proxied", 200

        self.servers = [make_server("localhost", 0, create_app(), threaded=True), make_server("localhost", 0, proxy, threaded=True)]
        self.threads = [threading.Thread(target=server.serve_forever, daemon=True) for server in self.servers]
        for thread in self.threads:
            thread.start()

        self.plugin_port = self.servers[0].server_port
        self.proxy_url = f"http://localhost:{self.servers[1].server_port}"

    def tearDown(self) -> None:
        for server, thread in zip(self.servers, self.threads):
            server.shutdown()
            server.server_close()
            thread.join(timeout=5)

    """
        HTTP_PROXY / http_proxy in the environment never see the request or the association key.
    """
    def test_environment_proxy_is_ignored(self):

        environment = {"HTTP_PROXY": self.proxy_url, "http_proxy": self.proxy_url, "NO_PROXY": "", "no_proxy": ""}

        with mock.patch.dict(os.environ, environment):
            status, body = HTTPTransport(self.plugin_port).send(b'{"RequestType":"associate","Key":"SECRET"}')

        self.assertEqual([], self.proxied)
        self.assertEqual(200, status)
        self.assertNotEqual(b"proxied", body)
        self.assertIn(b'"Success":"false"', body)


if __name__ == "__main__":
    unittest.main()
