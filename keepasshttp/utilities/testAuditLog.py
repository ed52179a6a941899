#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testAuditLog.py

    Description:
        Test suite for AuditLog. Covers the record shape, bound context,
        redaction of key material and urls, directory creation and the
        environment default path.
"""

import json
import os
import tempfile
import unittest
from unittest import mock

from keepasshttp.utilities.audit_log import AuditLog


class TestAuditLog(unittest.TestCase):

    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "logs", "audit.log")

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _records(self):
        with open(self.path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    """
        Every record carries a UTC timestamp, the client source tag and the pid; missing directories are created.
    """
    def test_record_shape(self):

        AuditLog(self.path).event(event="associated", client_id="client-1")

        record, = self._records()
        self.assertTrue(record["timestamp"].endswith("Z"))
        self.assertEqual("keepasshttp-client", record["source"])
        self.assertEqual(os.getpid(), record["pid"])
        self.assertEqual("associated", record["event"])
        self.assertEqual("client-1", record["client_id"])

    """
        bind() adds context to later records without changing the parent log.
    """
    def test_bind(self):

        parent = AuditLog(self.path)
        child = parent.bind(port=19455)

        child.event(event="get_logins", count=2)
        parent.event(event="client_error")

        first, second = self._records()
        self.assertEqual(19455, first["port"])
        self.assertEqual(2, first["count"])
        self.assertNotIn("port", second)
        self.assertEqual({}, parent.context)
        self.assertEqual(self.path, child.path)

    """
        Key material and urls are never written, whatever their case.
    """
    def test_redaction(self):

        AuditLog(self.path).event(event="debug", Key="c2VjcmV0", password="hunter2", Nonce="abc", url="https://github.com",
                                  SubmitUrl="https://github.com/login", client_id="client-1", verifier=None)

        record, = self._records()
        for name in ("Key", "password", "Nonce", "url", "SubmitUrl"):
            with self.subTest(name=name):
                self.assertEqual("<redacted>", record[name])
        self.assertEqual("client-1", record["client_id"])
        self.assertIsNone(record["verifier"])

        with open(self.path, "r", encoding="utf-8") as f:
            text = f.read()
        self.assertNotIn("hunter2", text)
        self.assertNotIn("github.com", text)

    """
        A write failure is reported on stderr and never raised.
    """
    def test_write_failure(self):

        # The log path is an existing directory
        log = AuditLog(self.tmp.name)

        with mock.patch("sys.stderr") as stderr:
            log.event(event="associated")

        self.assertTrue(stderr.write.called)

    """
        The environment variable selects the default path.
    """
    def test_default_path_from_environment(self):

        with mock.patch.dict(os.environ, {"KEEPASSHTTP_AUDIT_LOG": self.path}):
            self.assertEqual(self.path, AuditLog().path)


if __name__ == "__main__":
    unittest.main()
