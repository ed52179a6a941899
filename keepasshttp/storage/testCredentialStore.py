#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testCredentialStore.py

    Description:
        Test suite for the credential stores. Covers saving and reloading
        {Id, Key} through the JSON file, the 0600 file mode, treating missing
        or corrupt files as absent (with an audit record), overwriting
        existing files, and the non-persisting memory store.
"""

import json
import os
import stat
import tempfile
import unittest

from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.error_handler import CredentialStoreError, ApplicationCodes
from keepasshttp.storage.credential_store import Credentials, CredentialStore, FileCredentialStore, MemoryCredentialStore
from keepasshttp.utilities.audit_log import AuditLog


class TestFileCredentialStore(unittest.TestCase):

    """
        Point the store and the audit log at a temporary directory.
    """
    def setUp(self) -> None:

        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "keepasshttpclient.json")
        self.audit_path = os.path.join(self.tmp.name, "audit.log")
        self.audit_log = AuditLog(self.audit_path)
        self.store = FileCredentialStore(self.path, self.audit_log)
        self.key = AESManager.generate_key()

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _audit_events(self):
        if not os.path.exists(self.audit_path):
            return []
        with open(self.audit_path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    """
        A missing file loads as None without logging a failure.
    """
    def test_load_missing_file(self):

        self.assertIsNone(self.store.load())
        self.assertEqual([], self._audit_events())

    """
        save() then load() returns the same pair, stored as a single JSON object.
    """
    def test_save_and_load(self):

        self.store.save("client-1", self.key)

        self.assertEqual(("client-1", self.key), self.store.load())

        with open(self.path, "r", encoding="utf-8") as f:
            self.assertEqual({"Id": "client-1", "Key": self.key}, json.load(f))

    """
        The credentials file is readable and writable by its owner only.
    """
    @unittest.skipIf(os.name == "nt", "POSIX permissions only")
    def test_save_restricts_permissions(self):

        self.store.save("client-1", self.key)

        mode = stat.S_IMODE(os.stat(self.path).st_mode)
        self.assertEqual(0o600, mode)

    """
        An existing, wider-permission file is overwritten and tightened.
    """
    @unittest.skipIf(os.name == "nt", "POSIX permissions only")
    def test_save_overwrites_existing_file(self):

        with open(self.path, "w", encoding="utf-8") as f:
            f.write('{"Id":"old-client","Key":"' + AESManager.generate_key() + '","Extra":"value-that-is-long"}')
        os.chmod(self.path, 0o644)

        self.store.save("client-2", self.key)

        self.assertEqual(("client-2", self.key), self.store.load())
        self.assertEqual(0o600, stat.S_IMODE(os.stat(self.path).st_mode))

    """
        Parent directories are created on save.
    """
    def test_save_creates_directories(self):

        nested = FileCredentialStore(os.path.join(self.tmp.name, "a", "b", "creds.json"), self.audit_log)

        nested.save("client-1", self.key)

        self.assertEqual(("client-1", self.key), nested.load())

    """
        Corrupt, non UTF-8, incomplete or invalid-key files are logged and treated as absent.
    """
    def test_load_corrupt_files(self):

        bad_documents = (
            b"not json at all",
            b'{"Id":"client-1"',
            b'["client-1"]',
            b'{"Id":"client-1"}',
            b'{"Key":"' + self.key.encode("ascii") + b'"}',
            b'{"Id":"","Key":"' + self.key.encode("ascii") + b'"}',
            b'{"Id":"client-1","Key":"c2hvcnQ="}',
            b'{"Id":"client-1","Key":"***"}',
            b'{"Id":"\xff\xfe","Key":"x"}',
            '{"Id":"client-1","Key":"'.encode("utf-16") + self.key.encode("utf-16-le") + '"}'.encode("utf-16-le"),
        )

        for document in bad_documents:
            with self.subTest(document=document):
                with open(self.path, "wb") as f:
                    f.write(document)

                self.assertIsNone(self.store.load())

        events = self._audit_events()
        self.assertEqual(len(bad_documents), len(events))
        for event in events:
            self.assertEqual("credentials_load_failed", event["event"])
            self.assertEqual(self.path, event["path"])

    """
        Saving into an unwritable location raises CredentialStoreError.
    """
    def test_save_failure(self):

        # A directory cannot be opened as the credentials file
        store = FileCredentialStore(self.tmp.name, self.audit_log)

        with self.assertRaises(CredentialStoreError) as cm:
            store.save("client-1", self.key)
        self.assertEqual(ApplicationCodes.CREDENTIAL_STORE_ERROR, cm.exception.application_code)

    """
        The environment variable selects the default path.
    """
    def test_default_path_from_environment(self):

        previous = os.environ.get("KEEPASSHTTP_CREDENTIALS_FILE")
        os.environ["KEEPASSHTTP_CREDENTIALS_FILE"] = self.path
        try:
            self.assertEqual(self.path, FileCredentialStore(audit_log=self.audit_log).path)
        finally:
            if previous is None:
                del os.environ["KEEPASSHTTP_CREDENTIALS_FILE"]
            else:
                os.environ["KEEPASSHTTP_CREDENTIALS_FILE"] = previous



class TestMemoryCredentialStore(unittest.TestCase):

    """
        An empty memory store loads as None and has no path.
    """
    def test_empty_store(self):

        store = MemoryCredentialStore()

        self.assertIsNone(store.load())
        self.assertIsNone(store.path)

    """
        Supplied credentials load back; save replaces them in memory only.
    """
    def test_supplied_credentials(self):

        key = AESManager.generate_key()
        store = MemoryCredentialStore("client-9", key)

        self.assertEqual(("client-9", key), store.load())

        store.save("client-10", key)
        self.assertEqual(("client-10", key), store.load())



class TestCredentials(unittest.TestCase):

    """
        complete requires both id and key; repr never shows the key.
    """
    def test_complete_and_repr(self):

        key = AESManager.generate_key()

        self.assertFalse(Credentials().complete)
        self.assertFalse(Credentials(id="client-1").complete)
        self.assertFalse(Credentials(key=key).complete)
        self.assertTrue(Credentials(id="client-1", key=key).complete)

        self.assertNotIn(key, repr(Credentials(id="client-1", key=key)))

    """
        A store that does not implement load() and save() cannot be instantiated.
    """
    def test_store_requires_load_and_save(self):

        class LoadOnly(CredentialStore):
            def load(self):
                return None

        for store_class in (CredentialStore, LoadOnly):
            with self.subTest(store_class=store_class.__name__):
                with self.assertRaises(TypeError):
                    store_class()


if __name__ == "__main__":
    unittest.main()
