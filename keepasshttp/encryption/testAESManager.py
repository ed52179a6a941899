#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testAESManager.py

    Description:
        Test suite for AESManager (AES-CBC / PKCS#7). Verifies the fixed
        KeePassHttp verifier vector, encrypt / decrypt round trips for every
        key size, key and nonce generation, and the EncryptionError branches
        for bad keys, IVs, Base64, padding and ciphertext lengths.
"""

import base64
import os
import unittest

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.error_handler import EncryptionError, ApplicationCodes


class TestAESManager(unittest.TestCase):

    KEY = "QTdjaFJFUnE4b0dJazJtWA=="
    IV = "QVFJREJBVUdCd2dKQ2dzTQ=="
    VERIFIER = "rn/cRWFibbGI+JmKaGgvPRGCEZrN/ixmvD4oCAnBRec="

    """
        Prepare a fresh key and nonce for each test.
    """
    def setUp(self) -> None:

        self.key = AESManager.generate_key()
        self.nonce = AESManager.generate_nonce()

    """
        The verifier of the known key / IV pair matches the value KeePassHttp expects.
    """
    def test_fixed_verifier_vector(self):

        self.assertEqual(self.VERIFIER, AESManager.encrypt_to_b64(self.IV, self.IV, self.KEY))
        self.assertEqual(self.VERIFIER, AESManager.make_verifier(self.IV, self.KEY))
        self.assertEqual(self.IV, AESManager.decrypt_from_b64(self.VERIFIER, self.IV, self.KEY))

    """
        check_verifier accepts the right verifier and rejects everything else.
    """
    def test_check_verifier(self):

        self.assertTrue(AESManager.check_verifier(self.VERIFIER, self.IV, self.KEY))
        self.assertFalse(AESManager.check_verifier(self.VERIFIER, self.IV, self.key))
        self.assertFalse(AESManager.check_verifier(self.VERIFIER, self.nonce, self.KEY))
        self.assertFalse(AESManager.check_verifier("not base64!", self.IV, self.KEY))

    """
        generate_key() and generate_nonce() return distinct Base64 text of 16 bytes.
    """
    def test_generate_key_and_nonce_properties(self):

        for generate in (AESManager.generate_key, AESManager.generate_nonce):
            first = generate()
            second = generate()

            self.assertIsInstance(first, str)
            self.assertEqual(16, len(base64.b64decode(first)))
            self.assertNotEqual(first, second)

    """
        Many nonces in a row never repeat.
    """
    def test_nonces_are_fresh(self):

        nonces = {AESManager.generate_nonce() for _ in range(200)}

        self.assertEqual(200, len(nonces))

    """
        decrypt(encrypt(p)) == p for ASCII, empty, multi-block and non-ASCII text.
    """
    def test_encrypt_decrypt_round_trip(self):

        for plaintext in ("", "https://example.org/login", "x" * 16, "x" * 100, "pässwörd ✓ 密码"):
            with self.subTest(plaintext=plaintext):
                ciphertext = AESManager.encrypt(plaintext, self.nonce, self.key)

                self.assertIsInstance(ciphertext, bytes)
                self.assertEqual(0, len(ciphertext) % 16)
                self.assertGreater(len(ciphertext), len(plaintext.encode("utf-8")))
                self.assertEqual(plaintext, AESManager.decrypt(ciphertext, self.nonce, self.key))

    """
        16, 24 and 32 byte keys are all accepted.
    """
    def test_all_key_sizes(self):

        for size in (16, 24, 32):
            with self.subTest(size=size):
                key = base64.b64encode(os.urandom(size)).decode("ascii")
                ciphertext_b64 = AESManager.encrypt_to_b64("secret", self.nonce, key)
                self.assertEqual("secret", AESManager.decrypt_from_b64(ciphertext_b64, self.nonce, key))

    """
        Keys of any other length raise INVALID_AES_KEY.
    """
    def test_invalid_key_length(self):

        for size in (0, 8, 15, 17, 31, 33, 64):
            with self.subTest(size=size):
                key = base64.b64encode(os.urandom(size)).decode("ascii")
                with self.assertRaises(EncryptionError) as cm:
                    AESManager.encrypt("secret", self.nonce, key)
                self.assertEqual(ApplicationCodes.INVALID_AES_KEY, cm.exception.application_code)

    """
        IVs that do not decode to 16 bytes raise INVALID_NONCE.
    """
    def test_invalid_iv_length(self):

        for size in (0, 8, 12, 15, 17, 32):
            with self.subTest(size=size):
                iv = base64.b64encode(os.urandom(size)).decode("ascii")
                with self.assertRaises(EncryptionError) as cm:
                    AESManager.encrypt("secret", iv, self.key)
                self.assertEqual(ApplicationCodes.INVALID_NONCE, cm.exception.application_code)

    """
        Malformed Base64 in the key, IV or ciphertext raises INVALID_BASE64.
    """
    def test_invalid_base64(self):

        with self.assertRaises(EncryptionError) as cm:
            AESManager.encrypt("secret", self.nonce, "***not-base64***")
        self.assertEqual(ApplicationCodes.INVALID_BASE64, cm.exception.application_code)

        with self.assertRaises(EncryptionError) as cm:
            AESManager.decrypt(b"0" * 16, "@@@@", self.key)
        self.assertEqual(ApplicationCodes.INVALID_BASE64, cm.exception.application_code)

        with self.assertRaises(EncryptionError) as cm:
            AESManager.decrypt_from_b64("%%%%", self.nonce, self.key)
        self.assertEqual(ApplicationCodes.INVALID_BASE64, cm.exception.application_code)

    """
        Empty or partial-block ciphertext raises INVALID_CIPHERTEXT.
    """
    def test_invalid_ciphertext_length(self):

        ciphertext = AESManager.encrypt("some longer plaintext value", self.nonce, self.key)

        for bad in (b"", ciphertext[:-1], ciphertext[:15], ciphertext + b"\x00"):
            with self.subTest(length=len(bad)):
                with self.assertRaises(EncryptionError) as cm:
                    AESManager.decrypt(bad, self.nonce, self.key)
                self.assertEqual(ApplicationCodes.INVALID_CIPHERTEXT, cm.exception.application_code)

    """
        Non-bytes ciphertext raises INVALID_TYPE.
    """
    def test_invalid_ciphertext_type(self):

        with self.assertRaises(EncryptionError) as cm:
            AESManager.decrypt("not-bytes", self.nonce, self.key)  # type: ignore[arg-type]
        self.assertEqual(ApplicationCodes.INVALID_TYPE, cm.exception.application_code)

    """
        Decrypting with the wrong key never silently returns the plaintext.
    """
    def test_decrypt_with_wrong_key(self):

        ciphertext = AESManager.encrypt("top-secret-password", self.nonce, self.key)
        other_key = AESManager.generate_key()

        try:
            result = AESManager.decrypt(ciphertext, self.nonce, other_key)
        except EncryptionError as e:
            self.assertIn(e.application_code, (ApplicationCodes.DECRYPTION_FAILURE, ApplicationCodes.INVALID_UTF8))
        else:
            self.assertNotEqual("top-secret-password", result)

    """
        A block whose final byte is not valid PKCS#7 padding raises DECRYPTION_FAILURE.
    """
    def test_bad_padding(self):

        # Last plaintext byte 0x00 is never valid PKCS#7 padding
        raw = b"A" * 15 + b"\x00"
        key = base64.b64decode(self.key)
        iv = base64.b64decode(self.nonce)

        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(raw) + encryptor.finalize()

        with self.assertRaises(EncryptionError) as cm:
            AESManager.decrypt(ciphertext, self.nonce, self.key)
        self.assertEqual(ApplicationCodes.DECRYPTION_FAILURE, cm.exception.application_code)

    """
        Plaintext must be text.
    """
    def test_encrypt_rejects_non_text(self):

        with self.assertRaises(EncryptionError):
            AESManager.encrypt(b"bytes", self.nonce, self.key)  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
