#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: AES_manager.py

    Description:
        Implements the AES-CBC / PKCS#7 primitive used by the KeePassHttp
        protocol. Keys and IVs travel as standard Base64 text; every method is
        a stateless static method over explicit plaintext, IV and key
        arguments. Also provides key and nonce generation and the verifier
        (the nonce encrypted with itself as IV) that proves key possession.
        Any misuse or cipher fault raises EncryptionError.
"""


import os
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from keepasshttp.handlers.error_handler import KeePassHttpError, EncryptionError, ApplicationCodes
import keepasshttp.handlers.sanitization_validation as VALIDATION
import keepasshttp.constants as CONSTANTS



class AESManager:

    """
        Decode and validate a Base64 AES key.

        @param key_b64 (str): Base64 text of a 16, 24 or 32 byte key.
        @return bytes: Raw key bytes.
        @ensures Any other length raises EncryptionError(INVALID_AES_KEY).
    """
    @staticmethod
    def validate_key(key_b64: str) -> bytes:

        key = VALIDATION.decode_base64_to_bytes("key", key_b64)

        if len(key) not in CONSTANTS._AES_KEY_LENGTHS:
            raise EncryptionError(ApplicationCodes.INVALID_AES_KEY, "AES key must be 16, 24 or 32 bytes", "key")

        return key


    """
        Decode and validate a Base64 IV.

        @param iv_b64 (str): Base64 text of a 16 byte IV.
        @return bytes: Raw IV bytes.
    """
    @staticmethod
    def validate_iv(iv_b64: str) -> bytes:

        iv = VALIDATION.decode_base64_to_bytes("iv", iv_b64)

        if len(iv) != CONSTANTS._NONCE_LEN_BYTES:
            raise EncryptionError(ApplicationCodes.INVALID_NONCE, "IV must be 16 bytes", "iv")

        return iv


    """
        Generate a fresh association key.

        @return str: Base64 text of 16 random bytes from os.urandom.
    """
    @staticmethod
    def generate_key() -> str:

        return VALIDATION.encode_bytes_to_base64(os.urandom(CONSTANTS._GENERATED_KEY_LEN_BYTES))


    """
        Generate a fresh nonce. Call immediately before use; never cache the result.

        @return str: Base64 text of 16 random bytes from os.urandom.
    """
    @staticmethod
    def generate_nonce() -> str:

        return VALIDATION.encode_bytes_to_base64(os.urandom(CONSTANTS._NONCE_LEN_BYTES))



    """
        Encrypt text with AES-CBC and PKCS#7 padding.

        @param plaintext (str): Text to encrypt, UTF-8 encoded before padding.
        @param iv_b64 (str): Base64 16-byte IV.
        @param key_b64 (str): Base64 AES key.

        @return bytes: Ciphertext, a whole number of 16-byte blocks.

        @ensures decrypt(encrypt(p, iv, key), iv, key) == p
    """
    @staticmethod
    def encrypt(plaintext: str, iv_b64: str, key_b64: str) -> bytes:

        try:
            key = AESManager.validate_key(key_b64)
            iv = AESManager.validate_iv(iv_b64)
            data = VALIDATION.encode_utf8_text_to_bytes(plaintext, "plaintext")

            # Pad to the AES block size
            padder = padding.PKCS7(CONSTANTS._AES_BLOCK_SIZE_BITS).padder()
            padded = padder.update(data) + padder.finalize()

            encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
            return encryptor.update(padded) + encryptor.finalize()

        except KeePassHttpError:
            raise
        except Exception:
            raise EncryptionError(ApplicationCodes.ENCRYPTION_FAILURE, "AES-CBC encryption failed", "plaintext")


    """
        Decrypt AES-CBC ciphertext and strip PKCS#7 padding.

        @param ciphertext (bytes): Ciphertext produced with the same IV and key.
        @param iv_b64 (str): Base64 16-byte IV.
        @param key_b64 (str): Base64 AES key.

        @return str: UTF-8 decoded plaintext.

        @ensures Wrong key, IV, truncated ciphertext or bad padding raise EncryptionError.
    """
    @staticmethod
    def decrypt(ciphertext: bytes, iv_b64: str, key_b64: str) -> str:

        try:
            key = AESManager.validate_key(key_b64)
            iv = AESManager.validate_iv(iv_b64)

            if not isinstance(ciphertext, (bytes, bytearray)):
                raise EncryptionError(ApplicationCodes.INVALID_TYPE, "Ciphertext must be bytes", "ciphertext")

            if len(ciphertext) == 0 or len(ciphertext) % (CONSTANTS._AES_BLOCK_SIZE_BITS // 8) != 0:
                raise EncryptionError(ApplicationCodes.INVALID_CIPHERTEXT, "Ciphertext must be a non-empty multiple of 16 bytes", "ciphertext")

            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(bytes(ciphertext)) + decryptor.finalize()

            unpadder = padding.PKCS7(CONSTANTS._AES_BLOCK_SIZE_BITS).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()

            return VALIDATION.decode_bytes_to_utf8_text(data, "plaintext")

        except KeePassHttpError:
            raise
        except Exception:
            raise EncryptionError(ApplicationCodes.DECRYPTION_FAILURE, "AES-CBC decryption failed", "ciphertext")


    @staticmethod
    def encrypt_to_b64(plaintext: str, iv_b64: str, key_b64: str) -> str:
        return VALIDATION.encode_bytes_to_base64(AESManager.encrypt(plaintext, iv_b64, key_b64))


    @staticmethod
    def decrypt_from_b64(ciphertext_b64: str, iv_b64: str, key_b64: str, field_name: str = "ciphertext") -> str:
        return AESManager.decrypt(VALIDATION.decode_base64_to_bytes(field_name, ciphertext_b64), iv_b64, key_b64)


    """
        Build the verifier for a request: the nonce text encrypted with the nonce as IV.

        @param nonce_b64 (str): Freshly generated Base64 nonce.
        @param key_b64 (str): Shared Base64 AES key.
        @return str: Base64 ciphertext.
    """
    @staticmethod
    def make_verifier(nonce_b64: str, key_b64: str) -> str:

        return AESManager.encrypt_to_b64(nonce_b64, nonce_b64, key_b64)


    """
        Check a verifier against its nonce and key.

        @return bool: True when the verifier decrypts to the nonce text.
    """
    @staticmethod
    def check_verifier(verifier_b64: str, nonce_b64: str, key_b64: str) -> bool:

        try:
            return AESManager.decrypt_from_b64(verifier_b64, nonce_b64, key_b64, "verifier") == nonce_b64
        except EncryptionError:
            return False
