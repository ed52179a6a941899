#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: sanitization_validation.py

    Description:
        Provides the encoding, decoding and field-validation helpers shared by
        the KeePassHttp cryptographic and protocol layers: standard Base64
        conversions (the plugin uses padded, non-URL-safe Base64), UTF-8
        helpers, and strict checks for strings, allowed values and required
        response fields.

        Every helper raises the KeePassHttpError subclass that matches the
        layer calling it, so callers never see raw binascii or codec errors.
"""

import base64
import binascii
import typing

from keepasshttp.handlers.error_handler import KeePassHttpError, EncryptionError, CommunicationError, ApplicationCodes


####################################################################################################
#                                   Base64 Encoding / Decoding
####################################################################################################

"""
    Convert a standard Base64 string into raw bytes.

    @param field_name (str): Logical field name for context in error messages.
    @param b64_text (Any): Base64-encoded string to decode.
    @require b64_text is a string
    @return bytes: Decoded byte sequence.
    @ensures Invalid Base64 input raises EncryptionError.
"""
def decode_base64_to_bytes(field_name: str, b64_text: typing.Any) -> bytes:
    try:
        if not isinstance(b64_text, str):
            raise EncryptionError(ApplicationCodes.INVALID_TYPE, f"{field_name} must be a Base64 string", field_name)

        return base64.b64decode(b64_text, validate=True)

    except KeePassHttpError:
        raise
    except (binascii.Error, ValueError):
        raise EncryptionError(ApplicationCodes.INVALID_BASE64, f"Invalid base64 for {field_name}", field_name)



"""
    Convert raw bytes into a standard padded Base64 string.

    @param raw (bytes): Bytes to encode.
    @return str: Base64-encoded ASCII string.
"""
def encode_bytes_to_base64(raw: bytes) -> str:
    if not isinstance(raw, (bytes, bytearray)):
        raise EncryptionError(ApplicationCodes.INVALID_TYPE, "base64 encode expects bytes", "raw")

    return base64.b64encode(bytes(raw)).decode("ascii")



####################################################################################################
#                                   UTF-8 Conversions
####################################################################################################

"""
    Convert raw bytes into a UTF-8 decoded string.

    @param raw_bytes (bytes): UTF-8 encoded bytes.
    @param field_name (str): Logical field name for context in error messages.
    @return str: UTF-8 decoded text.
    @ensures Raises EncryptionError on invalid UTF-8 sequences.
"""
def decode_bytes_to_utf8_text(raw_bytes: bytes, field_name: str = "raw_bytes") -> str:
    try:
        if not isinstance(raw_bytes, (bytes, bytearray)):
            raise EncryptionError(ApplicationCodes.INVALID_TYPE, "Input must be bytes for UTF-8 decode", field_name)

        return bytes(raw_bytes).decode("utf-8")

    except KeePassHttpError:
        raise
    except UnicodeDecodeError:
        raise EncryptionError(ApplicationCodes.INVALID_UTF8, "Invalid UTF-8 byte sequence", field_name)



"""
    Convert text into UTF-8 bytes.

    @param text (str): Input string.
    @param field_name (str): Logical field name for context in error messages.
    @return bytes: UTF-8 encoded byte sequence.
"""
def encode_utf8_text_to_bytes(text: str, field_name: str = "text") -> bytes:
    try:
        if not isinstance(text, str):
            raise EncryptionError(ApplicationCodes.INVALID_TYPE, "Input must be string", field_name)

        return text.encode("utf-8")

    except KeePassHttpError:
        raise
    except UnicodeEncodeError:
        raise EncryptionError(ApplicationCodes.INVALID_UTF8, "Text cannot be encoded as UTF-8", field_name)



####################################################################################################
#                                   Field Validation
####################################################################################################

"""
    Function: Validate that a value is a string.

    @param: Any - value to be validated
    @param: type - error_class to raise if validation fails
    @param: ApplicationCodes - application-level error type to raise if validation fails
    @param: str - field_name identifying the failing field
    @ensures: raises error_class if value is not a string
"""
def validate_string(value: typing.Any, error_class: typing.Type[KeePassHttpError], application_code: str, field_name: str) -> None:
    if not isinstance(value, str):
        raise error_class(application_code, f"{field_name} must be a string.", field_name)



"""
    Function: Validate that a value belongs to an allowed set.

    @ensures: raises error_class if value is not in allowed_set
"""
def validate_in_set(value: str, allowed_set: typing.AbstractSet[typing.Any], error_class: typing.Type[KeePassHttpError], application_code: str, field_name: str) -> None:
    if value not in allowed_set:
        raise error_class(application_code, f"Invalid {field_name}: '{value}'.", field_name)



"""
    Ensure all required fields are present in a response payload.

    @param payload (Mapping): Decoded response object.
    @param required_fields (set[str]): Required field names.
    @param field_context (str): Name of the payload being validated.
    @ensures All required fields exist or raises CommunicationError.
"""
def validate_required_fields(payload: typing.Mapping[str, typing.Any], required_fields: typing.AbstractSet[str], field_context: str) -> None:

    missing = set(required_fields) - set(payload.keys())
    if missing:
        raise CommunicationError(ApplicationCodes.MISSING_FIELDS, f"Missing required fields: {', '.join(sorted(missing))}", field_context)
