#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: error_handler.py

    Description:
        Centralized error handling for all KeePassHttp client components.
        Defines the exception taxonomy (codec, encryption, communication,
        association and caller-input failures), the application code strings
        carried by every exception, and the ErrorHandler used at the connector
        boundary to log failures to the audit log and normalize anything that
        escapes a protocol call into a terminal CommunicationError.
"""


from dataclasses import dataclass
from typing import Optional
from keepasshttp.utilities.audit_log import AuditLog



"""
    Container Class for client error code strings.
"""
@dataclass
class ApplicationCodes:

    MALFORMED_JSON           = "malformed_json"
    UNSUPPORTED_VALUE        = "unsupported_value"
    INVALID_TYPE             = "invalid_type"
    INVALID_BASE64           = "invalid_base64"
    INVALID_UTF8             = "invalid_utf8"
    INVALID_AES_KEY          = "invalid_aes_key"
    INVALID_NONCE            = "invalid_nonce"
    INVALID_CIPHERTEXT       = "invalid_ciphertext"
    ENCRYPTION_FAILURE       = "encryption_failure"
    DECRYPTION_FAILURE       = "decryption_failure"
    INVALID_REQUEST_TYPE     = "invalid_request_type"
    MISSING_FIELDS           = "missing_fields"
    HTTP_STATUS              = "http_status"
    TIMEOUT                  = "timeout"
    IO_FAILURE               = "io_failure"
    INVALID_RESPONSE         = "invalid_response"
    REQUEST_DECLINED         = "request_declined"
    NOT_ASSOCIATED           = "not_associated"
    ASSOCIATION_DECLINED     = "association_declined"
    MISSING_PARAMETER        = "missing_parameter"
    NOT_FOUND                = "not_found"
    AMBIGUOUS_MATCH          = "ambiguous_match"
    CREDENTIAL_STORE_ERROR   = "credential_store_error"
    INTERNAL_ERROR           = "internal_error"






class KeePassHttpError(Exception):

    """
        Initialize a KeePassHttpError containing application code, detail message, and field context.

        @param application_code (str): Identifier from ApplicationCodes signaling the failure type.
        @param detail (str): Descriptive message for the caller.
        @param field (str): Logical field related to the error (optional).
        @require isinstance(application_code, str)
        @require isinstance(detail, str)
        @ensures Error metadata is accessible to the ErrorHandler and to callers.
    """
    def __init__(self, application_code: str, detail: str, field: str = "") -> None:
        self.application_code = application_code
        self.detail = detail
        self.field = field
        super().__init__(f"{application_code}: {detail}")


# Malformed JSON text (wrong leading/trailing delimiter, unterminated structure)
class JSONSyntaxError(KeePassHttpError):
    pass


# Value outside {String, Object, Array}
class UnsupportedValueError(KeePassHttpError):
    pass


# Cipher-level failure: key or IV size, padding, base64, UTF-8, provider
class EncryptionError(KeePassHttpError):
    pass


class CommunicationError(KeePassHttpError):

    """
        Terminal failure of the current call: non-200 status, IO failure,
        timeout, or a response missing a usable Success field.

        @param http_code (int|None): HTTP status returned by the plugin, when one was received.
    """
    def __init__(self, application_code: str, detail: str, field: str = "", http_code: Optional[int] = None) -> None:
        self.http_code = http_code
        super().__init__(application_code, detail, field)


# The plugin answered Success != "true" to associate / test-associate
class NotAssociatedError(CommunicationError):
    pass


class MissingParameterError(KeePassHttpError):
    pass


class NotFoundError(KeePassHttpError):
    pass


class AmbiguousMatchError(KeePassHttpError):
    pass


class CredentialStoreError(KeePassHttpError):
    pass






class ErrorHandler:

    """
        Initialize the ErrorHandler and attach an AuditLog for diagnostic event recording.

        @param audit_log (AuditLog|None): Shared audit log; a default one is created when omitted.
        @ensures ErrorHandler is ready to log and normalize errors.
    """
    def __init__(self, audit_log: Optional[AuditLog] = None) -> None:

        self.audit_log = audit_log or AuditLog()


    """
        Log an exception raised during a connector call and return the error the caller should see.

        @param e (Exception): Exception raised while running a protocol operation.
        @param context (str): Logical context string identifying the failing operation.
        @return KeePassHttpError: The original error, or a CommunicationError wrapping it.
        @ensures Codec and cipher faults surface uniformly as communication failures.
    """
    def handle_client_error(self, e: Exception, context: str = "") -> KeePassHttpError:

        if isinstance(e, (EncryptionError, JSONSyntaxError, UnsupportedValueError)):
            normalized: KeePassHttpError = CommunicationError(e.application_code, f"Communication with KeePass failed: {e.detail}", e.field)

        elif isinstance(e, KeePassHttpError):
            normalized = e

        else:
            normalized = CommunicationError(ApplicationCodes.INTERNAL_ERROR, "Communication with KeePass failed", "")

        # Always log the raw exception detail for operators
        self.audit_log.event(event="client_error", context=context, error_type=type(e).__name__,
                             application_code=normalized.application_code, detail=str(e))

        return normalized
