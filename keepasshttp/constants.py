#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: constants.py

    Description:
        Centralized protocol constants for the KeePassHttp client. Defines the
        loopback endpoint, the fixed request timeout, AES key and nonce sizes,
        the request types understood by the KeePassHttp plugin, the field names
        used on the wire, and the default locations of the persisted
        credentials file and the audit log.
"""

import os
from typing import Dict, FrozenSet, Set


# Host the KeePassHttp plugin listens on (loopback only)
_DEFAULT_HOST = "localhost"

# Default port of the KeePassHttp plugin
_DEFAULT_PORT = 19455

# Connect / response timeout for every request, in seconds
_REQUEST_TIMEOUT_SECONDS = 10

# Content type sent with every request body
_CONTENT_TYPE = "application/json; charset=utf-8"

# Expected HTTP status of a processed request
_HTTP_OK = 200


################################################################################################
# AES sizes
################################################################################################

# Nonce / IV length in bytes for AES-CBC
_NONCE_LEN_BYTES = 16

# Length of a freshly generated association key
_GENERATED_KEY_LEN_BYTES = 16

# Accepted AES key lengths (AES-128, AES-192, AES-256)
_AES_KEY_LENGTHS: FrozenSet[int] = frozenset({16, 24, 32})

# AES block size in bits (used for PKCS#7 padding)
_AES_BLOCK_SIZE_BITS = 128


################################################################################################
# Request types and wire fields
################################################################################################

_REQUEST_ASSOCIATE = "associate"
_REQUEST_TEST_ASSOCIATE = "test-associate"
_REQUEST_GET_LOGINS = "get-logins"

_ALLOWED_REQUEST_TYPES: Set[str] = {_REQUEST_ASSOCIATE, _REQUEST_TEST_ASSOCIATE, _REQUEST_GET_LOGINS}

_FIELD_REQUEST_TYPE = "RequestType"
_FIELD_SUCCESS = "Success"
_FIELD_ID = "Id"
_FIELD_KEY = "Key"
_FIELD_NONCE = "Nonce"
_FIELD_VERIFIER = "Verifier"
_FIELD_URL = "Url"
_FIELD_SUBMIT_URL = "SubmitUrl"
_FIELD_ENTRIES = "Entries"
_FIELD_NAME = "Name"
_FIELD_LOGIN = "Login"
_FIELD_PASSWORD = "Password"

# Literal the plugin sends for a successful request
_SUCCESS_TRUE = "true"

# Fields each request type must carry besides RequestType
_REQUEST_FIELDS: Dict[str, Set[str]] = {
    _REQUEST_ASSOCIATE: {_FIELD_KEY, _FIELD_NONCE, _FIELD_VERIFIER},
    _REQUEST_TEST_ASSOCIATE: {_FIELD_ID, _FIELD_NONCE, _FIELD_VERIFIER},
    _REQUEST_GET_LOGINS: {_FIELD_ID, _FIELD_NONCE, _FIELD_VERIFIER, _FIELD_URL, _FIELD_SUBMIT_URL},
}

# Encrypted fields of a single login entry
_ENTRY_FIELDS = (_FIELD_NAME, _FIELD_LOGIN, _FIELD_PASSWORD)


################################################################################################
# Local files
################################################################################################

# File name of the persisted {Id, Key} pair inside the user's home directory
_CREDENTIALS_FILE_NAME = "keepasshttpclient.json"

# Environment override for the credentials file
_CREDENTIALS_FILE_ENV = "KEEPASSHTTP_CREDENTIALS_FILE"

# Environment override for the audit log
_AUDIT_LOG_ENV = "KEEPASSHTTP_AUDIT_LOG"

# Default audit log location
_AUDIT_LOG_DEFAULT_PATH = os.path.join(os.path.expanduser("~"), ".keepasshttpclient", "audit.log")

# Source tag written on every audit record
_AUDIT_SOURCE = "keepasshttp-client"

# Audit fields whose values are replaced before writing (compared lower-case)
_AUDIT_REDACTED_FIELDS = frozenset({"key", "password", "verifier", "nonce", "url", "submiturl", "submit_url"})

# Replacement for redacted audit values
_AUDIT_REDACTED = "<redacted>"

# Permissions for files holding key material
_CREDENTIALS_FILE_MODE = 0o600


def default_credentials_path() -> str:
    return os.environ.get(_CREDENTIALS_FILE_ENV) or os.path.join(os.path.expanduser("~"), _CREDENTIALS_FILE_NAME)


def default_audit_log_path() -> str:
    return os.environ.get(_AUDIT_LOG_ENV) or _AUDIT_LOG_DEFAULT_PATH
