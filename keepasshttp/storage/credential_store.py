#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: credential_store.py

    Description:
        Persistence of the association credentials ({Id, Key}) issued by the
        KeePassHttp plugin. The connector loads them once at construction and
        saves them only after a successful association. The file store writes
        a single JSON object with the project's own codec and restricts the
        file to the current user; the memory store is used when credentials
        are supplied directly and must never be persisted.
"""


import abc
import os
import typing
from dataclasses import dataclass
from keepasshttp.codec import json_parser
from keepasshttp.codec.value import JSONObject, JSONString
from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.error_handler import KeePassHttpError, CredentialStoreError, ApplicationCodes
from keepasshttp.utilities.audit_log import AuditLog
import keepasshttp.handlers.sanitization_validation as VALIDATION
import keepasshttp.constants as CONSTANTS



"""
    Association credentials owned by one connector.

    id           : Server-assigned client identifier (opaque)
    key          : Base64 AES key (16, 24 or 32 bytes once decoded)
    persist_file : Path the credentials are persisted to, None when not persisted
"""
@dataclass
class Credentials:

    id: typing.Optional[str] = None
    key: typing.Optional[str] = None
    persist_file: typing.Optional[str] = None

    def __repr__(self) -> str:
        return f"Credentials(id={self.id!r}, key={'<set>' if self.key else None}, persist_file={self.persist_file!r})"

    @property
    def complete(self) -> bool:
        return bool(self.id) and bool(self.key)



class CredentialStore(abc.ABC):

    # Path of the persisted file, None for stores that do not persist
    path: typing.Optional[str] = None

    @abc.abstractmethod
    def load(self) -> typing.Optional[typing.Tuple[str, str]]:
        raise NotImplementedError

    @abc.abstractmethod
    def save(self, client_id: str, key: str) -> None:
        raise NotImplementedError



class MemoryCredentialStore(CredentialStore):

    """
        Keep credentials in memory only.

        @param client_id (str|None): Pre-configured client id.
        @param key (str|None): Pre-configured Base64 AES key.
    """
    def __init__(self, client_id: typing.Optional[str] = None, key: typing.Optional[str] = None) -> None:

        self._client_id = client_id
        self._key = key

    def load(self) -> typing.Optional[typing.Tuple[str, str]]:
        if self._client_id is None and self._key is None:
            return None
        return self._client_id, self._key

    def save(self, client_id: str, key: str) -> None:
        self._client_id = client_id
        self._key = key



class FileCredentialStore(CredentialStore):

    """
        Initialize a FileCredentialStore bound to one JSON file.

        @param path (str|None): Credentials file; defaults to ~/keepasshttpclient.json or $KEEPASSHTTP_CREDENTIALS_FILE.
        @param audit_log (AuditLog|None): Audit log receiving load failures.
    """
    def __init__(self, path: typing.Optional[str] = None, audit_log: typing.Optional[AuditLog] = None) -> None:

        self.path = path or CONSTANTS.default_credentials_path()
        self._audit_log = audit_log or AuditLog()


    """
        Load {Id, Key} from disk.

        @return tuple[str, str]|None: (id, key), or None when the file is missing or unusable.
        @ensures An unreadable, malformed or invalid-key file is logged and treated as absent.
    """
    def load(self) -> typing.Optional[typing.Tuple[str, str]]:

        if not os.path.isfile(self.path):
            return None

        try:
            with open(self.path, "rb") as f:
                raw = f.read()

            # Non UTF-8 bytes raise EncryptionError(INVALID_UTF8)
            data = json_parser.parse(VALIDATION.decode_bytes_to_utf8_text(raw, "credentials").strip())

            if not isinstance(data, JSONObject):
                raise CredentialStoreError(ApplicationCodes.INVALID_TYPE, "Credentials file must contain a json object", "credentials")

            client_id = data.get_text(CONSTANTS._FIELD_ID)
            key = data.get_text(CONSTANTS._FIELD_KEY)

            if not client_id or not key:
                raise CredentialStoreError(ApplicationCodes.MISSING_FIELDS, "Credentials file must contain Id and Key", "credentials")

            AESManager.validate_key(key)
            return client_id, key

        except (KeePassHttpError, OSError) as e:
            self._audit_log.event(event="credentials_load_failed", path=self.path, detail=str(e))
            return None


    """
        Overwrite the credentials file with {Id, Key}.

        @require client_id and key are non-empty strings
        @ensures The file exists with mode 0600 and holds exactly the given pair.
    """
    def save(self, client_id: str, key: str) -> None:

        try:
            document = JSONObject()
            document[CONSTANTS._FIELD_ID] = JSONString(client_id)
            document[CONSTANTS._FIELD_KEY] = JSONString(key)
            data = json_parser.compose(document)

            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CONSTANTS._CREDENTIALS_FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)

            # O_CREAT mode is ignored for an existing file
            os.chmod(self.path, CONSTANTS._CREDENTIALS_FILE_MODE)

        except KeePassHttpError:
            raise
        except OSError as e:
            raise CredentialStoreError(ApplicationCodes.CREDENTIAL_STORE_ERROR, "Exception while storing the key to communicate with KeePass", "credentials") from e
