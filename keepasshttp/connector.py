#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: connector.py

    Description:
        Entry point of the KeePassHttp client. Wires the transport, packet
        handler, credential store, association handler, login handler, audit
        log and error handler into a single connector. By default the
        connector loads {Id, Key} from ~/keepasshttpclient.json and stores
        them again after each successful association; when an id and key are
        supplied directly nothing is persisted. Every public call normalizes
        failures through the ErrorHandler.

        A connector is not thread-safe: use one per thread or serialize
        access externally.
"""


import typing
from keepasshttp.handlers.association_handler import AssociationHandler
from keepasshttp.handlers.error_handler import ErrorHandler
from keepasshttp.handlers.login_handler import LoginHandler, LoginRecord
from keepasshttp.handlers.packet_handler import PacketHandler
from keepasshttp.handlers.transport_handler import Transport, HTTPTransport
from keepasshttp.storage.credential_store import Credentials, CredentialStore, FileCredentialStore, MemoryCredentialStore
from keepasshttp.utilities.audit_log import AuditLog
from keepasshttp.encryption.AES_manager import AESManager
import keepasshttp.constants as CONSTANTS


#####################################################################################################################################################################

"""
    Connector for communication with a local KeePass running the KeePassHttp plugin.
"""
class KeePassHttpConnector:

    """
        Create a connector.

        @param port (int): Port of the KeePassHttp plugin (default 19455).
        @param client_id (str|None): Pre-configured client id; with key, disables persistence.
        @param key (str|None): Pre-configured Base64 AES key.
        @param credential_store (CredentialStore|None): Where {Id, Key} are loaded from and saved to.
        @param transport (Transport|None): Replaces the HTTP transport (tests, custom channels).
        @param audit_log (AuditLog|None): Shared audit log.
        @ensures Credentials are loaded exactly once, here.
    """
    def __init__(self, port: int = CONSTANTS._DEFAULT_PORT, client_id: typing.Optional[str] = None, key: typing.Optional[str] = None,
                 credential_store: typing.Optional[CredentialStore] = None, transport: typing.Optional[Transport] = None,
                 audit_log: typing.Optional[AuditLog] = None) -> None:

        # Instantiate audit log for non-sensitive operational logging
        self._audit_log = (audit_log or AuditLog()).bind(port=port)

        # Centralized error handler
        self._error_handler = ErrorHandler(self._audit_log)

        # Supplied credentials bypass persistence
        if client_id is not None or key is not None:
            if key is not None:
                AESManager.validate_key(key)
            credential_store = MemoryCredentialStore(client_id, key)
        elif credential_store is None:
            credential_store = FileCredentialStore(audit_log=self._audit_log)

        self._credential_store = credential_store

        loaded = credential_store.load()
        self._credentials = Credentials(persist_file=credential_store.path)
        if loaded is not None:
            self._credentials.id, self._credentials.key = loaded

        # Packet layer over the loopback transport
        self._packet_handler = PacketHandler(transport or HTTPTransport(port))

        self._association_handler = AssociationHandler(self._packet_handler, self._credentials, credential_store, self._audit_log)
        self._login_handler = LoginHandler(self._packet_handler, self._association_handler, self._audit_log)


    @property
    def id(self) -> typing.Optional[str]:
        return self._credentials.id


    @property
    def key(self) -> typing.Optional[str]:
        return self._credentials.key


    @property
    def credentials(self) -> Credentials:
        return self._credentials


    @property
    def association_handler(self) -> AssociationHandler:
        return self._association_handler


    @property
    def login_handler(self) -> LoginHandler:
        return self._login_handler


    """
        Gets a list of logins available for the specified url.

        @param url (str): Url to search for; by default this can also be the name of the entry in KeePass.
        @param submit_url (str|None): Optional submit url.
        @return list[LoginRecord]: Empty when no matching login was found.
    """
    def get_logins(self, url: str, submit_url: typing.Optional[str] = None) -> typing.List[LoginRecord]:
        return self._call("get_logins", self._login_handler.get_logins, url, submit_url)


    """
        Gets the single login for the specified url.
    """
    def get_login(self, url: str) -> LoginRecord:
        return self._call("get_login", self._login_handler.get_login, url)


    def associate(self) -> None:
        self._call("associate", self._association_handler.associate)


    def test_associate(self) -> None:
        self._call("test_associate", self._association_handler.test_associate)


    """
        Run one protocol operation and normalize whatever it raises.
    """
    def _call(self, context: str, operation: typing.Callable[..., typing.Any], *args: typing.Any) -> typing.Any:
        try:
            return operation(*args)
        except Exception as e:
            normalized = self._error_handler.handle_client_error(e, context=context)
            if normalized is e:
                raise
            raise normalized from e
