#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: association_handler.py

    Description:
        Implements the KeePassHttp association handshake. A client is
        Unassociated until it holds both a server-assigned Id and a shared AES
        key that the plugin accepted on the last check. associate() registers
        the key (the user confirms it in the KeePass UI) and persists the
        returned Id; test_associate() proves the stored key still works. The
        ensure_associated() retry rule performs at most one re-association
        per call and never loops.
"""


from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.error_handler import NotAssociatedError, ApplicationCodes
from keepasshttp.handlers.packet_handler import PacketHandler
from keepasshttp.storage.credential_store import Credentials, CredentialStore
from keepasshttp.utilities.audit_log import AuditLog
import keepasshttp.constants as CONSTANTS



class AssociationHandler:

    """
        Initialize the AssociationHandler with the packet layer and the connector's credentials.

        @param packet_handler (PacketHandler): Shared request/response exchange.
        @param credentials (Credentials): Mutable {id, key} owned by the connector.
        @param credential_store (CredentialStore): Receives {id, key} after each successful associate().
        @param audit_log (AuditLog): Receives association events.
    """
    def __init__(self, packet_handler: PacketHandler, credentials: Credentials, credential_store: CredentialStore, audit_log: AuditLog) -> None:

        self._packet_handler = packet_handler
        self._credentials = credentials
        self._credential_store = credential_store
        self._audit_log = audit_log

        # Number of associate() calls made by this handler
        self.associate_count = 0


    @property
    def credentials(self) -> Credentials:
        return self._credentials


    @property
    def is_associated(self) -> bool:
        return self._credentials.complete


    """
        Register the client key with the plugin.

        @ensures On Success=="true" the returned Id is stored and {Id, Key} persisted.
        @ensures Any other outcome raises NotAssociatedError (the user declined in KeePass).
    """
    def associate(self) -> None:

        self.associate_count += 1

        if not self._credentials.key:
            self._credentials.key = AESManager.generate_key()

        key = self._credentials.key
        nonce = AESManager.generate_nonce()

        request = self._packet_handler.build_request(CONSTANTS._REQUEST_ASSOCIATE, {
            CONSTANTS._FIELD_KEY: key,
            CONSTANTS._FIELD_NONCE: nonce,
            CONSTANTS._FIELD_VERIFIER: AESManager.make_verifier(nonce, key),
        })
        response = self._packet_handler.exchange(request)

        if not PacketHandler.is_success(response):
            self._audit_log.event(event="associate_declined")
            raise NotAssociatedError(ApplicationCodes.ASSOCIATION_DECLINED, "Communication with KeePass failed, client could not associate with KeePassHttp, maybe declined by user", "associate")

        self._credentials.id = PacketHandler.require_text(response, CONSTANTS._FIELD_ID)
        self._credential_store.save(self._credentials.id, key)

        self._audit_log.event(event="associated", client_id=self._credentials.id, persisted=self._credentials.persist_file is not None)


    """
        Check that the stored credentials are still accepted by the plugin.

        @ensures Missing id or key triggers associate() before the check.
        @ensures Success != "true" raises NotAssociatedError.
    """
    def test_associate(self) -> None:

        if not self._credentials.complete:
            self.associate()

        key = self._credentials.key
        nonce = AESManager.generate_nonce()

        request = self._packet_handler.build_request(CONSTANTS._REQUEST_TEST_ASSOCIATE, {
            CONSTANTS._FIELD_ID: self._credentials.id,
            CONSTANTS._FIELD_NONCE: nonce,
            CONSTANTS._FIELD_VERIFIER: AESManager.make_verifier(nonce, key),
        })
        response = self._packet_handler.exchange(request)

        if not PacketHandler.is_success(response):
            raise NotAssociatedError(ApplicationCodes.NOT_ASSOCIATED, "Communication with KeePass failed, client is not associated with KeePassHttp", "test-associate")


    """
        Make sure the next request runs with accepted credentials.

        @ensures test_associate() is tried first; on NotAssociatedError exactly one associate() follows.
        @ensures If associate() already ran during this attempt, the failure is terminal.
    """
    def ensure_associated(self) -> None:

        attempts_before = self.associate_count

        try:
            self.test_associate()

        except NotAssociatedError:
            if self.associate_count > attempts_before:
                raise

            self._audit_log.event(event="reassociate", detail="KeePass is not associated, try to associate")
            self.associate()
