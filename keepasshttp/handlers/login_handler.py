#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: login_handler.py

    Description:
        Retrieves logins from the KeePassHttp plugin. A get-logins call
        authenticates (with the one-shot re-association rule), sends the
        encrypted Url / SubmitUrl, and decrypts each returned entry with the
        Nonce carried by the response itself. The plugin alone decides which
        entries match; the client never filters. get_login() narrows the
        result to exactly one record.
"""


import enum
import typing
from dataclasses import dataclass, field
from keepasshttp.codec.value import JSONArray, JSONObject
from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.association_handler import AssociationHandler
from keepasshttp.handlers.error_handler import (
    CommunicationError, MissingParameterError, NotFoundError, AmbiguousMatchError, ApplicationCodes
)
from keepasshttp.handlers.packet_handler import PacketHandler
from keepasshttp.utilities.audit_log import AuditLog
import keepasshttp.constants as CONSTANTS



"""
    One login returned by the plugin, decrypted.
"""
@dataclass(frozen=True)
class LoginRecord:

    name: str
    login: str
    password: str = field(repr=False)



class CallPhase(enum.Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    REQUESTING = "requesting"
    DECODING = "decoding"
    DONE = "done"
    FAILED = "failed"



class LoginHandler:

    """
        @param packet_handler (PacketHandler): Shared request/response exchange.
        @param association_handler (AssociationHandler): Owns the credentials and the retry rule.
        @param audit_log (AuditLog): Receives request outcomes (never urls or secrets).
    """
    def __init__(self, packet_handler: PacketHandler, association_handler: AssociationHandler, audit_log: AuditLog) -> None:

        self._packet_handler = packet_handler
        self._association_handler = association_handler
        self._audit_log = audit_log
        self.phase = CallPhase.IDLE


    """
        Get the logins the plugin matches for a url.

        @param url (str): Url (or entry name) to search for; must not be empty.
        @param submit_url (str|None): Optional submit url, defaults to url.
        @return list[LoginRecord]: Records in server order; empty when nothing matched.
        @ensures Any failure leaves phase == FAILED and propagates to the caller.
    """
    def get_logins(self, url: str, submit_url: typing.Optional[str] = None) -> typing.List[LoginRecord]:

        try:
            self.phase = CallPhase.AUTHENTICATING
            self._association_handler.ensure_associated()

            if not url:
                raise MissingParameterError(ApplicationCodes.MISSING_PARAMETER, "missing parameter url", "url")
            if not submit_url:
                submit_url = url

            self.phase = CallPhase.REQUESTING
            credentials = self._association_handler.credentials
            key = credentials.key
            nonce = AESManager.generate_nonce()

            request = self._packet_handler.build_request(CONSTANTS._REQUEST_GET_LOGINS, {
                CONSTANTS._FIELD_ID: credentials.id,
                CONSTANTS._FIELD_NONCE: nonce,
                CONSTANTS._FIELD_VERIFIER: AESManager.make_verifier(nonce, key),
                CONSTANTS._FIELD_URL: AESManager.encrypt_to_b64(url, nonce, key),
                CONSTANTS._FIELD_SUBMIT_URL: AESManager.encrypt_to_b64(submit_url, nonce, key),
            })
            response = self._packet_handler.exchange(request)

            if not PacketHandler.is_success(response):
                raise CommunicationError(ApplicationCodes.REQUEST_DECLINED, "Communication with KeePass failed, call of get-logins with no success (access may be declined by user)", CONSTANTS._REQUEST_GET_LOGINS)

            self.phase = CallPhase.DECODING
            logins = self._decode_entries(response, key)

            self.phase = CallPhase.DONE
            self._audit_log.event(event="get_logins", count=len(logins))
            return logins

        except Exception:
            self.phase = CallPhase.FAILED
            raise


    """
        Get the single login matching a url.

        @return LoginRecord: The only record returned for url.
        @ensures No match raises NotFoundError; several matches raise AmbiguousMatchError.
    """
    def get_login(self, url: str) -> LoginRecord:

        logins = self.get_logins(url, url)

        if not logins:
            raise NotFoundError(ApplicationCodes.NOT_FOUND, "No login found for the url", "url")

        if len(logins) > 1:
            raise AmbiguousMatchError(ApplicationCodes.AMBIGUOUS_MATCH, f"{len(logins)} logins found for the url, expected one", "url")

        return logins[0]


    def _decode_entries(self, response: JSONObject, key: str) -> typing.List[LoginRecord]:

        entries = response.get(CONSTANTS._FIELD_ENTRIES)
        if entries is None:
            return []

        if not isinstance(entries, JSONArray):
            raise CommunicationError(ApplicationCodes.INVALID_RESPONSE, "Entries must be an array", CONSTANTS._FIELD_ENTRIES)

        if len(entries) == 0:
            return []

        # Entries are encrypted with the response's own nonce, not the request's
        response_nonce = PacketHandler.require_text(response, CONSTANTS._FIELD_NONCE)

        logins = []
        for entry in entries:
            if not isinstance(entry, JSONObject):
                raise CommunicationError(ApplicationCodes.INVALID_RESPONSE, "Entry must be an object", CONSTANTS._FIELD_ENTRIES)

            name, login, password = (
                AESManager.decrypt_from_b64(PacketHandler.require_text(entry, field_name), response_nonce, key, field_name)
                for field_name in CONSTANTS._ENTRY_FIELDS
            )
            logins.append(LoginRecord(name=name, login=login, password=password))

        return logins
