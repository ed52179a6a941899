#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: packet_handler.py

    Description:
        Builds and exchanges KeePassHttp packets. Every request is a single
        JSON object carrying RequestType plus the fields of its type; every
        response must be a JSON object with a Success field. The handler
        composes the request with the project's codec, passes it to the
        transport, enforces HTTP 200, parses the body, and validates the
        fields each request type requires.
"""


import typing
from keepasshttp.codec import json_parser
from keepasshttp.codec.value import JSONObject, JSONString
from keepasshttp.handlers.error_handler import KeePassHttpError, JSONSyntaxError, CommunicationError, ApplicationCodes
from keepasshttp.handlers.transport_handler import Transport
import keepasshttp.handlers.sanitization_validation as VALIDATION
import keepasshttp.constants as CONSTANTS


####################################################################################################
#                                         Packet Handler
####################################################################################################

class PacketHandler:

    """
        @param transport (Transport): Sends request bytes and returns (status, body).
    """
    def __init__(self, transport: Transport) -> None:

        if not isinstance(transport, Transport):
            raise CommunicationError(ApplicationCodes.INVALID_TYPE, "PacketHandler requires a Transport instance", "transport")

        self._transport = transport


    @property
    def transport(self) -> Transport:
        return self._transport


    ################################################################################################
    #                                     REQUEST CONSTRUCTION
    ################################################################################################

    """
        Build a request packet for one of the supported request types.

        @param request_type (str): "associate", "test-associate" or "get-logins".
        @param fields (dict[str, str]): Request fields besides RequestType.
        @return JSONObject: Packet ready to compose.
        @ensures Every field the request type requires is present; all values are strings.
    """
    def build_request(self, request_type: str, fields: typing.Mapping[str, str]) -> JSONObject:

        VALIDATION.validate_in_set(request_type, CONSTANTS._ALLOWED_REQUEST_TYPES, CommunicationError, ApplicationCodes.INVALID_REQUEST_TYPE, "request_type")

        missing = CONSTANTS._REQUEST_FIELDS[request_type] - {name for name, value in fields.items() if value}
        if missing:
            raise CommunicationError(ApplicationCodes.MISSING_FIELDS, f"{request_type} request missing fields: {', '.join(sorted(missing))}", "request")

        packet = JSONObject()
        packet[CONSTANTS._FIELD_REQUEST_TYPE] = JSONString(request_type)
        for name, value in fields.items():
            VALIDATION.validate_string(value, CommunicationError, ApplicationCodes.INVALID_TYPE, name)
            packet[name] = JSONString(value)

        return packet


    ################################################################################################
    #                                     EXCHANGE
    ################################################################################################

    """
        Send a request packet and return the decoded response object.

        @param request (JSONObject): Packet built by build_request.
        @return JSONObject: Response carrying a String Success field.
        @ensures Non-200 status, undecodable body, or missing/malformed Success raise CommunicationError.
    """
    def exchange(self, request: JSONObject) -> JSONObject:

        body = json_parser.compose(request).encode("utf-8")
        status, raw = self._transport.send(body)

        if status != CONSTANTS._HTTP_OK:
            raise CommunicationError(ApplicationCodes.HTTP_STATUS, f"Communication with KeePass failed, http-returncode is {status}, expected {CONSTANTS._HTTP_OK}", "status", http_code=status)

        try:
            text = VALIDATION.decode_bytes_to_utf8_text(raw, "response").strip()
            response = json_parser.parse(text)

        except JSONSyntaxError as e:
            raise CommunicationError(ApplicationCodes.INVALID_RESPONSE, "Communication with KeePass failed, response from KeePassHttp is invalid", "response", http_code=status) from e
        except KeePassHttpError as e:
            raise CommunicationError(ApplicationCodes.INVALID_RESPONSE, "Communication with KeePass failed, response is not UTF-8", "response", http_code=status) from e

        if not isinstance(response, JSONObject) or response.get_text(CONSTANTS._FIELD_SUCCESS) is None:
            raise CommunicationError(ApplicationCodes.INVALID_RESPONSE, "Communication with KeePass failed, response from KeePassHttp is invalid", CONSTANTS._FIELD_SUCCESS, http_code=status)

        return response


    ################################################################################################
    #                                     RESPONSE VALIDATION
    ################################################################################################

    @staticmethod
    def is_success(response: JSONObject) -> bool:
        return response.get_text(CONSTANTS._FIELD_SUCCESS) == CONSTANTS._SUCCESS_TRUE


    """
        Read a required String field from a response.

        @return str: Field text.
        @ensures Absent or non-String fields raise CommunicationError.
    """
    @staticmethod
    def require_text(response: JSONObject, field_name: str) -> str:

        VALIDATION.validate_required_fields(response, {field_name}, field_name)

        text = response.get_text(field_name)
        if text is None:
            raise CommunicationError(ApplicationCodes.INVALID_RESPONSE, f"{field_name} must be a string", field_name)

        return text
