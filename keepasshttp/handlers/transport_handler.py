#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: transport_handler.py

    Description:
        Loopback HTTP transport for the KeePassHttp client. A transport takes
        the composed request body, POSTs it to the plugin and hands back the
        HTTP status and raw response body; status checks and decoding belong
        to the PacketHandler. Network faults are mapped onto
        CommunicationError, with a dedicated TIMEOUT code for the fixed
        10 second limit.
"""


import abc
import typing
import requests
from keepasshttp.handlers.error_handler import CommunicationError, ApplicationCodes
import keepasshttp.constants as CONSTANTS



"""
    Interface every transport implements.
"""
class Transport(abc.ABC):

    @abc.abstractmethod
    def send(self, body: bytes) -> typing.Tuple[int, bytes]:
        raise NotImplementedError



class HTTPTransport(Transport):

    """
        Initialize an HTTPTransport bound to the plugin on the loopback interface.

        @param port (int): Port of the KeePassHttp plugin.
        @require 0 < port < 65536
        @ensures Every request goes to http://localhost:<port> with a 10 second timeout.
    """
    def __init__(self, port: int = CONSTANTS._DEFAULT_PORT) -> None:

        if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
            raise CommunicationError(ApplicationCodes.IO_FAILURE, "Port must be an integer between 1 and 65535", "port")

        self._port = port
        self._url = f"http://{CONSTANTS._DEFAULT_HOST}:{port}"
        self._timeout = CONSTANTS._REQUEST_TIMEOUT_SECONDS

        # Loopback only: never route through HTTP_PROXY / http_proxy or read .netrc
        self._session = requests.Session()
        self._session.trust_env = False


    @property
    def url(self) -> str:
        return self._url


    @property
    def port(self) -> int:
        return self._port


    """
        POST a request body to the plugin.

        @param body (bytes): UTF-8 encoded JSON request.
        @return tuple[int, bytes]: (http_status, response_body)
        @ensures Timeouts raise CommunicationError(TIMEOUT); other network faults raise CommunicationError(IO_FAILURE).
    """
    def send(self, body: bytes) -> typing.Tuple[int, bytes]:

        try:
            response = self._session.post(
                self._url,
                data=body,
                headers={"Content-Type": CONSTANTS._CONTENT_TYPE},
                timeout=self._timeout,
            )
            return response.status_code, response.content

        except requests.Timeout as e:
            raise CommunicationError(ApplicationCodes.TIMEOUT, f"Communication with KeePass timed out after {self._timeout} seconds", "transport") from e

        except requests.RequestException as e:
            raise CommunicationError(ApplicationCodes.IO_FAILURE, f"Communication with KeePass failed: {e}", "transport") from e
