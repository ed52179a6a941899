#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: mock_keepasshttp.py

    Description:
        Flask stand-in for the KeePassHttp plugin, used by the test suites.
        Implements associate, test-associate and get-logins with real
        verifier checks and AES-CBC encryption, keeps every registered
        client key in memory, and records each request so tests can assert
        on request counts and nonce freshness. FlaskClientTransport drives
        the app in-process through Flask's test client, and the same app can
        be served over a real socket with werkzeug for end-to-end tests.
        ScriptedTransport replays fixed response bodies without a plugin.

        Behaviour switches live in app.config:
            ACCEPT_ASSOCIATION   : answer associate with Success "true"
            GET_LOGINS_SUCCESS   : answer get-logins with Success "true"
            FORCE_STATUS         : return this HTTP status for every request
            RAW_RESPONSE         : return this body verbatim for every request
"""


import itertools
import typing
from dataclasses import dataclass, field
from flask import Flask, Response, request
from keepasshttp.codec import json_parser
from keepasshttp.codec.value import JSONObject, to_value
from keepasshttp.encryption.AES_manager import AESManager
from keepasshttp.handlers.error_handler import KeePassHttpError
from keepasshttp.handlers.transport_handler import Transport
import keepasshttp.constants as CONSTANTS



"""
    Plain-text login stored in the mock database.
"""
@dataclass
class MockEntry:

    name: str
    login: str
    password: str
    url: str = ""



"""
    Mutable state of one mock plugin.

    clients   : client id -> Base64 key accepted through associate
    requests  : every decoded request object, in arrival order
"""
@dataclass
class MockState:

    entries: typing.List[MockEntry] = field(default_factory=list)
    clients: typing.Dict[str, str] = field(default_factory=dict)
    requests: typing.List[JSONObject] = field(default_factory=list)
    response_nonces: typing.List[str] = field(default_factory=list)

    def request_types(self) -> typing.List[str]:
        return [r.get_text(CONSTANTS._FIELD_REQUEST_TYPE) for r in self.requests]

    def nonces(self) -> typing.List[str]:
        return [r.get_text(CONSTANTS._FIELD_NONCE) for r in self.requests]



#####################################################################################################################################################################

"""
    Create and configure a mock KeePassHttp plugin.

    @param entries (list[MockEntry]|None): Logins the plugin knows about.
    @param clients (dict[str, str]|None): Pre-registered client id -> Base64 key.
    @return Flask: App with the plugin state in app.config["STATE"].
"""
def create_app(entries: typing.Optional[typing.List[MockEntry]] = None, clients: typing.Optional[typing.Dict[str, str]] = None) -> Flask:

    app = Flask(__name__)

    state = MockState(entries=list(entries or []), clients=dict(clients or {}))
    app.config["STATE"] = state
    app.config["ACCEPT_ASSOCIATION"] = True
    app.config["GET_LOGINS_SUCCESS"] = True
    app.config["FORCE_STATUS"] = None
    app.config["RAW_RESPONSE"] = None

    client_ids = (f"client-{n}" for n in itertools.count(1))


    def reply(fields: typing.Dict[str, typing.Any]) -> Response:
        return Response(json_parser.compose(to_value(fields)), status=CONSTANTS._HTTP_OK, mimetype="application/json")


    def verified_key(packet: JSONObject) -> typing.Optional[str]:
        key = state.clients.get(packet.get_text(CONSTANTS._FIELD_ID) or "")
        nonce = packet.get_text(CONSTANTS._FIELD_NONCE)
        verifier = packet.get_text(CONSTANTS._FIELD_VERIFIER)

        if key is None or nonce is None or verifier is None:
            return None
        if not AESManager.check_verifier(verifier, nonce, key):
            return None
        return key


    def handle_associate(packet: JSONObject) -> Response:
        key = packet.get_text(CONSTANTS._FIELD_KEY)
        nonce = packet.get_text(CONSTANTS._FIELD_NONCE)
        verifier = packet.get_text(CONSTANTS._FIELD_VERIFIER)

        if not app.config["ACCEPT_ASSOCIATION"] or not key or not nonce or not verifier or not AESManager.check_verifier(verifier, nonce, key):
            return reply({CONSTANTS._FIELD_REQUEST_TYPE: CONSTANTS._REQUEST_ASSOCIATE, CONSTANTS._FIELD_SUCCESS: "false"})

        client_id = next(client_ids)
        state.clients[client_id] = key
        return reply({CONSTANTS._FIELD_REQUEST_TYPE: CONSTANTS._REQUEST_ASSOCIATE, CONSTANTS._FIELD_SUCCESS: "true", CONSTANTS._FIELD_ID: client_id})


    def handle_test_associate(packet: JSONObject) -> Response:
        success = "true" if verified_key(packet) else "false"
        return reply({CONSTANTS._FIELD_REQUEST_TYPE: CONSTANTS._REQUEST_TEST_ASSOCIATE, CONSTANTS._FIELD_SUCCESS: success})


    def handle_get_logins(packet: JSONObject) -> Response:
        key = verified_key(packet)
        if key is None or not app.config["GET_LOGINS_SUCCESS"]:
            return reply({CONSTANTS._FIELD_REQUEST_TYPE: CONSTANTS._REQUEST_GET_LOGINS, CONSTANTS._FIELD_SUCCESS: "false"})

        url = AESManager.decrypt_from_b64(packet.get_text(CONSTANTS._FIELD_URL) or "", packet.get_text(CONSTANTS._FIELD_NONCE), key)

        # The plugin answers with its own nonce
        response_nonce = AESManager.generate_nonce()
        state.response_nonces.append(response_nonce)

        matches = [entry for entry in state.entries if url in (entry.url, entry.name)]
        encrypted = [
            {
                CONSTANTS._FIELD_NAME: AESManager.encrypt_to_b64(entry.name, response_nonce, key),
                CONSTANTS._FIELD_LOGIN: AESManager.encrypt_to_b64(entry.login, response_nonce, key),
                CONSTANTS._FIELD_PASSWORD: AESManager.encrypt_to_b64(entry.password, response_nonce, key),
            }
            for entry in matches
        ]

        return reply({
            CONSTANTS._FIELD_REQUEST_TYPE: CONSTANTS._REQUEST_GET_LOGINS,
            CONSTANTS._FIELD_SUCCESS: "true",
            CONSTANTS._FIELD_NONCE: response_nonce,
            CONSTANTS._FIELD_VERIFIER: AESManager.make_verifier(response_nonce, key),
            CONSTANTS._FIELD_ENTRIES: encrypted,
        })


    handlers = {
        CONSTANTS._REQUEST_ASSOCIATE: handle_associate,
        CONSTANTS._REQUEST_TEST_ASSOCIATE: handle_test_associate,
        CONSTANTS._REQUEST_GET_LOGINS: handle_get_logins,
    }


    @app.route("/", methods=["POST"])
    def plugin():

        try:
            packet = json_parser.parse(request.get_data(as_text=True))
        except KeePassHttpError:
            return Response("", status=400)

        if not isinstance(packet, JSONObject):
            return Response("", status=400)

        state.requests.append(packet)

        if app.config["FORCE_STATUS"] is not None:
            return Response("", status=app.config["FORCE_STATUS"])

        if app.config["RAW_RESPONSE"] is not None:
            return Response(app.config["RAW_RESPONSE"], status=CONSTANTS._HTTP_OK, mimetype="application/json")

        handler = handlers.get(packet.get_text(CONSTANTS._FIELD_REQUEST_TYPE) or "")
        if handler is None:
            return reply({CONSTANTS._FIELD_SUCCESS: "false"})

        return handler(packet)


    return app



class FlaskClientTransport(Transport):

    """
        Transport that posts to a Flask app in-process.

        @param app (Flask): App created by create_app().
    """
    def __init__(self, app: Flask) -> None:
        self._client = app.test_client()
        self.sent: typing.List[bytes] = []

    def send(self, body: bytes) -> typing.Tuple[int, bytes]:
        self.sent.append(body)
        response = self._client.post("/", data=body, content_type=CONSTANTS._CONTENT_TYPE)
        return response.status_code, response.get_data()



class ScriptedTransport(Transport):

    """
        Transport answering from a fixed script of 200 responses, one per request.

        @param bodies (list[str]): Response bodies in the order they are returned.
    """
    def __init__(self, bodies: typing.List[str]) -> None:
        self._bodies = list(bodies)
        self.request_types: typing.List[str] = []

    def send(self, body: bytes) -> typing.Tuple[int, bytes]:
        packet = json_parser.parse(body.decode("utf-8"))
        self.request_types.append(packet.get_text(CONSTANTS._FIELD_REQUEST_TYPE))
        return CONSTANTS._HTTP_OK, self._bodies.pop(0).encode("utf-8")
