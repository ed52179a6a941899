#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: json_parser.py

    Description:
        Minimal JSON parser and composer for the KeePassHttp wire format.
        Handles only the grammar the protocol needs: objects, arrays and
        strings without escapes. Parsing is a small character-level state
        machine; composing writes compact JSON with no escaping, so composed
        strings must never contain a quote, comma or brace (protocol payloads
        are always Base64 or literal tokens).

        Known limitations kept on purpose:
            - no escape handling, an escaped quote ends the string early
            - no whitespace between a closing bracket and the next comma
"""

import enum
import typing

from keepasshttp.codec.value import JSONString, JSONObject, JSONArray, Value
from keepasshttp.handlers.error_handler import JSONSyntaxError, UnsupportedValueError, ApplicationCodes


class ParseMode(enum.Enum):
    KEY = "key"
    VALUE = "value"
    VALUE_QUOTED = "value_quoted"
    VALUE_OBJECT = "value_object"
    VALUE_ARRAY = "value_array"


_NESTED_DELIMITERS = {
    ParseMode.VALUE_OBJECT: ("{", "}"),
    ParseMode.VALUE_ARRAY: ("[", "]"),
}


####################################################################################################
#                                         Parsing
####################################################################################################

"""
    Parse JSON text into a tagged Value.

    @param text (str): JSON text starting with '{' or '['.
    @return Value: JSONObject or JSONArray.
    @ensures Any other leading character raises JSONSyntaxError.
"""
def parse(text: str) -> Value:

    if not isinstance(text, str):
        raise JSONSyntaxError(ApplicationCodes.MALFORMED_JSON, "json text must be a string", "json")

    if text.startswith("{"):
        return _parse_object(text)

    if text.startswith("["):
        return _parse_array(text)

    raise JSONSyntaxError(ApplicationCodes.MALFORMED_JSON, "json text must begin with '{' or '['", "json")


def _open_nested(ch: str) -> ParseMode:
    return ParseMode.VALUE_OBJECT if ch == "{" else ParseMode.VALUE_ARRAY


def _skip_comma(text: str, index: int) -> int:
    # A nested value may not close on the parent's last character
    if index + 1 >= len(text):
        raise JSONSyntaxError(ApplicationCodes.MALFORMED_JSON, "Unterminated structure", "json")

    if text[index + 1] == ",":
        return index + 1
    return index


def _parse_object(text: str) -> JSONObject:

    if not text.startswith("{") or not text.endswith("}"):
        raise JSONSyntaxError(ApplicationCodes.MALFORMED_JSON, "json object must begin / end with curly braces", "json")

    result = JSONObject()
    key: typing.List[str] = []
    buffer: typing.List[str] = []
    depth = 0
    mode = ParseMode.KEY

    i = 1
    while i < len(text):
        ch = text[i]

        if mode is ParseMode.KEY:
            if ch == '"':
                pass
            elif ch == ":":
                mode = ParseMode.VALUE
            else:
                key.append(ch)

        elif mode is ParseMode.VALUE:
            if ch == '"':
                mode = ParseMode.VALUE_QUOTED
            elif ch in "{[":
                mode = _open_nested(ch)
                depth = 1
                buffer.append(ch)
            elif ch in ",}":
                result["".join(key)] = JSONString("".join(buffer))
                key, buffer = [], []
                mode = ParseMode.KEY
            else:
                buffer.append(ch)

        elif mode is ParseMode.VALUE_QUOTED:
            if ch == '"':
                mode = ParseMode.VALUE
            else:
                buffer.append(ch)

        else:
            buffer.append(ch)
            opener, closer = _NESTED_DELIMITERS[mode]
            if ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    result["".join(key)] = parse("".join(buffer))
                    key, buffer = [], []
                    mode = ParseMode.KEY
                    i = _skip_comma(text, i)

        i += 1

    # The closing brace lands in the key buffer when the last member was composite
    if mode is not ParseMode.KEY or "".join(key) not in ("", "}"):
        raise JSONSyntaxError(ApplicationCodes.MALFORMED_JSON, "Unterminated json object", "json")

    return result


def _parse_array(text: str) -> JSONArray:

    if not text.startswith("[") or not text.endswith("]"):
        raise JSONSyntaxError(ApplicationCodes.MALFORMED_JSON, "json array must begin / end with brackets", "json")

    result = JSONArray()
    buffer: typing.List[str] = []
    depth = 0
    mode = ParseMode.VALUE

    i = 1
    while i < len(text):
        ch = text[i]

        if mode is ParseMode.VALUE:
            if ch == '"':
                mode = ParseMode.VALUE_QUOTED
            elif ch in "{[":
                mode = _open_nested(ch)
                depth = 1
                buffer.append(ch)
            elif ch in ",]":
                if buffer:
                    result.append(JSONString("".join(buffer)))
                    buffer = []
            else:
                buffer.append(ch)

        elif mode is ParseMode.VALUE_QUOTED:
            if ch == '"':
                mode = ParseMode.VALUE
            else:
                buffer.append(ch)

        else:
            buffer.append(ch)
            opener, closer = _NESTED_DELIMITERS[mode]
            if ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    result.append(parse("".join(buffer)))
                    buffer = []
                    mode = ParseMode.VALUE
                    i = _skip_comma(text, i)

        i += 1

    if mode is not ParseMode.VALUE or buffer:
        raise JSONSyntaxError(ApplicationCodes.MALFORMED_JSON, "Unterminated json array", "json")

    return result


####################################################################################################
#                                         Composing
####################################################################################################

"""
    Compose a tagged Value into compact JSON text.

    @param value (Value): JSONString, JSONObject or JSONArray.
    @return str: JSON text; strings are written verbatim between quotes.
    @ensures Any other type raises UnsupportedValueError.
"""
def compose(value: Value) -> str:

    if isinstance(value, JSONString):
        return '"' + value.text + '"'

    if isinstance(value, JSONObject):
        return "{" + ",".join('"' + key + '":' + compose(member) for key, member in value.items()) + "}"

    if isinstance(value, JSONArray):
        return "[" + ",".join(compose(element) for element in value) + "]"

    raise UnsupportedValueError(ApplicationCodes.UNSUPPORTED_VALUE, f"unsupported object-type: {type(value).__name__}", "value")
