#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    File name: value.py

    Description:
        Tagged JSON value model for the KeePassHttp wire format. Only three
        shapes exist on the wire: String, Object and Array. There is no
        numeric, boolean or null variant; unquoted tokens sent by the plugin
        (e.g. Success:true) are carried as JSONString with their raw text.
"""

from dataclasses import dataclass, field
import typing

from keepasshttp.handlers.error_handler import UnsupportedValueError, ApplicationCodes


@dataclass(frozen=True)
class JSONString:
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass
class JSONObject:
    """Mapping of unique string keys to values. Equality ignores key order."""

    members: typing.Dict[str, "Value"] = field(default_factory=dict)

    def __getitem__(self, key: str) -> "Value":
        return self.members[key]

    def __setitem__(self, key: str, value: "Value") -> None:
        if not isinstance(key, str):
            raise UnsupportedValueError(ApplicationCodes.UNSUPPORTED_VALUE, "Object keys must be strings", "key")
        if not isinstance(value, (JSONString, JSONObject, JSONArray)):
            raise UnsupportedValueError(ApplicationCodes.UNSUPPORTED_VALUE, f"Unsupported value type: {type(value).__name__}", key)
        self.members[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self.members

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self) -> typing.Iterator[str]:
        return iter(self.members)

    def get(self, key: str, default: typing.Optional["Value"] = None) -> typing.Optional["Value"]:
        return self.members.get(key, default)

    def keys(self) -> typing.KeysView[str]:
        return self.members.keys()

    def items(self) -> typing.ItemsView[str, "Value"]:
        return self.members.items()

    def get_text(self, key: str) -> typing.Optional[str]:
        """Text of a String member, or None when absent or not a String."""
        value = self.members.get(key)
        if isinstance(value, JSONString):
            return value.text
        return None


@dataclass
class JSONArray:
    elements: typing.List["Value"] = field(default_factory=list)

    def __getitem__(self, index: int) -> "Value":
        return self.elements[index]

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> typing.Iterator["Value"]:
        return iter(self.elements)

    def append(self, value: "Value") -> None:
        if not isinstance(value, (JSONString, JSONObject, JSONArray)):
            raise UnsupportedValueError(ApplicationCodes.UNSUPPORTED_VALUE, f"Unsupported value type: {type(value).__name__}", "element")
        self.elements.append(value)


Value = typing.Union[JSONString, JSONObject, JSONArray]


"""
    Convert plain Python data (str, dict, list) into the tagged value model.

    @param obj (Any): str, dict with str keys, list, or an existing Value.
    @return Value: Equivalent tagged value.
    @ensures int, float, bool, None and every other type fail fast with UnsupportedValueError.
"""
def to_value(obj: typing.Any) -> Value:

    if isinstance(obj, (JSONString, JSONObject, JSONArray)):
        return obj

    if isinstance(obj, str):
        return JSONString(obj)

    if isinstance(obj, dict):
        result = JSONObject()
        for key, member in obj.items():
            result[key] = to_value(member)
        return result

    if isinstance(obj, (list, tuple)):
        return JSONArray([to_value(element) for element in obj])

    raise UnsupportedValueError(ApplicationCodes.UNSUPPORTED_VALUE, f"Unsupported value type: {type(obj).__name__}", "value")
