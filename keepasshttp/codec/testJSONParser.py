#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
    File name: testJSONParser.py

    Description:
        Test suite for the minimal KeePassHttp JSON codec. Covers parsing of
        objects, arrays and nested composites, the bare-token and no-escape
        behaviour of the wire format, the syntax errors for malformed text,
        composing, and the parse / compose stability of protocol-shaped values.
"""

import unittest

from keepasshttp.codec import json_parser
from keepasshttp.codec.value import JSONString, JSONObject, JSONArray, to_value
from keepasshttp.handlers.error_handler import JSONSyntaxError, UnsupportedValueError, ApplicationCodes


class TestJSONParser(unittest.TestCase):

    RESPONSE = (
        '{"RequestType":"get-logins","Success":"true","Id":"client-1",'
        '"Nonce":"QVFJREJBVUdCd2dKQ2dzTQ==","Entries":['
        '{"Name":"bmFtZTE=","Login":"bG9naW4x","Password":"cHcx"},'
        '{"Name":"bmFtZTI=","Login":"bG9naW4y","Password":"cHcy"}]}'
    )

    """
        A flat object parses into String members.
    """
    def test_parse_flat_object(self):

        value = json_parser.parse('{"RequestType":"associate","Success":"true","Id":"abc"}')

        self.assertIsInstance(value, JSONObject)
        self.assertEqual(JSONString("associate"), value["RequestType"])
        self.assertEqual("true", value.get_text("Success"))
        self.assertEqual("abc", value.get_text("Id"))

    """
        A realistic get-logins response keeps entries in server order.
    """
    def test_parse_response_with_entries(self):

        value = json_parser.parse(self.RESPONSE)

        entries = value["Entries"]
        self.assertIsInstance(entries, JSONArray)
        self.assertEqual(2, len(entries))
        self.assertEqual("bmFtZTE=", entries[0].get_text("Name"))
        self.assertEqual("cHcy", entries[1].get_text("Password"))
        self.assertEqual("QVFJREJBVUdCd2dKQ2dzTQ==", value.get_text("Nonce"))

    """
        Members after a nested composite are still read (comma directly after the bracket).
    """
    def test_parse_member_after_nested_object(self):

        value = json_parser.parse('{"a":{"b":"c"},"d":"e","f":["g"],"h":"i"}')

        self.assertEqual(JSONObject({"b": JSONString("c")}), value["a"])
        self.assertEqual("e", value.get_text("d"))
        self.assertEqual(JSONArray([JSONString("g")]), value["f"])
        self.assertEqual("i", value.get_text("h"))

    """
        Unquoted tokens are kept as raw String text.
    """
    def test_parse_bare_tokens_as_strings(self):

        value = json_parser.parse('{"Success":true,"Count":2,"Version":"1.8.4.2"}')

        self.assertEqual(JSONString("true"), value["Success"])
        self.assertEqual(JSONString("2"), value["Count"])
        self.assertEqual("1.8.4.2", value.get_text("Version"))

    """
        Empty objects, arrays and strings.
    """
    def test_parse_empty_values(self):

        self.assertEqual(JSONObject(), json_parser.parse("{}"))
        self.assertEqual(JSONArray(), json_parser.parse("[]"))

        value = json_parser.parse('{"Entries":[],"Empty":""}')
        self.assertEqual(JSONArray(), value["Entries"])
        self.assertEqual(JSONString(""), value["Empty"])

    """
        Arrays keep source order, nest, and drop empty elements.
    """
    def test_parse_arrays(self):

        self.assertEqual(to_value(["a", "b", "c"]), json_parser.parse('["a","b","c"]'))
        self.assertEqual(to_value([["a"], {"k": "v"}, "z"]), json_parser.parse('[["a"],{"k":"v"},"z"]'))
        self.assertEqual(to_value(["a", "b"]), json_parser.parse('["a",,"b"]'))

    """
        Deeply nested composites recurse correctly.
    """
    def test_parse_deep_nesting(self):

        value = json_parser.parse('{"a":{"b":{"c":[{"d":"e"}]}}}')

        self.assertEqual("e", value["a"]["b"]["c"][0].get_text("d"))

    """
        Quoted strings have no escape handling: an escaped quote ends the string.
    """
    def test_parse_does_not_unescape(self):

        value = json_parser.parse('{"a":"x\\"}')

        self.assertEqual("x\\", value.get_text("a"))

    """
        Text not starting with '{' or '[' is rejected.
    """
    def test_parse_rejects_wrong_leading_character(self):

        for text in ("", "abc", '"a"', " {}", "true"):
            with self.subTest(text=text):
                with self.assertRaises(JSONSyntaxError) as cm:
                    json_parser.parse(text)
                self.assertEqual(ApplicationCodes.MALFORMED_JSON, cm.exception.application_code)

    """
        Objects and arrays must end with their closing delimiter.
    """
    def test_parse_rejects_wrong_trailing_character(self):

        for text in ('{"a":"b"', '["a"', '{"a":"b"} ', '["a"]x'):
            with self.subTest(text=text):
                with self.assertRaises(JSONSyntaxError):
                    json_parser.parse(text)

    """
        Unterminated strings and composites are rejected.
    """
    def test_parse_rejects_unterminated_structures(self):

        for text in ('{"a":"b}', '{"a":{"b":"c"}', '{"a":["b"}', '["a}]', '[["a"]', '{"a"}'):
            with self.subTest(text=text):
                with self.assertRaises(JSONSyntaxError):
                    json_parser.parse(text)

    """
        Whitespace between a closing bracket and the next comma is not tolerated.
    """
    def test_parse_whitespace_after_nested_value_is_not_tolerated(self):

        value = json_parser.parse('{"a":{"b":"c"} ,"d":"e"}')

        self.assertNotIn("d", value)
        self.assertEqual("e", value.get_text(" ,d"))

    """
        compose writes compact JSON in insertion order with no escaping.
    """
    def test_compose(self):

        value = to_value({"RequestType": "test-associate", "Id": "client-1", "Entries": [{"Name": "n"}, "x"]})

        self.assertEqual('{"RequestType":"test-associate","Id":"client-1","Entries":[{"Name":"n"},"x"]}', json_parser.compose(value))
        self.assertEqual('"a b"', json_parser.compose(JSONString("a b")))
        self.assertEqual("[]", json_parser.compose(JSONArray()))
        self.assertEqual("{}", json_parser.compose(JSONObject()))

    """
        compose rejects anything outside String, Object and Array.
    """
    def test_compose_rejects_unsupported_values(self):

        for bad in (1, 1.5, True, None, "plain-str", {"a": "b"}):
            with self.subTest(bad=bad):
                with self.assertRaises(UnsupportedValueError) as cm:
                    json_parser.compose(bad)  # type: ignore[arg-type]
                self.assertEqual(ApplicationCodes.UNSUPPORTED_VALUE, cm.exception.application_code)

    """
        to_value fails fast on numbers, booleans and null.
    """
    def test_to_value_rejects_scalars(self):

        for bad in (1, 2.5, False, None, {"a": 1}, ["a", None]):
            with self.subTest(bad=bad):
                with self.assertRaises(UnsupportedValueError):
                    to_value(bad)

    """
        Object members cannot be set to raw Python values.
    """
    def test_object_rejects_raw_members(self):

        obj = JSONObject()

        with self.assertRaises(UnsupportedValueError):
            obj["a"] = "raw"  # type: ignore[assignment]

    """
        parse(compose(v)) rebuilds v, and composing again gives the same text.
    """
    def test_parse_compose_stability(self):

        values = [
            to_value({}),
            to_value({"Key": "QTdjaFJFUnE4b0dJazJtWA==", "Nonce": "QVFJREJBVUdCd2dKQ2dzTQ=="}),
            to_value({"Entries": [{"Name": "a", "Login": "b"}, {"Name": "c"}], "Success": "true"}),
            to_value(["x", ["y", ["z"]], {"k": {"k2": "v"}}]),
            to_value({"a": [], "b": {}, "c": [{}], "d": "tail"}),
        ]

        for value in values:
            with self.subTest(value=value):
                text = json_parser.compose(value)
                reparsed = json_parser.parse(text)
                self.assertEqual(value, reparsed)
                self.assertEqual(text, json_parser.compose(reparsed))

    """
        Object equality ignores member order.
    """
    def test_object_equality_ignores_order(self):

        self.assertEqual(json_parser.parse('{"a":"1","b":"2"}'), json_parser.parse('{"b":"2","a":"1"}'))


if __name__ == "__main__":
    unittest.main()
