"""Tests for launch payload parsing and canonicalization."""
import hashlib
import hmac

import pytest

from travelplanner.auth.exceptions import AuthErrorCode, MalformedPayloadError
from travelplanner.auth.init_data import (
    build_data_check_string,
    compute_hash,
    derive_secret_key,
    encode_init_data,
    parse_init_data,
    sign_init_data,
)


class TestParseInitData:
    """Tests for parse_init_data."""

    def test_decodes_keys_and_values(self):
        fields = parse_init_data(
            "user=%7B%22id%22%3A42%2C%22first_name%22%3A%22Ann%22%7D&auth_date=1700000000"
        )
        assert fields == {
            "user": '{"id":42,"first_name":"Ann"}',
            "auth_date": "1700000000",
        }

    def test_splits_on_first_equals_only(self):
        fields = parse_init_data("start_param=a=b=c")
        assert fields["start_param"] == "a=b=c"

    def test_plus_is_not_a_space(self):
        fields = parse_init_data("query_id=a+b&name=%20x")
        assert fields["query_id"] == "a+b"
        assert fields["name"] == " x"

    def test_utf8_values(self):
        fields = parse_init_data("name=%D0%90%D0%BD%D1%8F")
        assert fields["name"] == "Аня"

    def test_last_duplicate_wins(self):
        fields = parse_init_data("a=1&a=2")
        assert fields == {"a": "2"}

    def test_empty_value_allowed(self):
        assert parse_init_data("a=&b=1") == {"a": "", "b": "1"}

    def test_empty_payload_is_malformed(self):
        with pytest.raises(MalformedPayloadError):
            parse_init_data("")

    def test_pair_without_equals_is_malformed(self):
        with pytest.raises(MalformedPayloadError) as exc_info:
            parse_init_data("a=1&garbage")
        assert exc_info.value.code == AuthErrorCode.MALFORMED_PAYLOAD

    def test_invalid_utf8_escape_is_malformed(self):
        with pytest.raises(MalformedPayloadError):
            parse_init_data("name=%FF%FE")


class TestDataCheckString:
    """Tests for canonical data-check string construction."""

    def test_sorted_and_newline_joined(self):
        dcs = build_data_check_string({"b": "2", "a": "1", "c": "3"})
        assert dcs == "a=1\nb=2\nc=3"

    def test_excludes_hash_and_signature(self):
        dcs = build_data_check_string(
            {"auth_date": "1", "hash": "h", "signature": "s", "user": "u"}
        )
        assert dcs == "auth_date=1\nuser=u"

    def test_insertion_order_does_not_matter(self):
        first = {"user": "u", "auth_date": "1", "query_id": "q"}
        second = {"query_id": "q", "auth_date": "1", "user": "u"}
        assert build_data_check_string(first) == build_data_check_string(second)
        assert compute_hash(first, "abc") == compute_hash(second, "abc")

    def test_custom_exclusions(self):
        dcs = build_data_check_string({"a": "1", "hash": "h"}, exclude=("a",))
        assert dcs == "hash=h"


class TestKeyedHash:
    """Tests for keyed-hash derivation."""

    def test_derived_key_is_hmac_of_token(self):
        expected = hmac.new(b"WebAppData", b"abc", hashlib.sha256).digest()
        assert derive_secret_key("abc") == expected

    def test_hash_matches_manual_computation(self):
        fields = {"user": '{"id":42,"first_name":"Ann"}', "auth_date": "1700000000"}
        secret = hmac.new(b"WebAppData", b"abc", hashlib.sha256).digest()
        expected = hmac.new(
            secret,
            b'auth_date=1700000000\nuser={"id":42,"first_name":"Ann"}',
            hashlib.sha256,
        ).hexdigest()
        assert compute_hash(fields, "abc") == expected

    def test_hash_is_lowercase_hex(self):
        digest = compute_hash({"a": "1"}, "abc")
        assert len(digest) == 64
        assert digest == digest.lower()


class TestSignInitData:
    """Tests for payload construction helpers."""

    def test_encoded_payload_parses_back(self):
        fields = {"user": '{"id":1,"first_name":"A&B=C"}', "auth_date": "5"}
        parsed = parse_init_data(encode_init_data(fields))
        assert parsed == fields

    def test_sign_appends_matching_hash(self):
        fields = {"user": '{"id":1,"first_name":"A"}', "auth_date": "5"}
        parsed = parse_init_data(sign_init_data(fields, "abc"))
        assert parsed["hash"] == compute_hash(fields, "abc")

    def test_sign_replaces_existing_hash(self):
        fields = {"auth_date": "5", "hash": "stale"}
        parsed = parse_init_data(sign_init_data(fields, "abc"))
        assert parsed["hash"] == compute_hash({"auth_date": "5"}, "abc")
