"""Tests for outbound request signing."""

import itertools
import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from kycops.client.signer import (
    ACCESS_SIGNATURE_HEADER,
    ACCESS_TIMESTAMP_HEADER,
    APP_TOKEN_HEADER,
    NDJSON_CONTENT_TYPE,
    RequestSigner,
    encode_json_body,
    encode_ndjson_body,
)
from kycops.common.errors import PayloadEncodingError
from tests.helpers import APP_TOKEN, FIXED_TS, SECRET_KEY, expected_request_signature


class TestSign:
    def test_headers_match_reference(self, signer):
        auth = signer.sign("GET", "/resources/status/api")

        assert auth.app_token == APP_TOKEN
        assert auth.access_timestamp == str(FIXED_TS)
        assert auth.access_signature == expected_request_signature(
            FIXED_TS, "GET", "/resources/status/api"
        )

    def test_timestamp_is_truncated_to_seconds(self, signer):
        assert signer.sign("GET", "/x").access_timestamp == "1700000000"

    def test_wire_header_names(self, signer):
        headers = signer.sign("GET", "/x").as_dict()
        assert set(headers) == {APP_TOKEN_HEADER, ACCESS_SIGNATURE_HEADER, ACCESS_TIMESTAMP_HEADER}
        assert APP_TOKEN_HEADER == "X-App-Token"
        assert ACCESS_SIGNATURE_HEADER == "X-App-Access-Sig"
        assert ACCESS_TIMESTAMP_HEADER == "X-App-Access-Ts"

    def test_deterministic(self, signer):
        first = signer.sign("POST", "/resources/applicants?levelName=basic", b'{"a":1}')
        second = signer.sign("POST", "/resources/applicants?levelName=basic", b'{"a":1}')
        assert first == second

    def test_path_must_start_with_slash(self, signer):
        with pytest.raises(ValueError):
            signer.sign("GET", "resources/status/api")

    def test_fresh_timestamp_per_call(self):
        ticks = itertools.count(FIXED_TS)
        signer = RequestSigner(APP_TOKEN, SECRET_KEY, clock=lambda: next(ticks))

        first = signer.sign("POST", "/resources/applicants", b"{}")
        second = signer.sign("POST", "/resources/applicants", b"{}")

        assert first.access_timestamp == str(FIXED_TS)
        assert second.access_timestamp == str(FIXED_TS + 1)
        assert first.access_signature != second.access_signature

    def test_safe_to_call_from_many_threads(self, signer):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: signer.sign("GET", "/x", b"body"), range(64)))
        assert len({r.access_signature for r in results}) == 1


BASE = {"ts": 1700000000, "method": "POST", "path": "/resources/applicants?levelName=basic", "body": b'{"a":1}'}


@pytest.mark.parametrize(
    "field,value",
    [
        ("ts", 1700000001),
        ("method", "PUT"),
        ("path", "/resources/applicants?levelName=basiC"),
        ("path", "/resources/applicants?levelName=basic2"),
        ("path", "/Resources/applicants?levelName=basic"),
        ("body", b'{"a":2}'),
        ("body", b'{"a":1} '),
        ("body", None),
    ],
)
def test_any_single_field_change_changes_signature(field, value):
    """Mutating one field of the signed tuple yields a different signature."""
    mutated = dict(BASE, **{field: value})
    original_signer = RequestSigner(APP_TOKEN, SECRET_KEY, clock=lambda: BASE["ts"])
    mutated_signer = RequestSigner(APP_TOKEN, SECRET_KEY, clock=lambda: mutated["ts"])

    original = original_signer.sign(BASE["method"], BASE["path"], BASE["body"])
    changed = mutated_signer.sign(mutated["method"], mutated["path"], mutated["body"])

    assert original.access_signature != changed.access_signature


class TestJsonBodies:
    def test_signs_the_bytes_it_returns(self, signer):
        signed = signer.sign_json("post", "/resources/applicants?levelName=basic", {"externalUserId": "u-1"})

        assert signed.method == "POST"
        assert signed.body == b'{"externalUserId":"u-1"}'
        assert signed.content_type == "application/json"
        assert signed.auth.access_signature == expected_request_signature(
            FIXED_TS, "POST", "/resources/applicants?levelName=basic", signed.body
        )

    def test_headers_include_content_type(self, signer):
        headers = signer.sign_json("POST", "/x", {"a": 1}).headers
        assert headers["Content-Type"] == "application/json"
        assert headers["X-App-Token"] == APP_TOKEN

    def test_none_payload_means_no_body(self, signer):
        signed = signer.sign_json("GET", "/resources/status/api", None)

        assert signed.body is None
        assert signed.content_type is None
        assert "Content-Type" not in signed.headers
        assert signed.auth.access_signature == expected_request_signature(
            FIXED_TS, "GET", "/resources/status/api"
        )

    def test_list_payload(self, signer):
        assert signer.sign_json("POST", "/tags", ["a", "b"]).body == b'["a","b"]'

    def test_non_ascii_kept_as_utf8(self):
        assert encode_json_body({"name": "Zoë"}) == '{"name":"Zoë"}'.encode("utf-8")

    def test_unserializable_payload_raises_before_signing(self):
        calls = []
        signer = RequestSigner(APP_TOKEN, SECRET_KEY, clock=lambda: calls.append(1) or FIXED_TS)

        with pytest.raises(PayloadEncodingError):
            signer.sign_json("POST", "/x", {"when": object()})
        assert calls == []

    def test_nan_is_not_silently_encoded(self):
        with pytest.raises(PayloadEncodingError):
            encode_json_body({"amount": float("nan")})


class TestEmptyBodies:
    def test_multipart_style_request_signs_without_body(self, signer):
        signed = signer.sign_empty("post", "/resources/applicants/abc/docsets/-")

        assert signed.method == "POST"
        assert signed.body is None
        assert signed.auth.access_signature == expected_request_signature(
            FIXED_TS, "POST", "/resources/applicants/abc/docsets/-"
        )


class TestNdjsonBodies:
    def test_joined_with_newlines_without_trailing_newline(self):
        body = encode_ndjson_body([{"a": 1}, {"b": [1, 2]}, {"c": "x"}])
        assert body == b'{"a":1}\n{"b":[1,2]}\n{"c":"x"}'
        assert not body.endswith(b"\n")

    def test_each_line_is_a_json_document(self):
        records = [{"txnId": str(i), "info": {"amount": i}} for i in range(5)]
        lines = encode_ndjson_body(records).split(b"\n")
        assert [json.loads(line) for line in lines] == records

    def test_single_record_has_no_newline(self):
        assert encode_ndjson_body([{"a": 1}]) == b'{"a":1}'

    def test_newlines_inside_values_are_escaped(self):
        body = encode_ndjson_body([{"note": "line1\nline2"}, {"a": 1}])
        assert body.count(b"\n") == 1

    def test_bad_record_fails_whole_body(self):
        with pytest.raises(PayloadEncodingError) as exc_info:
            encode_ndjson_body([{"a": 1}, {"b": object()}])
        assert "Record 1" in str(exc_info.value)

    def test_sign_ndjson(self, signer):
        signed = signer.sign_ndjson("POST", "/resources/kyt/misc/txns/import", [{"a": 1}, {"b": 2}])

        assert signed.content_type == NDJSON_CONTENT_TYPE
        assert signed.headers["Content-Type"] == "application/x-ndjson"
        assert signed.body == b'{"a":1}\n{"b":2}'
        assert signed.auth.access_signature == expected_request_signature(
            FIXED_TS, "POST", "/resources/kyt/misc/txns/import", signed.body
        )

    def test_accepts_generators(self, signer):
        signed = signer.sign_ndjson("POST", "/bulk", ({"i": i} for i in range(2)))
        assert signed.body == b'{"i":0}\n{"i":1}'
