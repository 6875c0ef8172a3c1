"""Tests for ESU request signing."""

import base64
import hashlib
import hmac
import urllib.parse

import pytest

from esuclient.auth import RequestSigner, canonical_emc_headers

SECRET = "LJLuryj6zs8ste6Y3jTGQp71xq0="
DATE = "Thu, 05 Jun 2008 16:38:19 GMT"


def _expected_signature(string_to_sign: str) -> str:
    digest = hmac.new(
        base64.b64decode(SECRET), string_to_sign.encode("utf-8"), hashlib.sha1
    ).digest()
    return base64.b64encode(digest).decode("ascii")


@pytest.fixture
def signer() -> RequestSigner:
    return RequestSigner(SECRET)


def _headers(**extra: str) -> dict[str, str]:
    headers = {
        "Content-Type": "application/octet-stream",
        "Date": DATE,
        "x-emc-uid": "6039ac182f194e15b9261d73ce044939/user1",
        "x-emc-meta": "part1=buy",
    }
    headers.update(extra)
    return headers


class TestCanonicalString:
    """Tests for build_string_to_sign()."""

    def test_full_layout(self, signer):
        """All positional fields appear in order, followed by sorted x-emc headers."""
        headers = {
            "Content-Type": "application/octet-stream",
            "Date": DATE,
            "x-emc-useracl": "john=FULL_CONTROL,mary=WRITE",
            "x-emc-uid": "6039ac182f194e15b9261d73ce044939/user1",
            "x-emc-groupacl": "other=NONE",
            "x-emc-listable-meta": "part4/part7/part8=quick",
            "x-emc-meta": "part1=buy",
        }
        expected = (
            "POST\n"
            "application/octet-stream\n"
            "\n"
            f"{DATE}\n"
            "/rest/objects\n"
            "x-emc-groupacl:other=NONE\n"
            "x-emc-listable-meta:part4/part7/part8=quick\n"
            "x-emc-meta:part1=buy\n"
            "x-emc-uid:6039ac182f194e15b9261d73ce044939/user1\n"
            "x-emc-useracl:john=FULL_CONTROL,mary=WRITE"
        )
        assert signer.build_string_to_sign("POST", "/rest/objects", headers) == expected

    def test_missing_content_type_and_range_leave_blank_lines(self, signer):
        headers = {"Date": DATE, "x-emc-uid": "u"}
        assert signer.build_string_to_sign("GET", "/rest/objects/x", headers) == (
            f"GET\n\n\n{DATE}\n/rest/objects/x\nx-emc-uid:u"
        )

    def test_range_included(self, signer):
        headers = {"Date": DATE, "Range": "Bytes=0-9", "x-emc-uid": "u"}
        lines = signer.build_string_to_sign("GET", "/rest/objects/x", headers).split("\n")
        assert lines[2] == "Bytes=0-9"

    def test_resource_is_lowercased(self, signer):
        """Only the signed copy of the resource is lower-cased."""
        s = signer.build_string_to_sign("GET", "/rest/namespace/My/File.TXT?metadata/user", {
            "Date": DATE,
        })
        assert "/rest/namespace/my/file.txt?metadata/user" in s

    def test_no_emc_headers_ends_after_resource(self, signer):
        s = signer.build_string_to_sign("GET", "/rest/service", {"Date": DATE})
        assert s.endswith("/rest/service\n")

    def test_missing_date_fails_fast(self, signer):
        with pytest.raises(ValueError):
            signer.build_string_to_sign("GET", "/rest/objects", {"x-emc-uid": "u"})


class TestCanonicalEmcHeaders:
    """Tests for canonical_emc_headers()."""

    def test_sorted_regardless_of_insertion_order(self):
        a = canonical_emc_headers({"x-emc-b": "2", "x-emc-a": "1", "x-emc-c": "3"})
        b = canonical_emc_headers({"x-emc-c": "3", "x-emc-a": "1", "x-emc-b": "2"})
        assert a == b == "x-emc-a:1\nx-emc-b:2\nx-emc-c:3"

    def test_names_lowercased_and_prefix_case_insensitive(self):
        assert canonical_emc_headers({"X-EMC-Meta": "a=1"}) == "x-emc-meta:a=1"

    def test_newlines_stripped_other_whitespace_kept(self):
        assert canonical_emc_headers({"x-emc-meta": "a = 1\n, b=2"}) == "x-emc-meta:a = 1, b=2"

    def test_non_emc_headers_ignored(self):
        assert canonical_emc_headers({"Date": DATE, "Content-Type": "text/plain"}) == ""


class TestSignature:
    """Tests for sign() and sign_request()."""

    def test_matches_hmac_sha1(self, signer):
        headers = _headers()
        expected = _expected_signature(signer.build_string_to_sign("POST", "/rest/objects", headers))
        assert signer.sign("POST", "/rest/objects", headers) == expected

    def test_deterministic(self, signer):
        assert signer.sign("GET", "/rest/objects", _headers()) == signer.sign(
            "GET", "/rest/objects", _headers()
        )

    @pytest.mark.parametrize(
        "change",
        [
            {"Date": "Thu, 05 Jun 2008 16:38:20 GMT"},
            {"Content-Type": "text/plain"},
            {"Range": "Bytes=0-1"},
            {"x-emc-meta": "part1=sell"},
        ],
    )
    def test_any_signed_field_changes_signature(self, signer, change):
        base = signer.sign("POST", "/rest/objects", _headers())
        assert signer.sign("POST", "/rest/objects", _headers(**change)) != base

    def test_path_changes_signature(self, signer):
        assert signer.sign("GET", "/rest/objects/a", _headers()) != signer.sign(
            "GET", "/rest/objects/b", _headers()
        )

    def test_sign_request_attaches_header(self, signer):
        headers = _headers()
        signature = signer.sign_request("POST", "/rest/objects", headers)
        assert headers["x-emc-signature"] == signature

    def test_invalid_secret_rejected(self):
        with pytest.raises(ValueError):
            RequestSigner("not base64!!")


class TestShareableUrlQuery:
    """Tests for shareable_url_query()."""

    def test_query_parameters(self, signer):
        query = signer.shareable_url_query("/rest/objects/ABC", "sub/user1", 1700000000)
        params = urllib.parse.parse_qs(query)
        assert params["uid"] == ["sub/user1"]
        assert params["expires"] == ["1700000000"]
        expected = _expected_signature("GET\n/rest/objects/abc\nsub%2Fuser1\n1700000000")
        assert params["signature"] == [expected]
        assert "disposition" not in params

    def test_disposition_is_signed_and_appended(self, signer):
        disposition = 'attachment; filename="a.txt"'
        query = signer.shareable_url_query("/rest/objects/abc", "u", 100, disposition)
        params = urllib.parse.parse_qs(query)
        assert params["disposition"] == [disposition]
        expected = _expected_signature(f"GET\n/rest/objects/abc\nu\n100\n{disposition}")
        assert params["signature"] == [expected]
