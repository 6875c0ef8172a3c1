"""ESU request signing.

Implements the canonical-string construction and HMAC-SHA1 signature that
authenticate every REST call, and the query-string signature used for
pre-signed shareable URLs.

The canonical string is positional::

    METHOD\\n
    Content-Type\\n        (empty line when absent)
    Range\\n               (empty line when absent)
    Date\\n
    lower-cased resource\\n
    x-emc-a:value\\n
    x-emc-b:value         (sorted by lower-cased name, no trailing newline)
"""

import base64
import binascii
import hashlib
import hmac
import logging
import urllib.parse
from collections.abc import Mapping

logger = logging.getLogger(__name__)

# Constants
SIGNATURE_HEADER = "x-emc-signature"
EMC_HEADER_PREFIX = "x-emc"


class RequestSigner:
    """Signs ESU requests with a shared secret.

    The signer holds only the decoded secret and is safe to share between
    threads; every call works on its own header mapping.
    """

    def __init__(self, shared_secret: str) -> None:
        """Initialize the signer.

        Args:
            shared_secret: The Base64-encoded shared secret for the uid.

        Raises:
            ValueError: If the secret is not valid Base64.
        """
        try:
            self._secret = base64.b64decode(shared_secret, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("Shared secret is not valid Base64") from e

    # -- Canonical string ------------------------------------------------------

    def build_string_to_sign(
        self, method: str, resource: str, headers: Mapping[str, str]
    ) -> str:
        """Build the canonical string for a request.

        Args:
            method: HTTP method (uppercase).
            resource: The resource path, including any query string.
            headers: The request headers to be sent.

        Returns:
            The canonical string.

        Raises:
            ValueError: If the Date header has not been set.
        """
        date = _header_value(headers, "Date")
        if date is None:
            raise ValueError("The Date header must be set before signing")

        lines = [
            method,
            _header_value(headers, "Content-Type") or "",
            _header_value(headers, "Range") or "",
            date,
            resource.lower(),
        ]
        return "\n".join(lines) + "\n" + canonical_emc_headers(headers)

    # -- Signature computation -------------------------------------------------

    def sign_string(self, string_to_sign: str) -> str:
        """Compute the Base64 HMAC-SHA1 signature of a string."""
        digest = hmac.new(self._secret, string_to_sign.encode("utf-8"), hashlib.sha1).digest()
        return base64.b64encode(digest).decode("ascii")

    def sign(self, method: str, resource: str, headers: Mapping[str, str]) -> str:
        """Compute the signature for a request without modifying its headers."""
        string_to_sign = self.build_string_to_sign(method, resource, headers)
        logger.debug("String to sign: %r", string_to_sign)
        return self.sign_string(string_to_sign)

    def sign_request(self, method: str, resource: str, headers: dict[str, str]) -> str:
        """Sign a request and attach the signature header.

        The signature must be the last header added; headers set afterwards
        are not covered by it.

        Returns:
            The signature that was attached.
        """
        signature = self.sign(method, resource, headers)
        headers[SIGNATURE_HEADER] = signature
        return signature

    # -- Shareable URLs --------------------------------------------------------

    def shareable_url_query(
        self,
        resource: str,
        uid: str,
        expires: int,
        disposition: str | None = None,
    ) -> str:
        """Build the signed query string for an anonymous GET URL.

        Args:
            resource: The object's resource path.
            uid: The uid that grants access.
            expires: Expiry time in Unix seconds.
            disposition: Optional Content-Disposition for the download.

        Returns:
            The query string, without the leading ``?``.
        """
        uid_enc = urllib.parse.quote(uid, safe="")
        parts = ["GET", resource.lower(), uid_enc, str(expires)]
        if disposition is not None:
            parts.append(disposition)
        signature = self.sign_string("\n".join(parts))

        query = (
            f"uid={uid_enc}&expires={expires}"
            f"&signature={urllib.parse.quote(signature, safe='')}"
        )
        if disposition is not None:
            query += f"&disposition={urllib.parse.quote(disposition, safe='')}"
        return query


# ---------------------------------------------------------------------------
# Module-level utility functions
# ---------------------------------------------------------------------------


def canonical_emc_headers(headers: Mapping[str, str]) -> str:
    """Render the x-emc headers section of the canonical string.

    Header names are matched on a case-insensitive ``x-emc`` prefix and
    lower-cased; values have newlines removed; entries are sorted by name
    in ordinal order and joined with newlines.

    Args:
        headers: The request headers.

    Returns:
        The newline-joined ``name:value`` lines, with no trailing newline.
    """
    emc = {
        name.lower(): _normalize_header_value(value)
        for name, value in headers.items()
        if name.lower().startswith(EMC_HEADER_PREFIX)
    }
    return "\n".join(f"{name}:{emc[name]}" for name in sorted(emc))


def _header_value(headers: Mapping[str, str], name: str) -> str | None:
    """Look up a header by case-insensitive name."""
    if name in headers:
        return headers[name]
    lower = name.lower()
    for key, value in headers.items():
        if key.lower() == lower:
            return value
    return None


def _normalize_header_value(value: str) -> str:
    """Strip newlines from a header value; other whitespace is kept."""
    return value.replace("\n", "")
