"""Encoding and decoding of the ESU x-emc header formats.

Metadata, ACL grants and tags travel as comma-separated lists in custom
headers:

    x-emc-meta:           name1=value1, name2=value2
    x-emc-listable-meta:  name3=value3
    x-emc-useracl:        john=FULL_CONTROL,mary=READ
    x-emc-groupacl:       other=NONE
    x-emc-tags:           name1,name2

When the client runs in UTF-8 mode it sends ``x-emc-utf8: true`` and
percent-encodes metadata names and values and tag names, so non-ASCII
text survives the ASCII-only header channel.

All functions here are pure transforms between model objects and header
dicts.
"""

from collections.abc import Iterable, Mapping
from urllib.parse import quote, unquote

from esuclient.errors import HeaderParseError
from esuclient.models import (
    ALL_CONTENT,
    Acl,
    Extent,
    Grant,
    Grantee,
    GranteeType,
    Metadata,
    MetadataList,
    MetadataTag,
    MetadataTags,
    Permission,
)

# Header names
META_HEADER = "x-emc-meta"
LISTABLE_META_HEADER = "x-emc-listable-meta"
USER_ACL_HEADER = "x-emc-useracl"
GROUP_ACL_HEADER = "x-emc-groupacl"
TAGS_HEADER = "x-emc-tags"
LISTABLE_TAGS_HEADER = "x-emc-listable-tags"
UTF8_HEADER = "x-emc-utf8"
CHECKSUM_HEADER = "x-emc-wschecksum"

# The service reports full control as "FULL" but expects "FULL_CONTROL".
_SERVER_FULL_CONTROL = "FULL"


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def utf8_encode(value: str) -> str:
    """Percent-encode every reserved or non-ASCII character of ``value``."""
    return quote(value, safe="")


def utf8_decode(value: str) -> str:
    return unquote(value)


def encode_metadata(metadata: Iterable[Metadata], utf8: bool = False) -> dict[str, str]:
    """Render metadata into the listable and non-listable metadata headers.

    Commas and newlines are stripped from values in plain mode. In UTF-8
    mode names and values are percent-encoded instead, which also escapes
    commas. A header is omitted when its group is empty.

    Args:
        metadata: The entries to encode.
        utf8: Whether to percent-encode names and values.

    Returns:
        A dict holding ``x-emc-listable-meta`` and/or ``x-emc-meta``.
    """
    listable: list[str] = []
    regular: list[str] = []
    for meta in metadata:
        (listable if meta.listable else regular).append(_format_metadata(meta, utf8))

    headers: dict[str, str] = {}
    if listable:
        headers[LISTABLE_META_HEADER] = ", ".join(listable)
    if regular:
        headers[META_HEADER] = ", ".join(regular)
    return headers


def decode_metadata(
    header: str | None,
    listable: bool,
    into: MetadataList | None = None,
    utf8: bool = False,
) -> MetadataList:
    """Parse a metadata header value.

    Args:
        header: The raw header value; ``None`` yields no entries.
        listable: Whether entries came from the listable metadata header.
        into: Optional list to add the entries to.
        utf8: Whether names and values are percent-encoded.

    Returns:
        The list the entries were added to.

    Raises:
        HeaderParseError: If a name appears more than once.
    """
    meta = into if into is not None else MetadataList()
    if header is None:
        return meta
    for token in _split_list(header):
        name, _, value = token.partition("=")
        name = name.strip()
        if utf8:
            name, value = utf8_decode(name), utf8_decode(value)
        try:
            meta.add(Metadata(name, value, listable))
        except ValueError as e:
            raise HeaderParseError(f"Duplicate metadata name in header: {name!r}") from e
    return meta


def decode_metadata_headers(headers: Mapping[str, str], utf8: bool = False) -> MetadataList:
    """Decode both metadata headers of a response."""
    meta = decode_metadata(headers.get(META_HEADER), False, utf8=utf8)
    return decode_metadata(headers.get(LISTABLE_META_HEADER), True, into=meta, utf8=utf8)


def _format_metadata(meta: Metadata, utf8: bool = False) -> str:
    if utf8:
        return f"{utf8_encode(meta.name)}={utf8_encode(meta.value)}"
    value = meta.value.replace(",", "").replace("\n", "")
    return f"{meta.name}={value}"


# ---------------------------------------------------------------------------
# ACLs
# ---------------------------------------------------------------------------


def encode_acl(acl: Iterable[Grant]) -> dict[str, str]:
    """Render an ACL into the user and group ACL headers.

    Both headers are always present, possibly with an empty value.
    """
    users: list[str] = []
    groups: list[str] = []
    for grant in acl:
        target = users if grant.grantee.type is GranteeType.USER else groups
        target.append(str(grant))
    return {
        USER_ACL_HEADER: ",".join(users),
        GROUP_ACL_HEADER: ",".join(groups),
    }


def decode_acl(header: str | None, grantee_type: GranteeType, into: Acl | None = None) -> Acl:
    """Parse an ACL header value.

    Args:
        header: The raw header value; ``None`` yields no grants.
        grantee_type: The grantee type implied by the source header.
        into: Optional ACL to add the grants to.

    Returns:
        The ACL the grants were added to.

    Raises:
        HeaderParseError: If a grant has no ``=`` separator.
    """
    acl = into if into is not None else Acl()
    if header is None:
        return acl
    for token in _split_list(header):
        name, sep, permission = token.partition("=")
        if not sep:
            raise HeaderParseError(f"Malformed grant in ACL header: {token!r}")
        if permission == _SERVER_FULL_CONTROL:
            permission = Permission.FULL_CONTROL
        acl.add(Grant(Grantee(name.strip(), grantee_type), permission))
    return acl


def decode_acl_headers(headers: Mapping[str, str]) -> Acl:
    """Decode both ACL headers of a response."""
    acl = decode_acl(headers.get(USER_ACL_HEADER), GranteeType.USER)
    return decode_acl(headers.get(GROUP_ACL_HEADER), GranteeType.GROUP, into=acl)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def encode_tags(tags: Iterable[MetadataTag], utf8: bool = False) -> dict[str, str]:
    """Render tag names into the ``x-emc-tags`` header (omitted when empty)."""
    names = [utf8_encode(tag.name) if utf8 else tag.name for tag in tags]
    if not names:
        return {}
    return {TAGS_HEADER: ",".join(names)}


def decode_tags(
    header: str | None,
    listable: bool,
    into: MetadataTags | None = None,
    utf8: bool = False,
) -> MetadataTags:
    """Parse a tags header value into trimmed tag names."""
    tags = into if into is not None else MetadataTags()
    if header is None:
        return tags
    for token in _split_list(header):
        name = token.strip()
        tags.add(MetadataTag(utf8_decode(name) if utf8 else name, listable))
    return tags


def decode_tag_headers(headers: Mapping[str, str], utf8: bool = False) -> MetadataTags:
    """Decode the listable and non-listable tag headers of a response."""
    tags = decode_tags(headers.get(LISTABLE_TAGS_HEADER), True, utf8=utf8)
    return decode_tags(headers.get(TAGS_HEADER), False, into=tags, utf8=utf8)


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


def format_range(*extents: Extent) -> str | None:
    """Render extents as a ``Range`` header value.

    Returns:
        ``Bytes=<start>-<end>[,<start>-<end>...]``, or ``None`` when no
        extent restricts the request.
    """
    ranges = [f"{e.offset}-{e.end}" for e in extents if e is not None and e != ALL_CONTENT]
    if not ranges:
        return None
    return "Bytes=" + ",".join(ranges)


def _split_list(header: str) -> list[str]:
    """Split a comma-separated header value, dropping empty entries."""
    return [token for token in header.split(",") if token]
