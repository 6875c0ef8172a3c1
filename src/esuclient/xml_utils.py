"""ESU XML response parsing helpers.

The service answers list, directory, error, service and info requests with
small XML documents. Elements are matched on their local name so that
documents with or without a default namespace parse the same way.
"""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from datetime import datetime

from esuclient.errors import XmlParseError
from esuclient.models import (
    DirectoryEntry,
    Metadata,
    MetadataList,
    ObjectExpiration,
    ObjectId,
    ObjectInfo,
    ObjectPath,
    ObjectReplica,
    ObjectResult,
    ObjectRetention,
    ServiceInformation,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------


def _parse_document(body: bytes | str) -> ET.Element:
    """Parse an XML body into its root element.

    Raises:
        XmlParseError: If the body is not well-formed XML.
    """
    try:
        return ET.fromstring(body)
    except ET.ParseError as e:
        raise XmlParseError(f"Malformed XML response: {e}") from e


def _local_name(tag: str) -> str:
    """Strip a ``{namespace}`` prefix from an element tag."""
    if tag.startswith("{"):
        return tag[tag.index("}") + 1:]
    return tag


def _find_elem(parent: ET.Element, name: str) -> ET.Element | None:
    """Find the first direct child with the given local name."""
    for child in parent:
        if _local_name(child.tag) == name:
            return child
    return None


def _iter_elems(root: ET.Element, name: str) -> Iterator[ET.Element]:
    """Iterate over all descendants (and root) with the given local name."""
    for elem in root.iter():
        if _local_name(elem.tag) == name:
            yield elem


def _text(elem: ET.Element | None) -> str:
    """Return the full text content of an element, or ``""``."""
    if elem is None:
        return ""
    return "".join(elem.itertext())


def _child_text(parent: ET.Element, name: str) -> str:
    return _text(_find_elem(parent, name))


def _parse_metadata_list(elem: ET.Element | None, with_listable: bool) -> MetadataList:
    """Parse the ``Metadata`` children of a metadata list element.

    Args:
        elem: A ``SystemMetadataList`` or ``UserMetadataList`` element.
        with_listable: Whether entries carry a ``Listable`` child.
    """
    meta = MetadataList()
    if elem is None:
        return meta
    for child in elem:
        if _local_name(child.tag) != "Metadata":
            continue
        listable = with_listable and _child_text(child, "Listable") == "true"
        entry = Metadata(_child_text(child, "Name"), _child_text(child, "Value"), listable)
        _add_metadata(meta, entry)
    return meta


def _add_metadata(meta: MetadataList, entry: Metadata) -> None:
    try:
        meta.add(entry)
    except ValueError as e:
        raise XmlParseError(f"Duplicate metadata name in response: {entry.name!r}") from e


# ---------------------------------------------------------------------------
# Object and directory listings
# ---------------------------------------------------------------------------


def parse_object_list(body: bytes | str) -> list[ObjectId]:
    """Parse the object ids from a list-objects or query response."""
    root = _parse_document(body)
    ids = [ObjectId(_text(elem).strip()) for elem in _iter_elems(root, "ObjectID")]
    logger.debug("Found %d results", len(ids))
    return ids


def parse_version_list(body: bytes | str) -> list[ObjectId]:
    """Parse the version ids from a list-versions response.

    Versions are listed as ``OID`` elements; older services list them as
    ``ObjectID`` elements instead.
    """
    root = _parse_document(body)
    elems = list(_iter_elems(root, "OID")) or list(_iter_elems(root, "ObjectID"))
    return [ObjectId(_text(elem).strip()) for elem in elems]


def parse_object_list_with_metadata(body: bytes | str) -> list[ObjectResult]:
    """Parse a list-objects response that includes object metadata.

    System metadata entries are never listable; user metadata entries are
    listable when their ``Listable`` child reads ``true``.

    Raises:
        XmlParseError: If an ``Object`` element has no ``ObjectID``.
    """
    root = _parse_document(body)
    results = []
    for obj in _iter_elems(root, "Object"):
        oid = _find_elem(obj, "ObjectID")
        if oid is None:
            raise XmlParseError("Object element without ObjectID in list response")

        meta = _parse_metadata_list(_find_elem(obj, "SystemMetadataList"), with_listable=False)
        for entry in _parse_metadata_list(_find_elem(obj, "UserMetadataList"), with_listable=True):
            _add_metadata(meta, entry)
        results.append(ObjectResult(ObjectId(_text(oid).strip()), meta))
    logger.debug("Found %d results", len(results))
    return results


def parse_directory_listing(body: bytes | str, directory: ObjectPath) -> list[DirectoryEntry]:
    """Parse a namespace directory listing.

    Entry paths are the directory path followed by the entry name; names of
    sub-directories get a trailing ``/``.

    Args:
        body: The XML response body.
        directory: The directory that was listed.

    Returns:
        The entries in document order.

    Raises:
        XmlParseError: If an entry has no ``Filename``.
    """
    root = _parse_document(body)
    entries = []
    for elem in _iter_elems(root, "DirectoryEntry"):
        name_elem = _find_elem(elem, "Filename")
        if name_elem is None:
            raise XmlParseError("Could not find object name in directory entry")
        name = _text(name_elem)

        entry = DirectoryEntry(path=ObjectPath(""))
        oid = _find_elem(elem, "ObjectID")
        if oid is not None:
            entry.id = ObjectId(_text(oid).strip())
        entry.type = _child_text(elem, "FileType")
        if entry.type == "directory":
            name += "/"
        entry.path = ObjectPath(directory.path + name)

        system_meta = _find_elem(elem, "SystemMetadataList")
        if system_meta is not None:
            entry.system_metadata = _parse_metadata_list(system_meta, with_listable=False)
        user_meta = _find_elem(elem, "UserMetadataList")
        if user_meta is not None:
            entry.user_metadata = _parse_metadata_list(user_meta, with_listable=True)
        entries.append(entry)
    logger.debug("Found %d entries in directory %s", len(entries), directory)
    return entries


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


def parse_error(body: bytes | str) -> tuple[int, str] | None:
    """Extract the service error code and message from an error body.

    Returns:
        ``(code, message)``, or ``None`` when the body is not XML, lacks a
        ``Code`` or ``Message`` element, or has a non-numeric code.
    """
    try:
        root = _parse_document(body)
    except XmlParseError:
        return None

    code_elem = next(_iter_elems(root, "Code"), None)
    message_elem = next(_iter_elems(root, "Message"), None)
    if code_elem is None or message_elem is None:
        return None
    try:
        code = int(_text(code_elem).strip())
    except ValueError:
        return None
    return code, _text(message_elem)


# ---------------------------------------------------------------------------
# Service and object information
# ---------------------------------------------------------------------------


def parse_service_information(
    body: bytes | str, utf8_header: str | None = None, features_header: str | None = None
) -> ServiceInformation:
    """Parse a service information response.

    Args:
        body: The XML response body holding the ``Atmos`` version element.
        utf8_header: Value of the ``x-emc-support-utf8`` response header.
        features_header: Value of the ``x-emc-features`` response header.
    """
    root = _parse_document(body)
    info = ServiceInformation()
    for elem in _iter_elems(root, "Atmos"):
        info.atmos_version = _text(elem).strip()
    info.unicode_metadata_supported = utf8_header == "true"
    if features_header:
        info.features.update(f.strip() for f in features_header.split(",") if f.strip())
    return info


def parse_object_info(body: bytes | str) -> ObjectInfo:
    """Parse a ``GetObjectInfoResponse`` document.

    Unknown child elements are skipped.

    Raises:
        XmlParseError: If the root element is missing or a date is invalid.
    """
    text = body.decode("utf-8") if isinstance(body, bytes) else body
    root = _parse_document(text)
    response = next(_iter_elems(root, "GetObjectInfoResponse"), None)
    if response is None:
        raise XmlParseError("No GetObjectInfoResponse element in object info")

    info = ObjectInfo(raw_xml=text)
    for child in response:
        tag = _local_name(child.tag)
        if tag == "objectId":
            info.object_id = ObjectId(_text(child).strip())
        elif tag == "selection":
            info.selection = _text(child)
        elif tag == "replicas":
            info.replicas = [
                _parse_replica(rep) for rep in child if _local_name(rep.tag) == "replica"
            ]
        elif tag == "retention":
            enabled, end_at = _parse_policy(child)
            info.retention = ObjectRetention(enabled, end_at)
        elif tag == "expiration":
            enabled, end_at = _parse_policy(child)
            info.expiration = ObjectExpiration(enabled, end_at)
        else:
            logger.debug("Skipping object info element %s", tag)
    return info


def _parse_replica(elem: ET.Element) -> ObjectReplica:
    return ObjectReplica(
        id=_child_text(elem, "id"),
        replica_type=_child_text(elem, "type"),
        current=_child_text(elem, "current") == "true",
        location=_child_text(elem, "location"),
        storage_type=_child_text(elem, "storageType"),
    )


def _parse_policy(elem: ET.Element) -> tuple[bool, datetime | None]:
    """Parse the ``enabled``/``endAt`` pair of a retention or expiration."""
    enabled = _child_text(elem, "enabled") == "true"
    end_at = _child_text(elem, "endAt").strip()
    if not end_at:
        return enabled, None
    try:
        return enabled, datetime.fromisoformat(end_at.replace("Z", "+00:00"))
    except ValueError as e:
        raise XmlParseError(f"Invalid date in object info: {end_at!r}") from e
