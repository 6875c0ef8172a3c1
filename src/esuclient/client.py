"""ESU REST storage client.

``EsuClient`` maps each storage operation onto a single signed HTTP
request: it builds the x-emc headers, signs them, hands the request to a
``Transport`` and decodes the response headers or body. Every call is
independent; the client holds no per-request state and may be shared
between threads.
"""

import email.utils
import logging
import re
import time
import urllib.parse
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO

from esuclient import metrics
from esuclient.auth import RequestSigner
from esuclient.checksum import Checksum
from esuclient.config import EsuClientConfig
from esuclient.errors import (
    EsuError,
    HttpStatusError,
    MultipartError,
    ParseError,
    ServiceError,
)
from esuclient.headers import (
    CHECKSUM_HEADER,
    LISTABLE_TAGS_HEADER,
    TAGS_HEADER,
    UTF8_HEADER,
    decode_acl_headers,
    decode_metadata_headers,
    decode_tag_headers,
    decode_tags,
    encode_acl,
    encode_metadata,
    encode_tags,
    format_range,
    utf8_encode,
)
from esuclient.logging_config import request_extra
from esuclient.models import (
    Acl,
    DirectoryEntry,
    Extent,
    Identifier,
    ListOptions,
    MetadataList,
    MetadataTag,
    MetadataTags,
    ObjectId,
    ObjectInfo,
    ObjectKey,
    ObjectMetadata,
    ObjectPath,
    ObjectResult,
    ServiceInformation,
)
from esuclient.multipart import MultipartEntity, parse_boundary
from esuclient.transport import HttpxTransport, Transport, TransportResponse
from esuclient.xml_utils import (
    parse_directory_listing,
    parse_error,
    parse_object_info,
    parse_object_list,
    parse_object_list_with_metadata,
    parse_service_information,
    parse_version_list,
)

logger = logging.getLogger(__name__)

# Constants
DEFAULT_CONTEXT = "/rest"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
OBJECT_ID_PATTERN = re.compile(r"/[0-9a-zA-Z]+/objects/([0-9a-f]{44})")

Body = bytes | bytearray | memoryview


@dataclass
class ReadObjectStreamResponse:
    """An object read whose content is left on the open response stream.

    The caller must close the response (or use it as a context manager)
    once the content has been consumed.

    Attributes:
        content: The response body stream.
        content_type: The object's MIME type.
        length: Content-Length of the body, when the service sent one.
        metadata: The object's user metadata.
        acl: The object's ACL.
        extent: The extent that was requested, or None for the whole object.
    """

    content: BinaryIO
    content_type: str | None
    length: int | None
    metadata: MetadataList
    acl: Acl
    extent: Extent | None = None

    def read(self, size: int = -1) -> bytes:
        return self.content.read(size)

    def close(self) -> None:
        self.content.close()

    def __enter__(self) -> "ReadObjectStreamResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class EsuClient:
    """Client for the ESU object storage REST API.

    Args:
        host: Service host name.
        port: Service port.
        uid: The ``subtenant/uid`` identity to authenticate as.
        shared_secret: The uid's Base64-encoded shared secret.
        protocol: ``http`` or ``https``; defaults to https on port 443 and
            http otherwise.
        context: Path prefix of the REST API.
        transport: Transport to send requests through; an httpx transport
            is created when omitted.
        server_offset: Seconds to add to the local clock when dating
            requests (see ``calculate_server_offset``).
        custom_headers: Extra headers added to every request after signing.
        timeout: Request timeout for the default transport.
        utf8: Percent-encode metadata, tag names and rename targets and
            send ``x-emc-utf8: true`` so non-ASCII values survive.
    """

    def __init__(
        self,
        host: str,
        port: int,
        uid: str,
        shared_secret: str,
        protocol: str | None = None,
        context: str = DEFAULT_CONTEXT,
        transport: Transport | None = None,
        server_offset: int = 0,
        custom_headers: Mapping[str, str] | None = None,
        timeout: float = 60.0,
        utf8: bool = False,
    ) -> None:
        self.host = host
        self.port = port
        self.uid = uid
        self.protocol = protocol or ("https" if port == 443 else "http")
        self.context = context
        self.server_offset = server_offset
        self.custom_headers = dict(custom_headers or {})
        self.utf8 = utf8
        self._signer = RequestSigner(shared_secret)
        self._owns_transport = transport is None
        self._transport = transport if transport is not None else HttpxTransport(timeout=timeout)

    @classmethod
    def from_config(cls, config: EsuClientConfig, transport: Transport | None = None) -> "EsuClient":
        """Build a client from a loaded configuration.

        Metrics are initialised when the configuration enables them.
        """
        conn = config.connection
        if config.observability.metrics:
            metrics.init_metrics()
        return cls(
            host=conn.host,
            port=conn.port,
            uid=conn.uid,
            shared_secret=conn.shared_secret,
            protocol=conn.protocol,
            context=conn.context,
            transport=transport,
            server_offset=conn.server_offset,
            custom_headers=conn.custom_headers,
            timeout=conn.timeout,
            utf8=conn.utf8,
        )

    def close(self) -> None:
        if self._owns_transport:
            self._transport.close()

    def __enter__(self) -> "EsuClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- Object creation ------------------------------------------------------

    def create_object(
        self,
        acl: Acl | None = None,
        metadata: MetadataList | None = None,
        data: Body | None = None,
        mime_type: str | None = None,
        checksum: Checksum | None = None,
    ) -> ObjectId:
        """Create an object and return its service-assigned id.

        Args:
            acl: ACL for the new object, or None for the service default.
            metadata: User metadata for the new object.
            data: Initial content; None creates an empty object.
            mime_type: Content type; defaults to application/octet-stream.
            checksum: Running checksum to advance over ``data`` and send as
                ``x-emc-wschecksum``. Pass the same object to the updates
                that append the rest of the content.

        Raises:
            EsuError: If the request fails or no id is returned.
        """
        return self._create(
            f"{self.context}/objects", None, acl, metadata, data, mime_type, checksum
        )

    def create_object_on_path(
        self,
        path: ObjectPath,
        acl: Acl | None = None,
        metadata: MetadataList | None = None,
        data: Body | None = None,
        mime_type: str | None = None,
        checksum: Checksum | None = None,
    ) -> ObjectId:
        """Create an object at a namespace path."""
        return self._create(
            path.resource_path(self.context), path, acl, metadata, data, mime_type, checksum
        )

    def create_object_with_key(
        self,
        key: ObjectKey,
        acl: Acl | None = None,
        metadata: MetadataList | None = None,
        data: Body | None = None,
        mime_type: str | None = None,
        checksum: Checksum | None = None,
    ) -> ObjectId:
        """Create an object under a key in a pool."""
        return self._create(
            key.resource_path(self.context), key, acl, metadata, data, mime_type, checksum
        )

    def _create(
        self,
        resource: str,
        identifier: Identifier | None,
        acl: Acl | None,
        metadata: MetadataList | None,
        data: Body | None,
        mime_type: str | None,
        checksum: Checksum | None = None,
    ) -> ObjectId:
        headers = {"Content-Type": mime_type or DEFAULT_CONTENT_TYPE}
        headers.update(self._content_headers(acl, metadata))
        headers.update(_checksum_header(checksum, data))
        response_headers, _ = self._call(
            "POST", resource, headers, body=data if data is not None else b"", identifier=identifier
        )
        object_id = _object_id_from_location(response_headers.get("location"))
        logger.debug(
            "Created object %s",
            object_id,
            extra=request_extra("POST", resource, object_id=object_id.value),
        )
        return object_id

    # -- Content --------------------------------------------------------------

    def update_object(
        self,
        identifier: Identifier,
        acl: Acl | None = None,
        metadata: MetadataList | None = None,
        extent: Extent | None = None,
        data: Body | None = None,
        mime_type: str | None = None,
        checksum: Checksum | None = None,
    ) -> None:
        """Replace an object's content, or a range of it.

        Args:
            identifier: The object to update.
            acl: New ACL, or None to leave it unchanged.
            metadata: User metadata to set, or None.
            extent: The range to overwrite; None replaces the whole content.
            data: The new content.
            mime_type: Content type; defaults to application/octet-stream.
            checksum: Running checksum, advanced over ``data`` and sent as
                ``x-emc-wschecksum``.
        """
        headers = {"Content-Type": mime_type or DEFAULT_CONTENT_TYPE}
        byte_range = format_range(extent) if extent is not None else None
        if byte_range:
            headers["Range"] = byte_range
        headers.update(self._content_headers(acl, metadata))
        headers.update(_checksum_header(checksum, data))
        self._call(
            "PUT",
            identifier.resource_path(self.context),
            headers,
            body=data if data is not None else b"",
            identifier=identifier,
        )

    def read_object(self, identifier: Identifier, extent: Extent | None = None) -> bytes:
        """Read an object's content, or a range of it."""
        _, data = self._call(
            "GET",
            identifier.resource_path(self.context),
            self._range_headers(extent),
            identifier=identifier,
        )
        return data

    def read_object_stream(
        self, identifier: Identifier, extent: Extent | None = None
    ) -> ReadObjectStreamResponse:
        """Read an object, returning its content as an open stream.

        The returned response also carries the object's metadata and ACL,
        which the service sends with every read.
        """
        response = self._send(
            "GET",
            identifier.resource_path(self.context),
            self._range_headers(extent),
            identifier=identifier,
        )
        try:
            metadata = decode_metadata_headers(response.headers, self.utf8)
            acl = decode_acl_headers(response.headers)
        except ParseError:
            response.stream.close()
            raise
        length = response.headers.get("Content-Length")
        return ReadObjectStreamResponse(
            content=response.stream,
            content_type=response.headers.get("Content-Type"),
            length=int(length) if length else None,
            metadata=metadata,
            acl=acl,
            extent=extent,
        )

    def read_object_extents(self, identifier: Identifier, *extents: Extent) -> MultipartEntity:
        """Read several ranges of an object in one multipart request.

        Raises:
            EsuError: If no extents are given.
            MultipartError: If the response is not a multipart body.
        """
        if not extents:
            raise EsuError("At least one extent is required")
        response = self._send(
            "GET",
            identifier.resource_path(self.context),
            {"Range": format_range(*extents)},
            identifier=identifier,
        )
        content_type = response.headers.get("Content-Type")
        try:
            boundary = parse_boundary(content_type)
        except MultipartError as e:
            response.stream.close()
            raise MultipartError(
                f"Expected multipart response, but instead got {content_type}"
            ) from e
        return MultipartEntity.from_stream(response.stream, boundary)

    def delete_object(self, identifier: Identifier) -> None:
        self._call("DELETE", identifier.resource_path(self.context), {}, identifier=identifier)

    # -- Metadata -------------------------------------------------------------

    def get_user_metadata(
        self, identifier: Identifier, tags: Iterable[MetadataTag] | None = None
    ) -> MetadataList:
        """Fetch an object's user metadata, optionally restricted to tags."""
        headers = encode_tags(tags, self.utf8) if tags is not None else {}
        response_headers, _ = self._call(
            "GET",
            identifier.resource_path(self.context) + "?metadata/user",
            headers,
            identifier=identifier,
        )
        return decode_metadata_headers(response_headers, self.utf8)

    def get_system_metadata(
        self, identifier: Identifier, tags: Iterable[MetadataTag] | None = None
    ) -> MetadataList:
        """Fetch an object's system metadata (size, ctime, ...)."""
        headers = encode_tags(tags, self.utf8) if tags is not None else {}
        response_headers, _ = self._call(
            "GET",
            identifier.resource_path(self.context) + "?metadata/system",
            headers,
            identifier=identifier,
        )
        return decode_metadata_headers(response_headers, self.utf8)

    def set_user_metadata(self, identifier: Identifier, metadata: MetadataList) -> None:
        self._call(
            "POST",
            identifier.resource_path(self.context) + "?metadata/user",
            encode_metadata(metadata, self.utf8),
            identifier=identifier,
        )

    def delete_user_metadata(self, identifier: Identifier, tags: Iterable[MetadataTag]) -> None:
        """Delete the named user metadata entries.

        Raises:
            EsuError: If tags is None.
        """
        if tags is None:
            raise EsuError("tags may not be None")
        self._call(
            "DELETE",
            identifier.resource_path(self.context) + "?metadata/user",
            encode_tags(tags, self.utf8),
            identifier=identifier,
        )

    def get_all_metadata(self, identifier: Identifier) -> ObjectMetadata:
        """Fetch an object's user metadata and ACL with a single HEAD request."""
        response_headers, _ = self._call(
            "HEAD", identifier.resource_path(self.context), {}, identifier=identifier
        )
        return ObjectMetadata(
            metadata=decode_metadata_headers(response_headers, self.utf8),
            acl=decode_acl_headers(response_headers),
        )

    # -- ACLs -----------------------------------------------------------------

    def get_acl(self, identifier: Identifier) -> Acl:
        response_headers, _ = self._call(
            "GET", identifier.resource_path(self.context) + "?acl", {}, identifier=identifier
        )
        return decode_acl_headers(response_headers)

    def set_acl(self, identifier: Identifier, acl: Acl) -> None:
        self._call(
            "POST",
            identifier.resource_path(self.context) + "?acl",
            encode_acl(acl),
            identifier=identifier,
        )

    # -- Tags -----------------------------------------------------------------

    def list_user_metadata_tags(self, identifier: Identifier) -> MetadataTags:
        """List the names of an object's user metadata, listable or not."""
        response_headers, _ = self._call(
            "GET",
            identifier.resource_path(self.context) + "?metadata/tags",
            {},
            identifier=identifier,
        )
        return decode_tag_headers(response_headers, self.utf8)

    def get_listable_tags(self, tag: MetadataTag | str | None = None) -> MetadataTags:
        """List the listable tags below a parent tag, or the top-level tags."""
        headers = {}
        if tag is not None:
            headers[TAGS_HEADER] = self._tag_header(tag)
        response_headers, _ = self._call(
            "GET", f"{self.context}/objects?listabletags", headers
        )
        return decode_tags(response_headers.get(LISTABLE_TAGS_HEADER), True, utf8=self.utf8)

    # -- Listing and query ----------------------------------------------------

    def list_objects(
        self, tag: MetadataTag | str, options: ListOptions | None = None
    ) -> list[ObjectResult]:
        """List the objects indexed under a listable tag.

        Args:
            tag: The listable tag to list.
            options: Paging and metadata options. Its token is updated in
                place; when it is None after the call, all results were read.

        Returns:
            The matching objects; metadata is populated only when requested
            through ``options.include_metadata``.
        """
        include_metadata = options is not None and options.include_metadata
        return self._list_objects(tag, options, include_metadata)

    def list_objects_with_metadata(
        self, tag: MetadataTag | str, options: ListOptions | None = None
    ) -> list[ObjectResult]:
        """List the objects under a listable tag together with their metadata."""
        return self._list_objects(tag, options, include_metadata=True)

    def _list_objects(
        self, tag: MetadataTag | str, options: ListOptions | None, include_metadata: bool
    ) -> list[ObjectResult]:
        if tag is None:
            raise EsuError("tag may not be None")
        headers = {TAGS_HEADER: self._tag_header(tag)}
        if include_metadata:
            headers["x-emc-include-meta"] = "1"
        headers.update(_list_option_headers(options, include_metadata))

        response_headers, body = self._call("GET", f"{self.context}/objects", headers)
        _update_token(options, response_headers)
        if include_metadata:
            return parse_object_list_with_metadata(body)
        return [ObjectResult(oid) for oid in parse_object_list(body)]

    def query_objects(self, xquery: str) -> list[ObjectId]:
        """Run an XQuery against object metadata and return matching ids."""
        _, body = self._call("GET", f"{self.context}/objects", {"x-emc-xquery": xquery})
        return parse_object_list(body)

    def list_directory(
        self, path: ObjectPath, options: ListOptions | None = None
    ) -> list[DirectoryEntry]:
        """List the entries of a namespace directory.

        Raises:
            EsuError: If the path is not a directory (no trailing ``/``).
        """
        if not path.is_directory():
            raise EsuError("list_directory must be called with a directory path")
        headers = {}
        include_metadata = options is not None and options.include_metadata
        if include_metadata:
            headers["x-emc-include-meta"] = "true"
        headers.update(_list_option_headers(options, include_metadata))

        response_headers, body = self._call(
            "GET", path.resource_path(self.context), headers, identifier=path
        )
        _update_token(options, response_headers)
        return parse_directory_listing(body, path)

    # -- Versions -------------------------------------------------------------

    def list_versions(self, identifier: Identifier) -> list[ObjectId]:
        _, body = self._call(
            "GET", identifier.resource_path(self.context) + "?versions", {}, identifier=identifier
        )
        return parse_version_list(body)

    def version_object(self, identifier: Identifier) -> ObjectId:
        """Snapshot an object as a new immutable version and return its id."""
        response_headers, _ = self._call(
            "POST", identifier.resource_path(self.context) + "?versions", {}, identifier=identifier
        )
        return _object_id_from_location(response_headers.get("location"))

    def delete_version(self, version_id: ObjectId) -> None:
        self._call("DELETE", version_id.resource_path(self.context) + "?versions", {})

    def restore_version(self, identifier: ObjectId, version_id: ObjectId) -> None:
        """Restore an object's content from one of its versions."""
        self._call(
            "PUT",
            identifier.resource_path(self.context) + "?versions",
            {"x-emc-version-oid": version_id.value},
        )

    # -- Namespace ------------------------------------------------------------

    def rename(self, source: ObjectPath, destination: ObjectPath, force: bool = False) -> None:
        """Rename a namespace object.

        Args:
            source: Current path of the object.
            destination: New path.
            force: Overwrite an existing object at the destination.
        """
        target = destination.path.removeprefix("/")
        headers = {"x-emc-path": utf8_encode(target) if self.utf8 else target}
        if force:
            headers["x-emc-force"] = "true"
        self._call("POST", source.resource_path(self.context) + "?rename", headers)

    # -- Service and object information ---------------------------------------

    def get_service_information(self) -> ServiceInformation:
        response_headers, body = self._call("GET", f"{self.context}/service", {})
        return parse_service_information(
            body,
            utf8_header=response_headers.get("x-emc-support-utf8"),
            features_header=response_headers.get("x-emc-features"),
        )

    def get_object_info(self, identifier: Identifier) -> ObjectInfo:
        """Fetch replica, retention and expiration details for an object."""
        _, body = self._call(
            "GET", identifier.resource_path(self.context) + "?info", {}, identifier=identifier
        )
        return parse_object_info(body)

    # -- Shareable URLs and clock ---------------------------------------------

    def get_shareable_url(
        self,
        identifier: Identifier,
        expiration: datetime | int,
        disposition: str | None = None,
    ) -> str:
        """Build a pre-signed URL granting anonymous GET access until expiration.

        Args:
            identifier: The object to share.
            expiration: Expiry as a datetime or Unix seconds.
            disposition: Optional Content-Disposition for the download.

        Raises:
            EsuError: If the identifier is an ObjectKey.
        """
        if isinstance(identifier, ObjectKey):
            raise EsuError("Shareable URLs are not supported for object keys")
        if isinstance(expiration, datetime):
            if expiration.tzinfo is None:
                expiration = expiration.replace(tzinfo=timezone.utc)
            expires = int(expiration.timestamp())
        else:
            expires = int(expiration)

        resource = identifier.resource_path(self.context)
        query = self._signer.shareable_url_query(resource, self.uid, expires, disposition)
        return f"{self._base_url()}{_quote_path(resource)}?{query}"

    def calculate_server_offset(self) -> int:
        """Estimate the service clock offset in seconds.

        Sends an unsigned request and compares the response Date header,
        of any status, with the local clock.

        Returns:
            Server time minus local time in seconds; 0 when no Date header
            was returned.
        """
        resource = self.context + "/"
        url = f"{self._base_url()}{_quote_path(resource)}"
        start = time.monotonic()
        try:
            response = self._transport.send("GET", url, {})
        except EsuError:
            metrics.record_request("GET", "error")
            raise
        duration_ms = round((time.monotonic() - start) * 1000, 2)
        metrics.record_request("GET", response.status_code)
        logger.debug(
            "GET %s -> %d (%.1f ms)",
            resource,
            response.status_code,
            duration_ms,
            extra=request_extra("GET", resource, response.status_code, duration_ms),
        )
        try:
            server_date = response.headers.get("Date")
        finally:
            response.stream.close()
        if not server_date:
            return 0
        server_time = email.utils.parsedate_to_datetime(server_date)
        offset = int((server_time - datetime.now(timezone.utc)).total_seconds())
        logger.debug("Server clock offset is %d seconds", offset)
        return offset

    # -- Request plumbing -----------------------------------------------------

    def _content_headers(self, acl: Acl | None, metadata: MetadataList | None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if acl is not None:
            headers.update(encode_acl(acl))
        if metadata is not None:
            headers.update(encode_metadata(metadata, self.utf8))
        return headers

    def _tag_header(self, tag: MetadataTag | str) -> str:
        name = _tag_name(tag)
        return utf8_encode(name) if self.utf8 else name

    @staticmethod
    def _range_headers(extent: Extent | None) -> dict[str, str]:
        byte_range = format_range(extent) if extent is not None else None
        return {"Range": byte_range} if byte_range else {}

    def _base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    def _call(
        self,
        method: str,
        resource: str,
        headers: dict[str, str],
        body: Body | None = None,
        identifier: Identifier | None = None,
    ) -> tuple[Mapping[str, str], bytes]:
        """Send a request and read the whole response body."""
        response = self._send(method, resource, headers, body, identifier)
        try:
            data = response.stream.read()
        finally:
            response.stream.close()
        metrics.record_bytes_received(len(data))
        return response.headers, data

    def _send(
        self,
        method: str,
        resource: str,
        headers: dict[str, str],
        body: Body | None = None,
        identifier: Identifier | None = None,
    ) -> TransportResponse:
        """Sign and send a request, raising on an error status.

        On success the response body stream is left open for the caller.
        """
        headers["x-emc-uid"] = self.uid
        if self.utf8:
            headers[UTF8_HEADER] = "true"
        if isinstance(identifier, ObjectKey):
            headers["x-emc-pool"] = identifier.pool
        headers["Date"] = email.utils.formatdate(time.time() + self.server_offset, usegmt=True)
        self._signer.sign_request(method, resource, headers)
        headers.update(self.custom_headers)

        path, sep, query = resource.partition("?")
        url = f"{self._base_url()}{_quote_path(path)}{sep}{query}"
        sent = len(body) if body is not None else 0

        start = time.monotonic()
        try:
            response = self._transport.send(method, url, headers, body)
        except EsuError:
            metrics.record_request(method, "error")
            raise
        duration_ms = round((time.monotonic() - start) * 1000, 2)
        metrics.record_request(method, response.status_code, bytes_sent=sent)

        extra = request_extra(method, resource, response.status_code, duration_ms)
        if response.status_code > 299:
            logger.warning(
                "%s %s failed with status %d", method, resource, response.status_code, extra=extra
            )
            _raise_for_error(response)
        logger.debug(
            "%s %s -> %d (%.1f ms)", method, resource, response.status_code, duration_ms, extra=extra
        )
        return response


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _raise_for_error(response: TransportResponse) -> None:
    """Turn an error response into a ServiceError or HttpStatusError."""
    try:
        body = response.stream.read()
    finally:
        response.stream.close()
    parsed = parse_error(body)
    if parsed is None:
        raise HttpStatusError(response.status_code, response.reason)
    code, message = parsed
    raise ServiceError(message, code, http_status=response.status_code)


def _object_id_from_location(location: str | None) -> ObjectId:
    """Extract the new object id from a ``location`` response header.

    Raises:
        ParseError: If the header is missing or holds no object id.
    """
    match = OBJECT_ID_PATTERN.search(location or "")
    if match is None:
        raise ParseError(f"Could not find ObjectId in {location!r}")
    return ObjectId(match.group(1))


def _checksum_header(checksum: Checksum | None, data: Body | None) -> dict[str, str]:
    """Advance a running checksum over a request body and render its header."""
    if checksum is None:
        return {}
    checksum.update(data if data is not None else b"")
    return {CHECKSUM_HEADER: str(checksum)}


def _quote_path(path: str) -> str:
    return urllib.parse.quote(path, safe="/")


def _tag_name(tag: MetadataTag | str) -> str:
    return tag.name if isinstance(tag, MetadataTag) else tag


def _list_option_headers(options: ListOptions | None, include_metadata: bool) -> dict[str, str]:
    """Paging and metadata-selection headers for list requests."""
    headers: dict[str, str] = {}
    if options is None:
        return headers
    if include_metadata:
        if options.system_metadata is not None:
            headers["x-emc-system-tags"] = ",".join(options.system_metadata)
        if options.user_metadata is not None:
            headers["x-emc-user-tags"] = ",".join(options.user_metadata)
    if options.limit > 0:
        headers["x-emc-limit"] = str(options.limit)
    if options.token is not None:
        headers["x-emc-token"] = options.token
    return headers


def _update_token(options: ListOptions | None, headers: Mapping[str, str]) -> None:
    """Store the continuation token from a list response in the options."""
    token = headers.get("x-emc-token")
    if options is not None:
        options.token = token
    elif token is not None:
        logger.warning(
            "Results truncated. Pass ListOptions to retrieve the token for more results"
        )
