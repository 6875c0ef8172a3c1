"""Client library for the ESU (Atmos) REST object storage API."""

from esuclient.checksum import Checksum
from esuclient.client import EsuClient, ReadObjectStreamResponse
from esuclient.errors import (
    EsuError,
    HeaderParseError,
    HttpStatusError,
    MultipartError,
    ParseError,
    ServiceError,
    TransferError,
    TransportError,
    XmlParseError,
)
from esuclient.models import (
    ALL_CONTENT,
    OTHER,
    Acl,
    DirectoryEntry,
    Extent,
    Grant,
    Grantee,
    GranteeType,
    ListOptions,
    Metadata,
    MetadataList,
    MetadataTag,
    MetadataTags,
    ObjectId,
    ObjectInfo,
    ObjectKey,
    ObjectMetadata,
    ObjectPath,
    ObjectResult,
    Permission,
    ServiceInformation,
)
from esuclient.transfer import (
    CompleteEvent,
    DownloadHelper,
    FailureEvent,
    ProgressEvent,
    UploadHelper,
)

__all__ = [
    "ALL_CONTENT",
    "Acl",
    "Checksum",
    "CompleteEvent",
    "DirectoryEntry",
    "DownloadHelper",
    "EsuClient",
    "EsuError",
    "Extent",
    "FailureEvent",
    "Grant",
    "Grantee",
    "GranteeType",
    "HeaderParseError",
    "HttpStatusError",
    "ListOptions",
    "Metadata",
    "MetadataList",
    "MetadataTag",
    "MetadataTags",
    "MultipartError",
    "OTHER",
    "ObjectId",
    "ObjectInfo",
    "ObjectKey",
    "ObjectMetadata",
    "ObjectPath",
    "ObjectResult",
    "ParseError",
    "Permission",
    "ProgressEvent",
    "ReadObjectStreamResponse",
    "ServiceError",
    "ServiceInformation",
    "TransferError",
    "TransportError",
    "UploadHelper",
    "XmlParseError",
]
