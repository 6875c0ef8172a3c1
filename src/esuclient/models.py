"""Data model types for the ESU client.

These classes represent the entities exchanged with the storage service:
byte extents, object identifiers, user metadata and tags, access control
lists, and the result containers returned by list and info operations.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime

# ---------------------------------------------------------------------------
# Extents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Extent:
    """A byte range within an object's content.

    Attributes:
        offset: Zero-based offset of the first byte.
        size: Number of bytes in the range.
    """

    offset: int
    size: int

    @property
    def end(self) -> int:
        """Offset of the last byte in the range (inclusive)."""
        return self.offset + self.size - 1

    def __str__(self) -> str:
        return f"Extent: offset: {self.offset} size: {self.size}"


# Sentinel meaning "the entire object".
ALL_CONTENT = Extent(-1, -1)


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ObjectId:
    """An object addressed by its service-assigned identifier."""

    value: str

    def resource_path(self, context: str) -> str:
        return f"{context}/objects/{self.value}"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ObjectPath:
    """An object addressed by its namespace path.

    A path ending in ``/`` denotes a directory.
    """

    path: str

    def resource_path(self, context: str) -> str:
        return f"{context}/namespace{self.path}"

    def is_directory(self) -> bool:
        return self.path.endswith("/")

    @property
    def filename(self) -> str:
        """The last path component, without a trailing slash."""
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class ObjectKey:
    """An object addressed by a key inside a bucket-like pool.

    Requests using a key also carry the pool in the ``x-emc-pool`` header.
    """

    pool: str
    key: str

    def resource_path(self, context: str) -> str:
        return f"{context}/namespace/{self.key}"

    def __str__(self) -> str:
        return f"ObjectKey{{pool={self.pool}, key={self.key}}}"


Identifier = ObjectId | ObjectPath | ObjectKey


# ---------------------------------------------------------------------------
# Metadata and tags
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Metadata:
    """A single user or system metadata name/value pair."""

    name: str
    value: str
    listable: bool = False

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


class MetadataList:
    """A collection of metadata entries keyed by unique name."""

    def __init__(self, entries: Iterable[Metadata] = ()) -> None:
        self._meta: dict[str, Metadata] = {}
        for entry in entries:
            self.add(entry)

    def add(self, metadata: Metadata) -> None:
        """Add an entry.

        Raises:
            ValueError: If an entry with the same name is already present.
        """
        if metadata.name in self._meta:
            raise ValueError(f"Duplicate metadata name: {metadata.name}")
        self._meta[metadata.name] = metadata

    def get(self, name: str) -> Metadata | None:
        return self._meta.get(name)

    def __getitem__(self, name: str) -> Metadata:
        return self._meta[name]

    def __contains__(self, name: object) -> bool:
        return name in self._meta

    def __iter__(self) -> Iterator[Metadata]:
        return iter(self._meta.values())

    def __len__(self) -> int:
        return len(self._meta)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MetadataList):
            return NotImplemented
        return self._meta == other._meta

    def __repr__(self) -> str:
        return f"MetadataList({list(self._meta.values())!r})"


@dataclass(frozen=True)
class MetadataTag:
    """A metadata name used to select or delete metadata entries."""

    name: str
    listable: bool = False


class MetadataTags:
    """A set of metadata tags keyed by name; re-adding a name is a no-op."""

    def __init__(self, tags: Iterable[MetadataTag] = ()) -> None:
        self._tags: dict[str, MetadataTag] = {}
        for tag in tags:
            self.add(tag)

    def add(self, tag: MetadataTag) -> None:
        self._tags.setdefault(tag.name, tag)

    def remove(self, tag: MetadataTag | str) -> None:
        name = tag if isinstance(tag, str) else tag.name
        self._tags.pop(name, None)

    def get(self, name: str) -> MetadataTag | None:
        return self._tags.get(name)

    def __contains__(self, tag: object) -> bool:
        name = tag.name if isinstance(tag, MetadataTag) else tag
        return name in self._tags

    def __iter__(self) -> Iterator[MetadataTag]:
        return iter(self._tags.values())

    def __len__(self) -> int:
        return len(self._tags)

    def __repr__(self) -> str:
        return f"MetadataTags({list(self._tags.values())!r})"


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------


class GranteeType(enum.Enum):
    USER = "USER"
    GROUP = "GROUP"


class Permission:
    """Permission values understood by the service."""

    READ = "READ"
    WRITE = "WRITE"
    FULL_CONTROL = "FULL_CONTROL"
    NONE = "NONE"


@dataclass(frozen=True)
class Grantee:
    """A user or group that can receive a grant."""

    name: str
    type: GranteeType

    def __str__(self) -> str:
        return self.name


# The group grantee that matches every other user.
OTHER = Grantee("other", GranteeType.GROUP)


@dataclass(frozen=True)
class Grant:
    """A permission given to a grantee."""

    grantee: Grantee
    permission: str

    def __str__(self) -> str:
        return f"{self.grantee.name}={self.permission}"


class Acl:
    """An ordered collection of unique grants.

    Two ACLs compare equal when they hold the same grants in any order.
    """

    def __init__(self, grants: Iterable[Grant] = ()) -> None:
        self._grants: list[Grant] = []
        for grant in grants:
            self.add(grant)

    def add(self, grant: Grant) -> None:
        if grant not in self._grants:
            self._grants.append(grant)

    def remove(self, grant: Grant) -> None:
        if grant in self._grants:
            self._grants.remove(grant)

    def clear(self) -> None:
        self._grants.clear()

    def __iter__(self) -> Iterator[Grant]:
        return iter(self._grants)

    def __len__(self) -> int:
        return len(self._grants)

    def __contains__(self, grant: object) -> bool:
        return grant in self._grants

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Acl):
            return NotImplemented
        return len(self._grants) == len(other._grants) and all(
            g in self._grants for g in other._grants
        )

    def __str__(self) -> str:
        return ", ".join(str(g) for g in self._grants)

    def __repr__(self) -> str:
        return f"Acl({self._grants!r})"


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass
class ObjectMetadata:
    """User metadata and ACL of an object, as returned by a HEAD request."""

    metadata: MetadataList = field(default_factory=MetadataList)
    acl: Acl = field(default_factory=Acl)


@dataclass
class ObjectResult:
    """One object from a list operation, with any requested metadata."""

    id: ObjectId
    metadata: MetadataList = field(default_factory=MetadataList)


@dataclass
class DirectoryEntry:
    """One entry of a namespace directory listing.

    Attributes:
        path: Full path of the entry; directories end with ``/``.
        id: The object id backing the entry.
        type: ``regular`` or ``directory``.
        system_metadata: System metadata, when requested.
        user_metadata: User metadata, when requested.
    """

    path: ObjectPath
    id: ObjectId | None = None
    type: str = ""
    system_metadata: MetadataList | None = None
    user_metadata: MetadataList | None = None


@dataclass
class ListOptions:
    """Paging and metadata options for list operations.

    ``token`` is updated in place after each call: it holds the continuation
    token returned by the service, or ``None`` once all results were read.
    """

    limit: int = 0
    token: str | None = None
    include_metadata: bool = False
    user_metadata: list[str] | None = None
    system_metadata: list[str] | None = None


@dataclass
class ServiceInformation:
    """Version and feature information advertised by the service."""

    atmos_version: str = ""
    unicode_metadata_supported: bool = False
    features: set[str] = field(default_factory=set)

    def has_feature(self, feature: str) -> bool:
        return feature in self.features


@dataclass
class ObjectReplica:
    id: str = ""
    replica_type: str = ""
    current: bool = False
    location: str = ""
    storage_type: str = ""


@dataclass
class ObjectRetention:
    enabled: bool = False
    end_at: datetime | None = None


@dataclass
class ObjectExpiration:
    enabled: bool = False
    end_at: datetime | None = None


@dataclass
class ObjectInfo:
    """Replica, retention and expiration details of an object."""

    object_id: ObjectId | None = None
    selection: str = ""
    replicas: list[ObjectReplica] = field(default_factory=list)
    retention: ObjectRetention | None = None
    expiration: ObjectExpiration | None = None
    raw_xml: str = ""
