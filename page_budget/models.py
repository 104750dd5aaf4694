"""Data models for the page resource summary."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class BudgetResourceType(str, Enum):
    STYLESHEET = "stylesheet"
    IMAGE = "image"
    MEDIA = "media"
    FONT = "font"
    SCRIPT = "script"
    DOCUMENT = "document"
    OTHER = "other"
    TOTAL = "total"
    THIRD_PARTY = "third-party"


class ProtocolResourceType(str, Enum):
    """Resource types reported by the browser's network domain."""

    DOCUMENT = "Document"
    STYLESHEET = "Stylesheet"
    IMAGE = "Image"
    MEDIA = "Media"
    FONT = "Font"
    SCRIPT = "Script"
    TEXT_TRACK = "TextTrack"
    XHR = "XHR"
    FETCH = "Fetch"
    PREFETCH = "Prefetch"
    EVENT_SOURCE = "EventSource"
    WEB_SOCKET = "WebSocket"
    MANIFEST = "Manifest"
    SIGNED_EXCHANGE = "SignedExchange"
    PING = "Ping"
    CSP_VIOLATION_REPORT = "CSPViolationReport"
    PREFLIGHT = "Preflight"
    OTHER = "Other"


@dataclass
class NetworkRequestRecord:
    url: str
    resource_type: str | None = None
    resource_size: int | None = 0
    transfer_size: int | None = 0
    protocol: str = ""
    request_id: str = ""
    mime_type: str | None = None
    status_code: int | None = None
    finished: bool = False
    failed: bool = False
    from_cache: bool = False
    redirect_destination: NetworkRequestRecord | None = field(default=None, repr=False, compare=False)


@dataclass
class LinkElement:
    rel: str | None = None
    href: str | None = None


@dataclass
class URLArtifact:
    requested_url: str | None = None
    main_document_url: str | None = None
    final_displayed_url: str = ""


@dataclass
class ResourceEntry:
    count: int = 0
    resource_size: int = 0
    transfer_size: int = 0

    def add(self, record: NetworkRequestRecord) -> None:
        """Count one request and its sizes into this entry."""
        self.count += 1
        self.resource_size += record.resource_size or 0
        self.transfer_size += record.transfer_size or 0

    def __add__(self, other: ResourceEntry) -> ResourceEntry:
        return ResourceEntry(
            count=self.count + other.count,
            resource_size=self.resource_size + other.resource_size,
            transfer_size=self.transfer_size + other.transfer_size,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "count": self.count,
            "resourceSize": self.resource_size,
            "transferSize": self.transfer_size,
        }


@dataclass
class ResourceSummary:
    """Per-bucket request counts and byte totals for one page load.

    Always holds an entry for every BudgetResourceType.
    """

    entries: dict[BudgetResourceType, ResourceEntry] = field(
        default_factory=lambda: {t: ResourceEntry() for t in BudgetResourceType}
    )

    @classmethod
    def empty(cls) -> ResourceSummary:
        return cls()

    def __getitem__(self, resource_type: BudgetResourceType | str) -> ResourceEntry:
        return self.entries[BudgetResourceType(resource_type)]

    def __add__(self, other: ResourceSummary) -> ResourceSummary:
        return ResourceSummary(
            entries={t: self.entries[t] + other.entries[t] for t in BudgetResourceType}
        )

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {t.value: self.entries[t].to_dict() for t in BudgetResourceType}


# ── Entity classification ──

@dataclass
class Entity:
    name: str
    domains: list[str] = field(default_factory=list)
    homepage: str | None = None
    categories: list[str] = field(default_factory=list)
    is_unrecognized: bool = False


@dataclass
class EntityClassification:
    entity_by_url: dict[str, Entity] = field(default_factory=dict)
    urls_by_entity: dict[str, list[str]] = field(default_factory=dict)
    first_party: Entity | None = None

    def is_first_party(self, url: str) -> bool:
        entity = self.entity_by_url.get(url)
        if entity is None or self.first_party is None:
            return False
        return entity.name == self.first_party.name
