"""Page resource summary: request counts and byte totals per budget resource type.

Classifies each network request of a page load into a budget resource type
(stylesheet, image, media, font, script, document, other), and accumulates
counts, uncompressed sizes and transfer sizes per type, for the whole page
and for third-party requests.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .budget import Budget, get_matching_budget
from .models import (
    BudgetResourceType,
    EntityClassification,
    LinkElement,
    NetworkRequestRecord,
    ProtocolResourceType,
    ResourceSummary,
    URLArtifact,
)
from .utils import extract_hostname, get_root_domain, is_non_network_request, resolve_url

logger = logging.getLogger(__name__)

REQUEST_TO_RESOURCE_TYPE: dict[ProtocolResourceType, BudgetResourceType] = {
    ProtocolResourceType.STYLESHEET: BudgetResourceType.STYLESHEET,
    ProtocolResourceType.IMAGE: BudgetResourceType.IMAGE,
    ProtocolResourceType.MEDIA: BudgetResourceType.MEDIA,
    ProtocolResourceType.FONT: BudgetResourceType.FONT,
    ProtocolResourceType.SCRIPT: BudgetResourceType.SCRIPT,
    ProtocolResourceType.DOCUMENT: BudgetResourceType.DOCUMENT,
}

FAVICON_RELS = ("icon", "shortcut icon")


def determine_resource_type(record: NetworkRequestRecord) -> BudgetResourceType:
    """Map a request's protocol resource type to a budget resource type."""
    if not record.resource_type:
        return BudgetResourceType.OTHER
    try:
        protocol_type = ProtocolResourceType(record.resource_type)
    except ValueError:
        return BudgetResourceType.OTHER
    return REQUEST_TO_RESOURCE_TYPE.get(protocol_type, BudgetResourceType.OTHER)


def determine_favicon_urls(
    link_elements: Sequence[LinkElement],
    main_document_url: str | None,
) -> set[str]:
    """Return every URL the browser might request as the page favicon.

    The browser only needs one favicon, but it may try several candidates
    before finding a usable one, so all of them are returned. Without any
    declared icon link the browser probes /favicon.ico instead.
    """
    if not main_document_url:
        return set()

    icon_links = [
        link for link in link_elements
        if link.rel is not None and link.rel.strip() in FAVICON_RELS
    ]
    if not icon_links:
        return {resolve_url("/favicon.ico", main_document_url)}

    return {resolve_url(link.href, main_document_url) for link in icon_links if link.href}


def first_party_hosts(
    budget: Budget | None,
    classified_entities: EntityClassification | None,
    final_displayed_url: str,
) -> list[str]:
    """Host patterns that count as first-party for this page.

    An explicit budget list wins; otherwise the first-party entity's domains
    are used, falling back to the root domain of the displayed URL.
    """
    if budget is not None and budget.options.first_party_hostnames is not None:
        return list(budget.options.first_party_hostnames)

    first_party = classified_entities.first_party if classified_entities else None
    if first_party is not None and first_party.domains:
        return [f"*.{domain}" for domain in first_party.domains]

    root_domain = get_root_domain(final_displayed_url) if extract_hostname(final_displayed_url) else ""
    if not root_domain:
        return []
    return [f"*.{root_domain}"]


def is_first_party(url: str, host_patterns: Sequence[str]) -> bool:
    hostname = extract_hostname(url)
    if not hostname:
        return False
    for pattern in host_patterns:
        if pattern.startswith("*."):
            if pattern[2:] and hostname.endswith(pattern[2:]):
                return True
        elif hostname == pattern:
            return True
    return False


def _included_records(
    records: Sequence[NetworkRequestRecord],
    favicon_urls: set[str],
) -> list[NetworkRequestRecord]:
    included = []
    for record in records:
        # Headless Chrome does not request /favicon.ico, so favicon requests are
        # dropped for every channel. They can only be recognized as type `other`.
        if (
            determine_resource_type(record) == BudgetResourceType.OTHER
            and record.url in favicon_urls
        ):
            continue
        if is_non_network_request(record):
            continue
        included.append(record)
    return included


def _accumulate(
    records: Sequence[NetworkRequestRecord],
    host_patterns: Sequence[str],
) -> ResourceSummary:
    summary = ResourceSummary.empty()
    for record in records:
        summary[determine_resource_type(record)].add(record)
        summary[BudgetResourceType.TOTAL].add(record)
        if not is_first_party(record.url, host_patterns):
            summary[BudgetResourceType.THIRD_PARTY].add(record)
    return summary


def _resolve_exclusions(
    url_artifact: URLArtifact,
    budgets: Sequence[Budget] | None,
    link_elements: Sequence[LinkElement],
    classified_entities: EntityClassification | None,
) -> tuple[list[str], set[str]]:
    budget = get_matching_budget(budgets, url_artifact.main_document_url)
    host_patterns = first_party_hosts(
        budget, classified_entities, url_artifact.final_displayed_url,
    )
    favicon_urls = determine_favicon_urls(link_elements, url_artifact.main_document_url)
    logger.debug("First-party hosts: %s, favicon candidates: %s",
                 host_patterns, sorted(favicon_urls))
    return host_patterns, favicon_urls


def summarize(
    records: Sequence[NetworkRequestRecord],
    url_artifact: URLArtifact,
    budgets: Sequence[Budget] | None,
    link_elements: Sequence[LinkElement],
    classified_entities: EntityClassification | None,
) -> ResourceSummary:
    """Compute the resource summary of a page load in a single pass."""
    host_patterns, favicon_urls = _resolve_exclusions(
        url_artifact, budgets, link_elements, classified_entities,
    )
    included = _included_records(records, favicon_urls)
    logger.debug("Summarizing %d of %d requests", len(included), len(records))
    return _accumulate(included, host_patterns)


def merge_summaries(*summaries: ResourceSummary) -> ResourceSummary:
    """Merge partial summaries by per-field summation."""
    merged = ResourceSummary.empty()
    for summary in summaries:
        merged = merged + summary
    return merged


def summarize_partitioned(
    records: Sequence[NetworkRequestRecord],
    url_artifact: URLArtifact,
    budgets: Sequence[Budget] | None,
    link_elements: Sequence[LinkElement],
    classified_entities: EntityClassification | None,
    partitions: int = 4,
) -> ResourceSummary:
    """Summarize record partitions independently and merge the partial results.

    Host patterns and favicon candidates are resolved once and shared by all
    partitions, so the result always equals summarize().
    """
    if partitions < 1:
        raise ValueError("partitions must be >= 1")
    host_patterns, favicon_urls = _resolve_exclusions(
        url_artifact, budgets, link_elements, classified_entities,
    )
    size = max(1, -(-len(records) // partitions))
    chunks = [records[i:i + size] for i in range(0, len(records), size)]
    return merge_summaries(*(
        _accumulate(_included_records(chunk, favicon_urls), host_patterns)
        for chunk in chunks
    ))
