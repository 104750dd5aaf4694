"""Entity identification for first-party / third-party classification.

Combines a built-in database of well-known entities with an optional
third-party-web style JSON file, and falls back to a made-up entity per
root domain for hosts no database knows about.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path

from .models import Entity, EntityClassification, NetworkRequestRecord, URLArtifact
from .utils import extract_hostname, get_root_domain

logger = logging.getLogger(__name__)

# Built-in entity database: entity name -> (homepage, categories, domains)
BUILTIN_ENTITIES: dict[str, tuple[str, tuple[str, ...], tuple[str, ...]]] = {
    "Google": ("https://www.google.com/", ("analytics", "ad", "cdn"), (
        "google.com", "google-analytics.com", "googletagmanager.com",
        "googleadservices.com", "googlesyndication.com", "doubleclick.net",
        "googletagservices.com", "googleapis.com", "gstatic.com",
        "googleusercontent.com", "ggpht.com",
    )),
    "YouTube": ("https://youtube.com/", ("video",), (
        "youtube.com", "ytimg.com", "googlevideo.com", "youtube-nocookie.com",
    )),
    "Facebook": ("https://www.facebook.com", ("social",), (
        "facebook.com", "facebook.net", "fbcdn.net", "fbsbx.com", "instagram.com",
    )),
    "Microsoft": ("https://www.microsoft.com/", ("analytics", "ad"), (
        "microsoft.com", "bing.com", "msn.com", "clarity.ms", "msecnd.net",
    )),
    "Amazon Web Services": ("https://aws.amazon.com/", ("cdn", "hosting"), (
        "amazonaws.com", "cloudfront.net",
    )),
    "Amazon Ads": ("https://advertising.amazon.com/", ("ad",), (
        "amazon-adsystem.com",
    )),
    "Twitter": ("https://twitter.com", ("social",), (
        "twitter.com", "t.co", "twimg.com", "x.com",
    )),
    "Adobe": ("https://www.adobe.com/", ("analytics", "ad"), (
        "adobe.com", "demdex.net", "omtrdc.net", "2o7.net", "typekit.net",
    )),
    "Cloudflare": ("https://www.cloudflare.com/", ("cdn", "utility"), (
        "cloudflare.com", "cloudflareinsights.com", "cdnjs.cloudflare.com",
    )),
    "jsDelivr CDN": ("https://www.jsdelivr.com/", ("cdn",), ("jsdelivr.net",)),
    "unpkg": ("https://unpkg.com/", ("cdn",), ("unpkg.com",)),
    "JSPM": ("https://jspm.org/", ("cdn",), ("jspm.io",)),
    "Fastly": ("https://www.fastly.com/", ("cdn",), ("fastly.net", "fastly-insights.com")),
    "Akamai": ("https://www.akamai.com/", ("cdn",), ("akamaized.net", "akamai.net", "akamaihd.net")),
    "Criteo": ("https://www.criteo.com/", ("ad",), ("criteo.com", "criteo.net")),
    "Taboola": ("https://www.taboola.com/", ("ad",), ("taboola.com",)),
    "Outbrain": ("https://www.outbrain.com/", ("ad",), ("outbrain.com",)),
    "Xandr": ("https://www.xandr.com/", ("ad",), ("adnxs.com",)),
    "The Trade Desk": ("https://www.thetradedesk.com/", ("ad",), ("adsrvr.org",)),
    "Hotjar": ("https://www.hotjar.com/", ("analytics",), ("hotjar.com",)),
    "HubSpot": ("https://www.hubspot.com/", ("marketing",), (
        "hubspot.com", "hsforms.com", "hs-analytics.net",
    )),
    "New Relic": ("https://newrelic.com/", ("utility",), ("newrelic.com", "nr-data.net")),
    "Sentry": ("https://sentry.io/", ("utility",), ("sentry.io", "sentry-cdn.com")),
    "Pinterest": ("https://pinterest.com/", ("social",), ("pinterest.com", "pinimg.com")),
    "LinkedIn": ("https://www.linkedin.com/", ("social",), ("linkedin.com", "licdn.com")),
    "TikTok": ("https://www.tiktok.com/", ("social",), ("tiktok.com", "byteoversea.com")),
    "Yandex": ("https://yandex.com/", ("analytics",), ("yandex.ru", "yandex.com")),
    "Stripe": ("https://stripe.com", ("utility",), ("stripe.com", "stripe.network")),
    "PayPal": ("https://paypal.com", ("utility",), ("paypal.com", "paypalobjects.com")),
}


class EntityDatabase:
    """Domain to entity lookup.

    Combines the built-in entities with an optional third-party-web
    entities JSON file (a list of {name, homepage, categories, domains}).
    """

    def __init__(self, entities_path: str | Path | None = None):
        # domain -> entity
        self._lookup: dict[str, Entity] = {}
        for name, (homepage, categories, domains) in BUILTIN_ENTITIES.items():
            self._add(Entity(
                name=name,
                domains=list(domains),
                homepage=homepage,
                categories=list(categories),
            ))

        if entities_path:
            self._load_entities(Path(entities_path))

        logger.debug("EntityDatabase loaded with %d domain entries", len(self._lookup))

    def _add(self, entity: Entity) -> None:
        for domain in entity.domains:
            self._lookup[domain] = entity

    def _load_entities(self, path: Path) -> None:
        """Load a third-party-web entities.json file."""
        if not path.exists():
            logger.warning("Entities file not found: %s", path)
            return
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error("Failed to parse entities file %s: %s", path, e)
            return

        count = 0
        for entry in data if isinstance(data, list) else []:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            domains = [
                d[2:] if d.startswith("*.") else d
                for d in entry.get("domains", [])
                if isinstance(d, str) and "." in d
            ]
            self._add(Entity(
                name=entry["name"],
                domains=domains,
                homepage=entry.get("homepage"),
                categories=list(entry.get("categories", [])),
            ))
            count += len(domains)
        logger.info("Loaded %d domains from entities file %s", count, path)

    def get_entity(self, url: str) -> Entity | None:
        """Find the known entity of a URL's host.

        Walks up the host's parent domains: cdn.ads.example.com -> ads.example.com
        -> example.com.
        """
        hostname = extract_hostname(url)
        if not hostname:
            return None
        parts = hostname.split(".")
        for i in range(len(parts) - 1):
            parent = ".".join(parts[i:])
            if parent in self._lookup:
                return self._lookup[parent]
        return None

    @property
    def domain_count(self) -> int:
        return len(self._lookup)


def classify_entities(
    url_artifact: URLArtifact,
    records: Sequence[NetworkRequestRecord],
    entity_db: EntityDatabase,
) -> EntityClassification:
    """Assign every http(s) request URL of the page load to an entity.

    Hosts unknown to the database get a made-up entity named after their
    root domain. The first party is the entity of the main document.
    """
    made_up: dict[str, Entity] = {}

    def entity_for(url: str) -> Entity:
        entity = entity_db.get_entity(url)
        if entity is not None:
            return entity
        root = get_root_domain(url)
        if root not in made_up:
            made_up[root] = Entity(name=root, domains=[root], is_unrecognized=True)
        return made_up[root]

    classification = EntityClassification()
    for record in records:
        if record.url in classification.entity_by_url:
            continue
        if not record.url.startswith(("http://", "https://")) or not extract_hostname(record.url):
            continue
        entity = entity_for(record.url)
        classification.entity_by_url[record.url] = entity
        classification.urls_by_entity.setdefault(entity.name, []).append(record.url)

    first_party_url = url_artifact.main_document_url or url_artifact.final_displayed_url
    if first_party_url and extract_hostname(first_party_url):
        classification.first_party = entity_for(first_party_url)

    logger.debug("Classified %d URLs into %d entities (first party: %s)",
                 len(classification.entity_by_url), len(classification.urls_by_entity),
                 classification.first_party.name if classification.first_party else None)
    return classification
