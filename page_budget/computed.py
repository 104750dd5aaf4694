"""Memoized computed artifacts.

Each computed artifact caches its result per analysis session (a
ComputedContext), keyed by a canonical form of the inputs it depends on, so
requesting it again with equal inputs returns the cached result.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any

from .budget import Budget
from .entity_db import EntityDatabase, classify_entities
from .models import EntityClassification, LinkElement, NetworkRequestRecord, ResourceSummary, URLArtifact
from .network_records import records_from_devtools_log
from .resource_summary import summarize

logger = logging.getLogger(__name__)


class ComputedContext:
    """Per-session state shared by computed artifacts."""

    def __init__(self, entity_db: EntityDatabase | None = None):
        self.entity_db = entity_db or EntityDatabase()
        # artifact name -> canonical input key -> task
        self.computed_cache: dict[str, dict[Any, asyncio.Task]] = {}


def canonical_key(value: Any) -> Any:
    """Turn nested dataclasses, mappings and sequences into a hashable key."""
    if isinstance(value, Enum):
        return (type(value).__name__, value.value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return (type(value).__name__,) + tuple(
            (f.name, canonical_key(getattr(value, f.name)))
            for f in dataclasses.fields(value) if f.compare
        )
    if isinstance(value, Mapping):
        return tuple(sorted((str(k), canonical_key(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(canonical_key(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted((canonical_key(v) for v in value), key=repr))
    # True, 1 and 1.0 hash alike and must not share an entry.
    return (type(value).__name__, value)


def computed_artifact(name: str, keys: tuple[str, ...]):
    """Memoize an ``async def compute(data, context)`` on the given input keys.

    The decorated function becomes ``request(data, context)``. Concurrent
    requests with equal inputs await the same task; failed computations are
    not cached.
    """

    def decorator(compute: Callable[[dict, ComputedContext], Awaitable[Any]]):
        @functools.wraps(compute)
        async def request(data: dict, context: ComputedContext):
            selected = {key: data[key] for key in keys}
            cache_key = canonical_key(selected)
            cache = context.computed_cache.setdefault(name, {})

            task = cache.get(cache_key)
            if task is None:
                logger.debug("Computing %s", name)
                task = asyncio.ensure_future(compute(selected, context))
                cache[cache_key] = task
            else:
                logger.debug("Using cached %s", name)

            try:
                return await asyncio.shield(task)
            except Exception:
                if cache.get(cache_key) is task:
                    del cache[cache_key]
                raise

        request.compute = compute
        return request

    return decorator


@computed_artifact("NetworkRecords", ("devtoolsLog",))
async def request_network_records(data: dict, context: ComputedContext) -> list[NetworkRequestRecord]:
    return records_from_devtools_log(data["devtoolsLog"])


@computed_artifact("EntityClassification", ("URL", "devtoolsLog"))
async def request_entity_classification(data: dict, context: ComputedContext) -> EntityClassification:
    records = await request_network_records({"devtoolsLog": data["devtoolsLog"]}, context)
    return classify_entities(data["URL"], records, context.entity_db)


@computed_artifact("ResourceSummary", ("URL", "devtoolsLog", "budgets", "LinkElements"))
async def request_resource_summary(data: dict, context: ComputedContext) -> ResourceSummary:
    """Resource summary of the page load described by a devtools log.

    Args:
        data: {"URL": URLArtifact, "devtoolsLog": list, "budgets": list[Budget] | None,
            "LinkElements": list[LinkElement]}
    """
    url_artifact: URLArtifact = data["URL"]
    budgets: list[Budget] | None = data["budgets"]
    link_elements: list[LinkElement] = data["LinkElements"]

    records = await request_network_records({"devtoolsLog": data["devtoolsLog"]}, context)
    classified_entities = await request_entity_classification({
        "URL": url_artifact,
        "devtoolsLog": data["devtoolsLog"],
    }, context)
    return summarize(records, url_artifact, budgets, link_elements, classified_entities)
