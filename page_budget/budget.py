"""Performance budget loading, validation and URL matching.

Budgets are authored as a YAML or JSON list:

    - path: /checkout
      options:
        firstPartyHostnames: ["*.example.com", "cdn.example.net"]
      resourceSizes:
        - {resourceType: script, budget: 300}   # KiB
      resourceCounts:
        - {resourceType: third-party, budget: 10}
      timings:
        - {metric: interactive, budget: 5000}   # ms
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

import yaml

from .models import BudgetResourceType, ResourceSummary

logger = logging.getLogger(__name__)

BUDGET_KEYS = frozenset({"path", "options", "resourceSizes", "resourceCounts", "timings"})
OPTION_KEYS = frozenset({"firstPartyHostnames"})
RESOURCE_BUDGET_KEYS = frozenset({"resourceType", "budget"})
TIMING_BUDGET_KEYS = frozenset({"metric", "budget"})

TIMING_METRICS = frozenset({
    "first-contentful-paint",
    "interactive",
    "first-meaningful-paint",
    "max-potential-fid",
    "total-blocking-time",
    "speed-index",
    "largest-contentful-paint",
    "cumulative-layout-shift",
})


class BudgetConfigError(ValueError):
    """Raised when a budget file or budget entry is invalid."""


@dataclass
class BudgetOptions:
    first_party_hostnames: list[str] | None = None


@dataclass
class ResourceBudget:
    resource_type: BudgetResourceType
    budget: float


@dataclass
class TimingBudget:
    metric: str
    budget: float


@dataclass
class Budget:
    path: str = "/"
    options: BudgetOptions = field(default_factory=BudgetOptions)
    resource_sizes: list[ResourceBudget] = field(default_factory=list)
    resource_counts: list[ResourceBudget] = field(default_factory=list)
    timings: list[TimingBudget] = field(default_factory=list)


@dataclass
class BudgetRow:
    resource_type: BudgetResourceType
    count: int
    transfer_size: int
    size_over_budget: int | None = None
    count_over_budget: int | None = None


# ── Validation ──

def _check_keys(obj: dict, allowed: frozenset[str], where: str) -> None:
    unknown = sorted(set(obj) - allowed)
    if unknown:
        raise BudgetConfigError(f"{where} has unrecognized properties: {unknown}")


def _validate_number(value, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise BudgetConfigError(f"Invalid budget in {where}: {value!r} is not a non-negative number")
    return value


def is_valid_path(path: object) -> bool:
    """A budget path starts with '/', has at most one '*' and an optional trailing '$'."""
    if not isinstance(path, str) or not path.startswith("/"):
        return False
    if path.count("*") > 1 or path.count("$") > 1:
        return False
    return "$" not in path or path.endswith("$")


def is_valid_hostname(hostname: object) -> bool:
    """Hostname or '*.'-prefixed wildcard hostname, never a full URL."""
    if not isinstance(hostname, str):
        return False
    segments = hostname.split("*.")
    if len(segments) > 2 or (len(segments) == 2 and segments[0] != ""):
        return False
    sanitized = "".join(segments)
    if not sanitized or any(c in sanitized for c in "/:*?#@ "):
        return False
    try:
        return urlparse(f"http://{sanitized}").hostname == sanitized.lower()
    except ValueError:
        return False


def _parse_resource_budgets(entries, where: str) -> list[ResourceBudget]:
    if not isinstance(entries, list):
        raise BudgetConfigError(f"{where} must be a list")
    budgets: list[ResourceBudget] = []
    seen: set[BudgetResourceType] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            raise BudgetConfigError(f"{where} entries must be objects, got {entry!r}")
        _check_keys(entry, RESOURCE_BUDGET_KEYS, f"Resource budget in {where}")
        try:
            resource_type = BudgetResourceType(entry.get("resourceType"))
        except ValueError:
            raise BudgetConfigError(
                f"Invalid resource type in {where}: {entry.get('resourceType')!r}. "
                f"Valid resource types are: {', '.join(t.value for t in BudgetResourceType)}"
            ) from None
        if resource_type in seen:
            raise BudgetConfigError(f"Resource type {resource_type.value!r} has duplicate entry in {where}")
        seen.add(resource_type)
        budgets.append(ResourceBudget(
            resource_type=resource_type,
            budget=_validate_number(entry.get("budget"), f"{where}[{resource_type.value}]"),
        ))
    return budgets


def _parse_timing_budgets(entries) -> list[TimingBudget]:
    if not isinstance(entries, list):
        raise BudgetConfigError("timings must be a list")
    budgets: list[TimingBudget] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            raise BudgetConfigError(f"timings entries must be objects, got {entry!r}")
        _check_keys(entry, TIMING_BUDGET_KEYS, "Timing budget")
        metric = entry.get("metric")
        if metric not in TIMING_METRICS:
            raise BudgetConfigError(
                f"Invalid timing metric: {metric!r}. "
                f"Valid timing metrics are: {', '.join(sorted(TIMING_METRICS))}"
            )
        if metric in seen:
            raise BudgetConfigError(f"Timing metric {metric!r} has duplicate entry")
        seen.add(metric)
        budgets.append(TimingBudget(
            metric=metric,
            budget=_validate_number(entry.get("budget"), f"timings[{metric}]"),
        ))
    return budgets


def _parse_options(raw) -> BudgetOptions:
    if raw is None:
        return BudgetOptions()
    if not isinstance(raw, dict):
        raise BudgetConfigError("options must be an object")
    _check_keys(raw, OPTION_KEYS, "Budget options")
    hostnames = raw.get("firstPartyHostnames")
    if hostnames is None:
        return BudgetOptions()
    if not isinstance(hostnames, list):
        raise BudgetConfigError("firstPartyHostnames must be a list")
    for hostname in hostnames:
        if not is_valid_hostname(hostname):
            raise BudgetConfigError(f"{hostname!r} is not a valid hostname")
    return BudgetOptions(first_party_hostnames=list(hostnames))


def parse_budget(raw: dict) -> Budget:
    """Validate one raw budget object and build a Budget."""
    if not isinstance(raw, dict):
        raise BudgetConfigError(f"Budget must be an object, got {raw!r}")
    _check_keys(raw, BUDGET_KEYS, "Budget")

    path = raw.get("path", "/")
    if not is_valid_path(path):
        raise BudgetConfigError(f'Invalid path {path!r}. Paths must begin with "/"; '
                                'may contain at most one "*" and one "$", the latter at the end.')

    return Budget(
        path=path,
        options=_parse_options(raw.get("options")),
        resource_sizes=_parse_resource_budgets(raw.get("resourceSizes", []), "resourceSizes"),
        resource_counts=_parse_resource_budgets(raw.get("resourceCounts", []), "resourceCounts"),
        timings=_parse_timing_budgets(raw.get("timings", [])),
    )


def parse_budgets(raw) -> list[Budget] | None:
    """Validate a list of raw budget objects. None means no budgets."""
    if raw is None:
        return None
    if isinstance(raw, dict) and "budgets" in raw:
        raw = raw["budgets"]
    if not isinstance(raw, list):
        raise BudgetConfigError("Budgets must be a list of budget objects")
    return [parse_budget(entry) for entry in raw]


def load_budgets(path: str | Path) -> list[Budget] | None:
    """Load budgets from a YAML or JSON file."""
    budget_path = Path(path)
    try:
        with open(budget_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise BudgetConfigError(f"Failed to parse budget file {budget_path}: {e}") from e
    budgets = parse_budgets(raw)
    logger.info("Loaded %d budgets from %s", len(budgets or []), budget_path)
    return budgets


# ── Matching ──

def url_matches_pattern(url: str, pattern: str = "/") -> bool:
    """Match a URL's path and query against a budget path pattern."""
    parsed = urlparse(url)
    url_path = (parsed.path or "/") + (f"?{parsed.query}" if parsed.query else "")
    has_wildcard = "*" in pattern
    has_dollar = "$" in pattern

    if not has_wildcard and not has_dollar:
        return url_path.startswith(pattern)
    if not has_wildcard and has_dollar:
        return url_path == pattern[:-1]

    before, after = pattern.split("*", 1)
    remaining = url_path[len(before):]
    if not url_path.startswith(before):
        return False
    if has_dollar:
        return remaining.endswith(after[:-1])
    return after in remaining


def get_matching_budget(budgets: Sequence[Budget] | None, url: str | None) -> Budget | None:
    """Return the last budget whose path matches the URL."""
    if not budgets or not url:
        return None
    for budget in reversed(budgets):
        if url_matches_pattern(url, budget.path):
            return budget
    return None


def evaluate_budget(summary: ResourceSummary, budget: Budget) -> list[BudgetRow]:
    """Compare a resource summary with a budget's size and count limits.

    Size budgets are in KiB; overages are reported in bytes.
    """
    sizes = {b.resource_type: b.budget for b in budget.resource_sizes}
    counts = {b.resource_type: b.budget for b in budget.resource_counts}

    rows: list[BudgetRow] = []
    for resource_type in BudgetResourceType:
        if resource_type not in sizes and resource_type not in counts:
            continue
        entry = summary[resource_type]
        row = BudgetRow(
            resource_type=resource_type,
            count=entry.count,
            transfer_size=entry.transfer_size,
        )
        if resource_type in sizes and entry.transfer_size > sizes[resource_type] * 1024:
            row.size_over_budget = int(entry.transfer_size - sizes[resource_type] * 1024)
        if resource_type in counts and entry.count > counts[resource_type]:
            row.count_over_budget = int(entry.count - counts[resource_type])
        rows.append(row)

    rows.sort(key=lambda r: (r.size_over_budget or 0, r.count_over_budget or 0), reverse=True)
    return rows
