"""Adaptive item selection.

Domains whose completed items scored high are explored first, together with
their related domains. Everything else follows the canonical domain order,
which asks Suicidal Ideation last. Selection is deterministic and has no side
effects.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping

from pydantic import BaseModel, ConfigDict

from crosscut.registry import (
    ALL_ITEM_IDS,
    DOMAIN_PRIORITY_ORDER,
    Domain,
    is_above_adaptive_threshold,
    item_domain,
    items_by_domain,
    related_domains,
)


class DomainCoverage(BaseModel):
    """How far a single domain has been covered."""

    domain: Domain
    total_items: int
    completed_items: int
    pending_items: int
    is_complete: bool
    percent_complete: float

    model_config = ConfigDict(frozen=True)


class InterviewProgress(BaseModel):
    """Overall interview progress."""

    total_items: int
    completed_items: int
    remaining_items: int
    percent_complete: float
    is_complete: bool

    model_config = ConfigDict(frozen=True)


def high_severity_domains(
    completed: Collection[str], item_scores: Mapping[str, int]
) -> list[Domain]:
    """Domains whose highest completed-item score meets the adaptive threshold.

    Only completed items count. Scores for items that are still pending are
    ignored.
    """
    highest: dict[Domain, int] = {}
    for item_id in completed:
        if item_id not in item_scores:
            continue
        domain = item_domain(item_id)
        if domain is None:
            continue
        highest[domain] = max(highest.get(domain, 0), item_scores[item_id])

    return [
        domain
        for domain in DOMAIN_PRIORITY_ORDER
        if domain in highest and is_above_adaptive_threshold(domain, highest[domain])
    ]


def priority_domains(high_severity: Collection[Domain]) -> list[Domain]:
    """High-severity domains plus their related domains, in canonical order."""
    wanted = set(high_severity)
    for domain in high_severity:
        wanted.update(related_domains(domain))
    return [domain for domain in DOMAIN_PRIORITY_ORDER if domain in wanted]


def _first_pending_in(domains: list[Domain] | tuple[Domain, ...], pending: set[str]) -> str | None:
    for domain in domains:
        for item in items_by_domain(domain):
            if item.item_id in pending:
                return item.item_id
    return None


def select_next_item(
    pending: Collection[str],
    completed: Collection[str],
    item_scores: Mapping[str, int],
) -> str | None:
    """Pick the next item to ask.

    Args:
        pending: Item ids not yet answered
        completed: Item ids already answered
        item_scores: Latest score per item id

    Returns:
        The first pending item of the highest-priority domain, or None when
        nothing is pending.
    """
    if not pending:
        return None
    pending_set = set(pending)

    prioritized = priority_domains(high_severity_domains(completed, item_scores))
    chosen = _first_pending_in(prioritized, pending_set)
    if chosen is not None:
        return chosen

    chosen = _first_pending_in(DOMAIN_PRIORITY_ORDER, pending_set)
    if chosen is not None:
        return chosen

    # Only reachable with ids outside the registry.
    return min(pending_set)


def domain_coverage(pending: Collection[str], completed: Collection[str]) -> list[DomainCoverage]:
    """Per-domain coverage in canonical order."""
    pending_set, completed_set = set(pending), set(completed)
    coverage = []
    for domain in DOMAIN_PRIORITY_ORDER:
        ids = [item.item_id for item in items_by_domain(domain)]
        done = sum(1 for i in ids if i in completed_set)
        waiting = sum(1 for i in ids if i in pending_set)
        coverage.append(
            DomainCoverage(
                domain=domain,
                total_items=len(ids),
                completed_items=done,
                pending_items=waiting,
                is_complete=waiting == 0,
                percent_complete=(done / len(ids)) * 100 if ids else 100.0,
            )
        )
    return coverage


def interview_progress(pending: Collection[str], completed: Collection[str]) -> InterviewProgress:
    """Overall completion across all items."""
    total = len(ALL_ITEM_IDS)
    return InterviewProgress(
        total_items=total,
        completed_items=len(completed),
        remaining_items=len(pending),
        percent_complete=(len(completed) / total) * 100 if total else 100.0,
        is_complete=len(pending) == 0,
    )


def is_domain_complete(domain: Domain, completed: Collection[str]) -> bool:
    """True once every item of the domain has been answered."""
    completed_set = set(completed)
    return all(item.item_id in completed_set for item in items_by_domain(domain))


def suggested_follow_up_items(item_id: str, pending: Collection[str]) -> list[str]:
    """Pending items in the domains related to an item's domain."""
    domain = item_domain(item_id)
    if domain is None:
        return []
    pending_set = set(pending)
    return [
        item.item_id
        for related in related_domains(domain)
        for item in items_by_domain(related)
        if item.item_id in pending_set
    ]
