"""Tests for domain ordering, adjacency and adaptive thresholds."""

from crosscut.registry import (
    ADAPTIVE_THRESHOLDS,
    DOMAIN_PRIORITY_ORDER,
    RELATED_DOMAINS,
    Domain,
    is_above_adaptive_threshold,
    related_domains,
)


def test_priority_order_covers_every_domain_once() -> None:
    """The canonical order lists all 13 domains exactly once."""
    assert len(DOMAIN_PRIORITY_ORDER) == 13
    assert set(DOMAIN_PRIORITY_ORDER) == set(Domain)


def test_priority_order_starts_with_depression_and_ends_with_suicidal() -> None:
    """Suicidal ideation is asked last."""
    assert DOMAIN_PRIORITY_ORDER[0] == Domain.DEPRESSION
    assert DOMAIN_PRIORITY_ORDER[-1] == Domain.SUICIDAL


def test_related_domains_of_depression() -> None:
    """Depression pulls in anxiety, sleep and suicidal ideation."""
    assert related_domains(Domain.DEPRESSION) == (
        Domain.ANXIETY,
        Domain.SLEEP,
        Domain.SUICIDAL,
    )


def test_every_domain_has_related_domains() -> None:
    """Adjacency is configured for all domains and never self-referential."""
    for domain in Domain:
        assert domain in RELATED_DOMAINS
        assert domain not in RELATED_DOMAINS[domain]


def test_adaptive_thresholds() -> None:
    """Suicidal ideation and substance use trip at 1, the rest at 2."""
    assert ADAPTIVE_THRESHOLDS[Domain.SUICIDAL] == 1
    assert ADAPTIVE_THRESHOLDS[Domain.SUBSTANCE] == 1
    assert ADAPTIVE_THRESHOLDS[Domain.DEPRESSION] == 2
    assert ADAPTIVE_THRESHOLDS[Domain.PSYCHOSIS] == 2


def test_is_above_adaptive_threshold() -> None:
    """Threshold comparison is inclusive."""
    assert is_above_adaptive_threshold(Domain.DEPRESSION, 2)
    assert not is_above_adaptive_threshold(Domain.DEPRESSION, 1)
    assert is_above_adaptive_threshold(Domain.SUBSTANCE, 1)
