"""Domain ordering, adjacency and adaptive-selection thresholds."""

from __future__ import annotations

from types import MappingProxyType

from crosscut.registry.items import Domain

# Sequential questioning order. Suicidal Ideation is asked last so sensitive
# questions don't come up abruptly, even though its threshold is the lowest.
DOMAIN_PRIORITY_ORDER: tuple[Domain, ...] = (
    Domain.DEPRESSION,
    Domain.ANXIETY,
    Domain.ANGER,
    Domain.MANIA,
    Domain.SOMATIC,
    Domain.SLEEP,
    Domain.MEMORY,
    Domain.REPETITIVE,
    Domain.DISSOCIATION,
    Domain.PERSONALITY,
    Domain.PSYCHOSIS,
    Domain.SUBSTANCE,
    Domain.SUICIDAL,
)

# Clinically related domains explored together when one shows elevated scores.
RELATED_DOMAINS: MappingProxyType[Domain, tuple[Domain, ...]] = MappingProxyType(
    {
        Domain.DEPRESSION: (Domain.ANXIETY, Domain.SLEEP, Domain.SUICIDAL),
        Domain.ANXIETY: (Domain.DEPRESSION, Domain.SOMATIC, Domain.SLEEP),
        Domain.ANGER: (Domain.MANIA, Domain.SUBSTANCE),
        Domain.MANIA: (Domain.DEPRESSION, Domain.SLEEP, Domain.ANGER),
        Domain.SOMATIC: (Domain.ANXIETY, Domain.DEPRESSION),
        Domain.SUICIDAL: (Domain.DEPRESSION, Domain.SUBSTANCE),
        Domain.PSYCHOSIS: (Domain.DISSOCIATION, Domain.SUBSTANCE),
        Domain.SLEEP: (Domain.DEPRESSION, Domain.ANXIETY, Domain.MANIA),
        Domain.MEMORY: (Domain.DEPRESSION, Domain.DISSOCIATION),
        Domain.REPETITIVE: (Domain.ANXIETY,),
        Domain.DISSOCIATION: (Domain.PSYCHOSIS, Domain.MEMORY),
        Domain.PERSONALITY: (Domain.DEPRESSION, Domain.ANXIETY),
        Domain.SUBSTANCE: (Domain.DEPRESSION, Domain.MANIA, Domain.SUICIDAL),
    }
)

# Highest completed-item score at which a domain counts as high severity for
# adaptive ordering. Flagging for Level-2 follow-up uses DOMAIN_THRESHOLDS in
# crosscut.registry.thresholds instead.
ADAPTIVE_THRESHOLDS: MappingProxyType[Domain, int] = MappingProxyType(
    {
        Domain.DEPRESSION: 2,
        Domain.ANGER: 2,
        Domain.MANIA: 2,
        Domain.ANXIETY: 2,
        Domain.SOMATIC: 2,
        Domain.SUICIDAL: 1,
        Domain.PSYCHOSIS: 2,
        Domain.SLEEP: 2,
        Domain.MEMORY: 2,
        Domain.REPETITIVE: 2,
        Domain.DISSOCIATION: 2,
        Domain.PERSONALITY: 2,
        Domain.SUBSTANCE: 1,
    }
)


def related_domains(domain: Domain) -> tuple[Domain, ...]:
    """Statically configured related domains, empty if none."""
    return RELATED_DOMAINS.get(domain, ())


def is_above_adaptive_threshold(domain: Domain, highest_score: int) -> bool:
    """Check whether a domain's highest score makes it high severity."""
    return highest_score >= ADAPTIVE_THRESHOLDS[domain]
