"""Level-1 to Level-2 domain thresholds.

General rule: a score of 2 (mild) or higher on any item of a domain flags it
for further inquiry. Suicidal Ideation, Psychosis and Substance Use flag at 1.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from crosscut.registry.items import Domain


class ThresholdRule(StrEnum):
    """How a threshold applies across a domain's item scores."""

    ANY = "any"
    ALL = "all"
    SUM = "sum"


class SeverityLevel(StrEnum):
    """Severity label for a 0-4 score."""

    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    ELEVATED = "elevated"
    SEVERE = "severe"


class DomainThresholdConfig(BaseModel):
    """Threshold configuration for one domain."""

    domain: Domain
    item_ids: tuple[str, ...]
    threshold: int
    rule: ThresholdRule = ThresholdRule.ANY
    description: str
    clinical_note: str

    model_config = ConfigDict(frozen=True)


class DomainItemScore(BaseModel):
    """A scored item as seen by threshold evaluation."""

    item_id: str
    score: int

    model_config = ConfigDict(frozen=True)


class DomainEvaluation(BaseModel):
    """Outcome of evaluating one domain against its threshold."""

    domain: Domain
    meets_threshold: bool
    max_score: int
    severity: SeverityLevel
    scores: list[DomainItemScore] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


DOMAIN_THRESHOLDS: tuple[DomainThresholdConfig, ...] = (
    DomainThresholdConfig(
        domain=Domain.DEPRESSION,
        item_ids=("D1", "D2"),
        threshold=2,
        description="Depressive symptoms elevated",
        clinical_note="Consider PHQ-9 or Level-2 Depression assessment",
    ),
    DomainThresholdConfig(
        domain=Domain.ANGER,
        item_ids=("ANG1",),
        threshold=2,
        description="Anger/irritability elevated",
        clinical_note="Consider Level-2 Anger assessment",
    ),
    DomainThresholdConfig(
        domain=Domain.MANIA,
        item_ids=("M1", "M2"),
        threshold=2,
        description="Manic symptoms elevated",
        clinical_note="Consider Level-2 Mania assessment or MDQ",
    ),
    DomainThresholdConfig(
        domain=Domain.ANXIETY,
        item_ids=("ANX1", "ANX2", "ANX3"),
        threshold=2,
        description="Anxiety symptoms elevated",
        clinical_note="Consider GAD-7 or Level-2 Anxiety assessment",
    ),
    DomainThresholdConfig(
        domain=Domain.SOMATIC,
        item_ids=("SOM1", "SOM2"),
        threshold=2,
        description="Somatic symptoms elevated",
        clinical_note="Consider Level-2 Somatic Symptom assessment",
    ),
    DomainThresholdConfig(
        domain=Domain.SUICIDAL,
        item_ids=("SUI1",),
        threshold=1,
        description="Suicidal ideation present",
        clinical_note="CRITICAL: Conduct safety assessment immediately",
    ),
    DomainThresholdConfig(
        domain=Domain.PSYCHOSIS,
        item_ids=("PSY1", "PSY2"),
        threshold=1,
        description="Psychotic symptoms present",
        clinical_note="Consider psychiatric evaluation",
    ),
    DomainThresholdConfig(
        domain=Domain.SLEEP,
        item_ids=("SLP1",),
        threshold=2,
        description="Sleep problems elevated",
        clinical_note="Consider Level-2 Sleep Disturbance assessment",
    ),
    DomainThresholdConfig(
        domain=Domain.MEMORY,
        item_ids=("MEM1",),
        threshold=2,
        description="Memory/cognitive concerns elevated",
        clinical_note="Consider cognitive screening",
    ),
    DomainThresholdConfig(
        domain=Domain.REPETITIVE,
        item_ids=("REP1", "REP2"),
        threshold=2,
        description="Repetitive thoughts/behaviors elevated",
        clinical_note="Consider Level-2 Repetitive Thoughts assessment or Y-BOCS",
    ),
    DomainThresholdConfig(
        domain=Domain.DISSOCIATION,
        item_ids=("DIS1",),
        threshold=2,
        description="Dissociative symptoms elevated",
        clinical_note="Consider Level-2 Dissociation assessment",
    ),
    DomainThresholdConfig(
        domain=Domain.PERSONALITY,
        item_ids=("PER1", "PER2"),
        threshold=2,
        description="Personality functioning concerns elevated",
        clinical_note="Consider Level-2 Personality Functioning assessment",
    ),
    DomainThresholdConfig(
        domain=Domain.SUBSTANCE,
        item_ids=("SUB1", "SUB2", "SUB3"),
        threshold=1,
        description="Substance use indicated",
        clinical_note="Consider AUDIT/DAST or Level-2 Substance Use assessment",
    ),
)


def score_to_severity(score: int) -> SeverityLevel:
    """Map a raw 0-4 score to a severity level."""
    if score <= 0:
        return SeverityLevel.NONE
    if score == 1:
        return SeverityLevel.MILD
    if score == 2:
        return SeverityLevel.MODERATE
    if score == 3:
        return SeverityLevel.ELEVATED
    return SeverityLevel.SEVERE


def max_severity(scores: list[int]) -> SeverityLevel:
    """Severity of the highest score, NONE for an empty list."""
    return score_to_severity(max(scores, default=0))


def get_threshold_config(domain: Domain) -> DomainThresholdConfig | None:
    """Threshold config for a domain."""
    for config in DOMAIN_THRESHOLDS:
        if config.domain == domain:
            return config
    return None


def evaluate_domain_threshold(
    config: DomainThresholdConfig, item_scores: Mapping[str, int]
) -> DomainEvaluation:
    """Evaluate one domain. Items without a score are left out, not counted as 0."""
    scores = [
        DomainItemScore(item_id=item_id, score=item_scores[item_id])
        for item_id in config.item_ids
        if item_id in item_scores
    ]

    if not scores:
        return DomainEvaluation(
            domain=config.domain,
            meets_threshold=False,
            max_score=0,
            severity=SeverityLevel.NONE,
        )

    values = [s.score for s in scores]
    if config.rule == ThresholdRule.ANY:
        meets = any(v >= config.threshold for v in values)
    elif config.rule == ThresholdRule.ALL:
        meets = all(v >= config.threshold for v in values)
    else:
        meets = sum(values) >= config.threshold

    max_score = max(values)
    return DomainEvaluation(
        domain=config.domain,
        meets_threshold=meets,
        max_score=max_score,
        severity=score_to_severity(max_score),
        scores=scores,
    )


def evaluate_all_domains(item_scores: Mapping[str, int]) -> list[DomainEvaluation]:
    """Evaluate every domain in registry order."""
    return [evaluate_domain_threshold(config, item_scores) for config in DOMAIN_THRESHOLDS]


def get_flagged_domains(item_scores: Mapping[str, int]) -> list[DomainThresholdConfig]:
    """Domains meeting their threshold, i.e. flagged for Level-2 follow-up."""
    return [
        config
        for config in DOMAIN_THRESHOLDS
        if evaluate_domain_threshold(config, item_scores).meets_threshold
    ]
