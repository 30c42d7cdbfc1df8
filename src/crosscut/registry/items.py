"""DSM-5 Level-1 Cross-Cutting Symptom Measure, adult version.

23 items across 13 domains. The registry is static, process-wide and
read-only: items are frozen models held in a tuple, lookups go through
module-level mappings built once at import.
"""

from __future__ import annotations

from enum import StrEnum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

# Bump when items are added, removed, or reworded.
REGISTRY_VERSION = "1.0.0"


class Domain(StrEnum):
    """The 13 symptom domains of the Level-1 measure."""

    DEPRESSION = "Depression"
    ANGER = "Anger"
    MANIA = "Mania"
    ANXIETY = "Anxiety"
    SOMATIC = "Somatic Symptoms"
    SUICIDAL = "Suicidal Ideation"
    PSYCHOSIS = "Psychosis"
    SLEEP = "Sleep Problems"
    MEMORY = "Memory"
    REPETITIVE = "Repetitive Thoughts and Behaviors"
    DISSOCIATION = "Dissociation"
    PERSONALITY = "Personality Functioning"
    SUBSTANCE = "Substance Use"


class Item(BaseModel):
    """One canonical screening question."""

    item_id: str
    domain: Domain
    text: str
    subdomain: str | None = None
    adult_version: bool = True

    model_config = ConfigDict(frozen=True)


ITEMS: tuple[Item, ...] = (
    # I. Depression
    Item(
        item_id="D1",
        domain=Domain.DEPRESSION,
        text="Little interest or pleasure in doing things?",
    ),
    Item(item_id="D2", domain=Domain.DEPRESSION, text="Feeling down, depressed, or hopeless?"),
    # II. Anger
    Item(
        item_id="ANG1",
        domain=Domain.ANGER,
        text="Feeling more irritated, grouchy, or angry than usual?",
    ),
    # III. Mania
    Item(
        item_id="M1",
        domain=Domain.MANIA,
        text="Sleeping less than usual, but still having a lot of energy?",
    ),
    Item(
        item_id="M2",
        domain=Domain.MANIA,
        text="Starting lots more projects than usual or doing more risky things than usual?",
    ),
    # IV. Anxiety
    Item(
        item_id="ANX1",
        domain=Domain.ANXIETY,
        text="Feeling nervous, anxious, frightened, worried, or on edge?",
    ),
    Item(item_id="ANX2", domain=Domain.ANXIETY, text="Feeling panic or being frightened?"),
    Item(item_id="ANX3", domain=Domain.ANXIETY, text="Avoiding situations that make you anxious?"),
    # V. Somatic Symptoms
    Item(
        item_id="SOM1",
        domain=Domain.SOMATIC,
        text="Unexplained aches and pains (e.g., head, back, joints, abdomen, legs)?",
    ),
    Item(
        item_id="SOM2",
        domain=Domain.SOMATIC,
        text="Feeling that your illnesses are not being taken seriously enough?",
    ),
    # VI. Suicidal Ideation
    Item(item_id="SUI1", domain=Domain.SUICIDAL, text="Thoughts of actually hurting yourself?"),
    # VII. Psychosis
    Item(
        item_id="PSY1",
        domain=Domain.PSYCHOSIS,
        text=(
            "Hearing things other people couldn't hear, such as voices even when no one "
            "was around?"
        ),
    ),
    Item(
        item_id="PSY2",
        domain=Domain.PSYCHOSIS,
        text=(
            "Feeling that someone could hear your thoughts, or that you could hear what "
            "another person was thinking?"
        ),
    ),
    # VIII. Sleep Problems
    Item(
        item_id="SLP1",
        domain=Domain.SLEEP,
        text="Problems with sleep that affected your sleep quality over all?",
    ),
    # IX. Memory
    Item(
        item_id="MEM1",
        domain=Domain.MEMORY,
        text=(
            "Problems with memory (e.g., learning new information) or with location "
            "(e.g., finding your way home)?"
        ),
    ),
    # X. Repetitive Thoughts and Behaviors
    Item(
        item_id="REP1",
        domain=Domain.REPETITIVE,
        text="Unpleasant thoughts, urges, or images that repeatedly enter your mind?",
    ),
    Item(
        item_id="REP2",
        domain=Domain.REPETITIVE,
        text="Feeling driven to perform certain behaviors or mental acts over and over again?",
    ),
    # XI. Dissociation
    Item(
        item_id="DIS1",
        domain=Domain.DISSOCIATION,
        text=(
            "Feeling detached or distant from yourself, your body, your physical "
            "surroundings, or your memories?"
        ),
    ),
    # XII. Personality Functioning
    Item(
        item_id="PER1",
        domain=Domain.PERSONALITY,
        text="Not knowing who you really are or what you want out of life?",
    ),
    Item(
        item_id="PER2",
        domain=Domain.PERSONALITY,
        text="Not feeling close to other people or enjoying your relationships with them?",
    ),
    # XIII. Substance Use
    Item(
        item_id="SUB1",
        domain=Domain.SUBSTANCE,
        subdomain="Alcohol",
        text="Drinking at least 4 drinks of any kind of alcohol in a single day?",
    ),
    Item(
        item_id="SUB2",
        domain=Domain.SUBSTANCE,
        subdomain="Tobacco",
        text=(
            "Smoking any cigarettes, a cigar, or pipe, or using snuff or chewing tobacco?"
        ),
    ),
    Item(
        item_id="SUB3",
        domain=Domain.SUBSTANCE,
        subdomain="Drugs",
        text=(
            "Using any of the following medicines ON YOUR OWN, that is, without a doctor's "
            "prescription, in greater amounts or longer than prescribed: painkillers, "
            "stimulants, sedatives, or tranquilizers?"
        ),
    ),
)

ALL_ITEM_IDS: tuple[str, ...] = tuple(item.item_id for item in ITEMS)

_ITEMS_BY_ID = MappingProxyType({item.item_id: item for item in ITEMS})
_ITEMS_BY_DOMAIN = MappingProxyType(
    {domain: tuple(item for item in ITEMS if item.domain == domain) for domain in Domain}
)

# 0-4 frequency anchors over the past two weeks
SCORING_ANCHORS: MappingProxyType[int, str] = MappingProxyType(
    {
        0: "Not at all",
        1: "Rarely (1-2 days)",
        2: "Several days",
        3: "More than half the days",
        4: "Nearly every day",
    }
)


def get_item(item_id: str) -> Item | None:
    """Look up an item by id, or None if it isn't in the registry."""
    return _ITEMS_BY_ID.get(item_id)


def is_known_item(item_id: str) -> bool:
    """Check whether an item id belongs to the registry."""
    return item_id in _ITEMS_BY_ID


def items_by_domain(domain: Domain) -> tuple[Item, ...]:
    """Items of a domain, in registry order."""
    return _ITEMS_BY_DOMAIN[domain]


def item_domain(item_id: str) -> Domain | None:
    """Domain of an item, or None for unknown ids."""
    item = get_item(item_id)
    return item.domain if item else None


def item_count_by_domain() -> dict[Domain, int]:
    """Number of items per domain, for coverage tracking."""
    return {domain: len(items) for domain, items in _ITEMS_BY_DOMAIN.items()}
