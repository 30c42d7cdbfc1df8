"""Static item registry: items, domains, ordering and thresholds.

Public API:
    Items: Item, Domain, ITEMS, ALL_ITEM_IDS, SCORING_ANCHORS, REGISTRY_VERSION,
           get_item, is_known_item, items_by_domain, item_domain, item_count_by_domain
    Ordering: DOMAIN_PRIORITY_ORDER, RELATED_DOMAINS, ADAPTIVE_THRESHOLDS, related_domains
    Thresholds: DomainThresholdConfig, ThresholdRule, SeverityLevel, DOMAIN_THRESHOLDS,
                evaluate_domain_threshold, evaluate_all_domains, get_flagged_domains
"""

from crosscut.registry.domains import (
    ADAPTIVE_THRESHOLDS,
    DOMAIN_PRIORITY_ORDER,
    RELATED_DOMAINS,
    is_above_adaptive_threshold,
    related_domains,
)
from crosscut.registry.items import (
    ALL_ITEM_IDS,
    ITEMS,
    REGISTRY_VERSION,
    SCORING_ANCHORS,
    Domain,
    Item,
    get_item,
    is_known_item,
    item_count_by_domain,
    item_domain,
    items_by_domain,
)
from crosscut.registry.thresholds import (
    DOMAIN_THRESHOLDS,
    DomainEvaluation,
    DomainThresholdConfig,
    SeverityLevel,
    ThresholdRule,
    evaluate_all_domains,
    evaluate_domain_threshold,
    get_flagged_domains,
    get_threshold_config,
    max_severity,
    score_to_severity,
)

__all__ = [
    "ADAPTIVE_THRESHOLDS",
    "ALL_ITEM_IDS",
    "DOMAIN_PRIORITY_ORDER",
    "DOMAIN_THRESHOLDS",
    "ITEMS",
    "REGISTRY_VERSION",
    "RELATED_DOMAINS",
    "SCORING_ANCHORS",
    "Domain",
    "DomainEvaluation",
    "DomainThresholdConfig",
    "Item",
    "SeverityLevel",
    "ThresholdRule",
    "evaluate_all_domains",
    "evaluate_domain_threshold",
    "get_flagged_domains",
    "get_item",
    "get_threshold_config",
    "is_above_adaptive_threshold",
    "is_known_item",
    "item_count_by_domain",
    "item_domain",
    "items_by_domain",
    "max_severity",
    "related_domains",
    "score_to_severity",
]
