"""Projections of the permission catalog and grant sets used by the read endpoints."""

from typing import Iterable, List, Optional

from app.config.permissions_config import PERMISSION_CATEGORIES, QUICK_ACTIONS, get_category_label
from app.modules.permissions.schemas import (
    CategoryCount,
    PermissionCategoryGroup,
    PermissionDefinition,
)
from app.modules.relationships.schemas import QuickActionState


def group_by_category(definitions: Iterable[PermissionDefinition]) -> List[PermissionCategoryGroup]:
    """Group definitions in fixed category order, dropping empty categories"""
    definitions = list(definitions)
    groups = []
    for category in PERMISSION_CATEGORIES:
        perms = [d for d in definitions if d.category == category["key"]]
        if perms:
            groups.append(PermissionCategoryGroup(
                category=category["key"],
                label=category["label"],
                permissions=perms
            ))
    return groups


def count_granted_by_category(
    category: str,
    definitions: Iterable[PermissionDefinition],
    granted_slugs: Iterable[str]
) -> CategoryCount:
    granted = set(granted_slugs)
    in_category = [d for d in definitions if d.category == category]
    label = get_category_label(category)
    return CategoryCount(
        category=category,
        label=label,
        granted=sum(1 for d in in_category if d.slug in granted),
        total=len(in_category)
    )


def summarize_categories(
    definitions: Iterable[PermissionDefinition],
    granted_slugs: Iterable[str]
) -> List[CategoryCount]:
    """Granted/total counts for every non-empty category"""
    definitions = list(definitions)
    granted_slugs = list(granted_slugs)
    return [
        count_granted_by_category(group.category, definitions, granted_slugs)
        for group in group_by_category(definitions)
    ]


def quick_action_states(
    granted_slugs: Iterable[str],
    pending_slugs: Iterable[str],
    enabled_slugs: Optional[Iterable[str]] = None
) -> List[QuickActionState]:
    granted = set(granted_slugs)
    pending = set(pending_slugs)
    enabled = set(enabled_slugs) if enabled_slugs is not None else None
    states = []
    for action in QUICK_ACTIONS:
        if enabled is not None and action["slug"] not in enabled:
            continue
        if action["slug"] in granted:
            state = "granted"
        elif action["slug"] in pending:
            state = "pending"
        else:
            state = "missing"
        states.append(QuickActionState(slug=action["slug"], label=action["label"], state=state))
    return states
