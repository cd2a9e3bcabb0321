"""Translate the UI add-on selection into billing API assignment payloads.

Organization-scoped add-ons are assigned once per tenant; branch-scoped
add-ons are assigned per branch, only where the user toggled them on.
Both formatters are pure.
"""

from typing import Any, Iterable

from app.schemas.subscription import (
    DEFAULT_FEATURE_LEVEL,
    AddonPricingScope,
    SelectedAddon,
)


def _assignment(addon: SelectedAddon) -> dict[str, Any]:
    return {"addon_id": addon.addon_id, "feature_level": DEFAULT_FEATURE_LEVEL}


def _selected_for_branch(addon: SelectedAddon, branch_index: int) -> bool:
    # A branch without an entry counts as not selected
    return any(b.branch_index == branch_index and b.is_selected for b in addon.branches)


def format_organization_addons(addons: Iterable[SelectedAddon]) -> list[dict[str, Any]]:
    """Organization-scoped add-ons in input order.  Duplicates are kept."""
    return [
        _assignment(addon)
        for addon in addons
        if addon.pricing_scope == AddonPricingScope.ORGANIZATION
    ]


def format_branch_addons(
    addons: Iterable[SelectedAddon], branch_count: int
) -> list[dict[str, Any]]:
    """One entry per branch (branch_id 1..branch_count), empty or not."""
    branch_scoped = [a for a in addons if a.pricing_scope == AddonPricingScope.BRANCH]
    return [
        {
            "branch_id": index + 1,
            "addon_assignments": [
                _assignment(addon)
                for addon in branch_scoped
                if _selected_for_branch(addon, index)
            ],
        }
        for index in range(max(branch_count, 0))
    ]
