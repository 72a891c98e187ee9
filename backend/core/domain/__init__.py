# Domain logic
# Pure functions and value objects with no framework dependencies
from .comment_tree import TreeNode, assemble_forest, forest_to_dicts, forest_to_json
from .settings_mapping import SETTINGS_FIELDS, SettingsShapeError, flatten, unflatten
from .subscription import BillingEventType, SubscriptionState, SubscriptionTier

__all__ = [
    "TreeNode",
    "assemble_forest",
    "forest_to_dicts",
    "forest_to_json",
    "SETTINGS_FIELDS",
    "SettingsShapeError",
    "flatten",
    "unflatten",
    "BillingEventType",
    "SubscriptionState",
    "SubscriptionTier",
]
