"""
Plan configuration for subscription tiers.

This module is the single source of truth for plan pricing and features.
It lives in core/ so both service and API layers can import from it
without creating circular dependencies.
"""

PLANS = {
    "free": {
        "name": "Free",
        "price_monthly": 0,
        "features": [
            "Unlimited headlines",
            "AI summaries and key points",
            "Bookmarks and comments",
        ],
        "perks": {
            "ad_free": False,
            "self_serve_ads": False,
            "developer_api": False,
        },
    },
    "standard": {
        "name": "Standard",
        "price_monthly": 4.99,
        "features": [
            "Ad-free browsing",
            "Unlimited summaries",
            "Access to exclusive content",
            "Save articles for offline reading",
        ],
        "perks": {
            "ad_free": True,
            "self_serve_ads": False,
            "developer_api": False,
        },
    },
    "premium": {
        "name": "Premium",
        "price_monthly": 9.99,
        "features": [
            "Everything in Standard",
            "High-quality audio articles",
            "Dyslexia-friendly font",
            "Priority support",
        ],
        "perks": {
            "ad_free": True,
            "self_serve_ads": False,
            "developer_api": False,
        },
    },
    "pro": {
        "name": "Pro",
        "price_monthly": 19.99,
        "features": [
            "Everything in Premium",
            "Create your own ads",
            "Access to developer API",
            "Early access to new features",
        ],
        "perks": {
            "ad_free": True,
            "self_serve_ads": True,
            "developer_api": True,
        },
    },
}


def plan_has_perk(tier: str, perk: str) -> bool:
    """Check whether a tier includes a perk; unknown tiers get nothing."""
    return bool(PLANS.get(tier, {}).get("perks", {}).get(perk, False))
