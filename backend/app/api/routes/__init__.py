"""
API routes package
"""
from app.api.routes import accident_links, accident_form, accidents, tow_providers

__all__ = [
    "accident_links",
    "accident_form",
    "accidents",
    "tow_providers",
]
