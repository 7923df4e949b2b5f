"""
The page model and its run indicator.

The lifecycle driver lives in usmcore.page.driver (import it from there; it
depends on the sandbox, which itself depends on the page model).
"""

from usmcore.page.document import (
    COMPLETE,
    INTERACTIVE,
    LOADING,
    PageDocument,
    StyleNode,
)
from usmcore.page.indicator import RunIndicator

__all__ = [
    "COMPLETE",
    "INTERACTIVE",
    "LOADING",
    "PageDocument",
    "StyleNode",
    "RunIndicator",
]
