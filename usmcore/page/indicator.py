"""
The on-page run counter badge.

Rules:
  - nothing is shown until the first successful script run
  - every successful run updates the count
  - a click dismisses it; once dismissed it stays hidden for the rest of the
    page instance, even if more scripts succeed
"""

import html
from typing import Optional

from usmcore.base.config import IndicatorConfig, get_config

# Fixed position, bottom right, small and half transparent.
BADGE_STYLE = (
    "position:fixed;z-index:2147483647;bottom:8px;right:8px;"
    "padding:2px 6px;border-radius:999px;font-size:10px;"
    "font-family:system-ui,-apple-system,'Segoe UI',sans-serif;"
    "background:rgba(15,23,42,0.85);color:#e5e7eb;"
    "box-shadow:0 2px 6px rgba(0,0,0,0.35);cursor:pointer;opacity:0.7;"
)


class RunIndicator:
    def __init__(self, config: Optional[IndicatorConfig] = None):
        self.config = config or get_config().indicator
        self.count = 0
        self.created = False
        self.dismissed = False

    @property
    def visible(self) -> bool:
        return self.config.enabled and self.created and not self.dismissed

    @property
    def text(self) -> str:
        return f"{self.config.label}: {self.count}"

    def update(self, count: int) -> None:
        if count <= 0:
            return
        self.count = count
        self.created = True

    def dismiss(self) -> None:
        self.dismissed = True

    def render(self) -> str:
        """HTML for the badge, or "" when it should not be on the page."""
        if not self.visible:
            return ""
        title = f"{self.config.label} - click to hide this badge"
        return (
            f'<div id="{html.escape(self.config.element_id)}" style="{BADGE_STYLE}" '
            f'title="{html.escape(title)}" onclick="this.style.display=\'none\'">'
            f"{html.escape(self.text)}</div>"
        )
