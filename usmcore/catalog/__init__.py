"""
usmcore/catalog
The script catalog, user settings and run ledger (the engine's collaborator).

Usage:
    from usmcore.catalog import InMemoryCatalogStore, Script

    store = InMemoryCatalogStore([Script(name="demo", code="GM_addStyle('b{}')")])
    scripts = await store.get_catalog()
"""

from usmcore.catalog.models import Script, Settings, RunRecord, DEFAULT_RUN_AT
from usmcore.catalog.store import CatalogStore, InMemoryCatalogStore, assign_missing_ids
from usmcore.catalog.metadata import parse_userscript_metadata, script_from_source

__all__ = [
    "Script",
    "Settings",
    "RunRecord",
    "DEFAULT_RUN_AT",
    "CatalogStore",
    "InMemoryCatalogStore",
    "assign_missing_ids",
    "parse_userscript_metadata",
    "script_from_source",
]
