"""Character catalog package (local mirror + public API)."""

from .api import catalog_api_blueprint
from .records import CharacterRecord, LookupEntry
from .sync import ensure_catalog_cache, load_catalog, mark_catalog_cache_stale, store_catalog_rows

__all__ = [
    "catalog_api_blueprint",
    "CharacterRecord",
    "LookupEntry",
    "ensure_catalog_cache",
    "load_catalog",
    "mark_catalog_cache_stale",
    "store_catalog_rows",
]
