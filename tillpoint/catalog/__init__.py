"""
Catalog — product, discount, shipping and staff lookups.

    from tillpoint import catalog

    store = catalog.MemoryCatalog(products=[...], discounts=[...])
    product = await store.get_product("p1")

SQLAlchemy-backed lookups live in `tillpoint.storage.SQLAlchemyCatalog`.
"""

from tillpoint.catalog._store import BarcodeMatch, Catalog, MemoryCatalog

__all__ = ("BarcodeMatch", "Catalog", "MemoryCatalog")
