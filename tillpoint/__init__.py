"""
tillpoint — order pricing, discount and inventory engine for a storefront.

    from tillpoint import pricing as P     # Line prices, discounts, totals
    from tillpoint import inventory as I   # Stock effects of status changes
    from tillpoint import orders as O      # Create / edit / transition orders
    from tillpoint import analytics as A   # Dashboard reports
    from tillpoint import storage as S     # Memory and SQLAlchemy gateways

HTTP lives in `tillpoint.wire` and is imported on demand.
"""

from tillpoint import catalog
from tillpoint import pricing
from tillpoint import inventory
from tillpoint import storage
from tillpoint import orders
from tillpoint import analytics
from tillpoint._config import Settings
from tillpoint._logging import configure_logging
from tillpoint._types import Clock, utc_now

__version__ = "0.1.0"

__all__ = (
    "catalog",
    "pricing",
    "inventory",
    "storage",
    "orders",
    "analytics",
    "Settings",
    "configure_logging",
    "Clock",
    "utc_now",
)
