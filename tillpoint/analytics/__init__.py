"""
Analytics — dashboard reports over orders and products.

    from tillpoint import analytics as A

    months = A.sales_by_month(await service.list())
    alerts = A.low_stock_alerts(await catalog.list_products(), threshold=5)
"""

from tillpoint.analytics._sales import (
    MonthlySales,
    VariantSales,
    ProductSales,
    TopProducts,
    CategorySales,
    AlertKind,
    StockAlert,
    sales_by_month,
    top_products,
    category_performance,
    low_stock_alerts,
)

__all__ = (
    "MonthlySales",
    "VariantSales",
    "ProductSales",
    "TopProducts",
    "CategorySales",
    "AlertKind",
    "StockAlert",
    "sales_by_month",
    "top_products",
    "category_performance",
    "low_stock_alerts",
)
