"""
FastAPI application — HTTP surface over OrderService, the catalog and analytics.

    app = create_app(service, catalog, settings)

or, reading everything from the environment and the database:

    app = app_from_settings(Settings.from_env())
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tillpoint import analytics as A
from tillpoint._config import Settings
from tillpoint.catalog import Catalog
from tillpoint.errors import (
    InsufficientStock,
    NotFound,
    TillpointError,
    TransactionFailed,
    ValidationError,
)
from tillpoint.orders import OrderService
from tillpoint.storage import SQLAlchemyCatalog, SQLAlchemyGateway, create_database
from tillpoint.wire._codecs import (
    CategorySalesOut,
    CreateOrderRequest,
    DiscountOut,
    MonthlySalesOut,
    OrderOut,
    ProductOut,
    ProductSalesOut,
    QuoteRequest,
    StatusRequest,
    StockAlertOut,
    TopProductsOut,
    TotalsOut,
    UpdateOrderRequest,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Error mapping
# ═══════════════════════════════════════════════════════════════════════════════


def status_for(error: TillpointError) -> int:
    match error:
        case NotFound():
            return 404
        case InsufficientStock():
            return 409
        case ValidationError():
            return 400
        case TransactionFailed():
            return 500
        case _:
            return 500


async def _handle_tillpoint_error(request: Request, exc: TillpointError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status,
        content={"error": exc.code, "message": exc.message, **exc.details()},
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Dependencies
# ═══════════════════════════════════════════════════════════════════════════════


def _service(request: Request) -> OrderService:
    return request.app.state.service


def _catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def _settings(request: Request) -> Settings:
    return request.app.state.settings


ServiceDep = Annotated[OrderService, Depends(_service)]
CatalogDep = Annotated[Catalog, Depends(_catalog)]
SettingsDep = Annotated[Settings, Depends(_settings)]


# ═══════════════════════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════════════════════

router = APIRouter(prefix="/api")


@router.post("/orders/quote", response_model=TotalsOut)
async def quote_order(req: QuoteRequest, service: ServiceDep) -> TotalsOut:
    return TotalsOut.from_domain(await service.quote(req.to_domain()))


@router.post("/orders", response_model=OrderOut, status_code=201)
async def create_order(req: CreateOrderRequest, service: ServiceDep) -> OrderOut:
    return OrderOut.from_domain(await service.create(req.to_domain()))


@router.get("/orders", response_model=list[OrderOut])
async def list_orders(service: ServiceDep) -> list[OrderOut]:
    return [OrderOut.from_domain(o) for o in await service.list()]


@router.get("/orders/{order_id}", response_model=OrderOut)
async def get_order(order_id: str, service: ServiceDep) -> OrderOut:
    return OrderOut.from_domain(await service.get(order_id))


@router.patch("/orders/{order_id}", response_model=OrderOut)
async def update_order(
    order_id: str,
    req: UpdateOrderRequest,
    service: ServiceDep,
) -> OrderOut:
    return OrderOut.from_domain(await service.update(order_id, req.to_domain()))


@router.post("/orders/{order_id}/status", response_model=OrderOut)
async def change_status(
    order_id: str,
    req: StatusRequest,
    service: ServiceDep,
) -> OrderOut:
    return OrderOut.from_domain(await service.apply_status_transition(order_id, req.status))


@router.get("/products/barcode/{code}", response_model=ProductOut)
async def scan_barcode(code: str, catalog: CatalogDep) -> ProductOut:
    match = await catalog.find_product_by_barcode(code)
    if match is None:
        raise NotFound("Product", code)
    return ProductOut.from_domain(match)


@router.get("/discounts/{code}", response_model=DiscountOut)
async def find_discount(code: str, catalog: CatalogDep) -> DiscountOut:
    discount = await catalog.find_discount_by_code(code)
    if discount is None:
        raise NotFound("Discount", code)
    return DiscountOut.from_domain(discount)


@router.get("/analytics/sales", response_model=list[MonthlySalesOut])
async def sales(service: ServiceDep) -> list[MonthlySalesOut]:
    return [MonthlySalesOut.from_domain(m) for m in A.sales_by_month(await service.list())]


@router.get("/analytics/top-products", response_model=TopProductsOut)
async def top_products(
    service: ServiceDep,
    catalog: CatalogDep,
) -> TopProductsOut:
    top = A.top_products(await service.list(), await catalog.list_products())
    return TopProductsOut(
        by_revenue=[ProductSalesOut.from_domain(p) for p in top.by_revenue],
        by_quantity=[ProductSalesOut.from_domain(p) for p in top.by_quantity],
    )


@router.get("/analytics/categories", response_model=list[CategorySalesOut])
async def categories(
    service: ServiceDep,
    catalog: CatalogDep,
) -> list[CategorySalesOut]:
    stats = A.category_performance(await catalog.list_products(), await service.list())
    return [CategorySalesOut.from_domain(c) for c in stats]


@router.get("/analytics/low-stock", response_model=list[StockAlertOut])
async def low_stock(
    catalog: CatalogDep,
    settings: SettingsDep,
    threshold: Annotated[int | None, Query(ge=0)] = None,
) -> list[StockAlertOut]:
    limit = settings.low_stock_threshold if threshold is None else threshold
    alerts = A.low_stock_alerts(await catalog.list_products(), limit)
    return [StockAlertOut.from_domain(a) for a in alerts]


# ═══════════════════════════════════════════════════════════════════════════════
# App factories
# ═══════════════════════════════════════════════════════════════════════════════


def create_app(
    service: OrderService | None = None,
    catalog: Catalog | None = None,
    settings: Settings | None = None,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[None]] | None = None,
) -> FastAPI:
    """
    Build the API. `service` and `catalog` may be left out when `lifespan`
    installs them on `app.state` at startup.
    """
    app = FastAPI(title="Tillpoint API", lifespan=lifespan)
    app.state.service = service
    app.state.catalog = catalog
    app.state.settings = settings or Settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(TillpointError, _handle_tillpoint_error)  # type: ignore[arg-type]
    app.include_router(router)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"message": "Tillpoint API"}

    return app


def app_from_settings(settings: Settings) -> FastAPI:
    """API backed by the SQLAlchemy catalog and gateway at `settings.database_url`."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        session_factory, engine = await create_database(settings.database_url)
        catalog = SQLAlchemyCatalog(session_factory)
        app.state.catalog = catalog
        app.state.service = OrderService(catalog, SQLAlchemyGateway(session_factory), settings)
        logger.info("database ready at %s", engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            await engine.dispose()

    return create_app(settings=settings, lifespan=lifespan)


__all__ = ("status_for", "router", "create_app", "app_from_settings")
