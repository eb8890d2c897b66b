from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tillpoint._config import Settings
from tillpoint.catalog import MemoryCatalog
from tillpoint.domain import (
    Customer,
    Discount,
    DiscountType,
    Product,
    ProductVariant,
    ShippingOption,
    ShippingStatus,
    StaffMember,
    StaffRole,
)
from tillpoint.orders import OrderService
from tillpoint.storage import (
    MemoryGateway,
    SQLAlchemyCatalog,
    SQLAlchemyGateway,
    create_database,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
JAN_1 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@dataclass
class FakeClock:
    now: datetime = NOW

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog data
# ═══════════════════════════════════════════════════════════════════════════════


def products() -> list[Product]:
    return [
        Product(
            id="widget",
            title="Widget",
            price=Decimal("500"),
            inventory=10,
            category="Gadgets",
            barcode="4006381333931",
        ),
        Product(
            id="shirt",
            title="Shirt",
            price=Decimal("1000"),
            inventory=8,
            category="Apparel",
            variants=(
                ProductVariant(
                    id="shirt-s",
                    product_id="shirt",
                    sku="SHIRT-S",
                    name="Small",
                    price=Decimal("1200"),
                    inventory=5,
                ),
                ProductVariant(id="shirt-m", product_id="shirt", name="Medium", inventory=3),
            ),
        ),
        Product(id="lamp", title="Lamp", price=Decimal("300"), inventory=2, category="Home"),
        Product(id="mystery", title="Mystery box", price=None, inventory=5, category="Home"),
    ]


def discounts() -> list[Discount]:
    return [
        Discount(id="d-save10", code="SAVE10", type=DiscountType.PERCENTAGE, value=Decimal("10"), starts_at=JAN_1),
        Discount(
            id="d-small",
            code="SMALL2000",
            type=DiscountType.FIXED_AMOUNT,
            value=Decimal("2000"),
            starts_at=JAN_1,
            variant_ids=frozenset({"shirt-s"}),
        ),
        Discount(id="d-ship", code="FREESHIP", type=DiscountType.FREE_SHIPPING, value=Decimal("0"), starts_at=JAN_1),
        Discount(
            id="d-once",
            code="ONCE",
            type=DiscountType.FIXED_AMOUNT,
            value=Decimal("100"),
            starts_at=JAN_1,
            usage_limit=1,
        ),
        Discount(
            id="d-expired",
            code="OLD",
            type=DiscountType.PERCENTAGE,
            value=Decimal("20"),
            starts_at=JAN_1,
            ends_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
        ),
    ]


def shipping_options() -> list[ShippingOption]:
    return [
        ShippingOption(id="standard", name="Standard", price=Decimal("200"), delivery_time="3-5 days"),
        ShippingOption(
            id="express",
            name="Express",
            price=Decimal("500"),
            delivery_time="1 day",
            status=ShippingStatus.CONDITIONAL,
        ),
    ]


# ═══════════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def customer() -> Customer:
    return Customer(
        first_name="Ada",
        last_name="Obi",
        email="ada@example.com",
        phone="+2348000000000",
        address="1 Marina Road",
        city="Lagos",
        state="Lagos",
        postal_code="101001",
        country="NG",
    )


@pytest.fixture
def catalog() -> MemoryCatalog:
    return MemoryCatalog(products(), discounts(), shipping_options(), staff())


@pytest.fixture
def gateway(catalog: MemoryCatalog) -> MemoryGateway:
    return MemoryGateway(catalog)


@pytest.fixture
def service(
    catalog: MemoryCatalog,
    gateway: MemoryGateway,
    settings: Settings,
    clock: FakeClock,
) -> OrderService:
    return OrderService(catalog, gateway, settings, clock=clock)


@dataclass
class SQLStack:
    catalog: SQLAlchemyCatalog
    gateway: SQLAlchemyGateway
    service: OrderService
    engine: object = field(repr=False)


@pytest.fixture
async def sql(settings: Settings, clock: FakeClock):
    session_factory, engine = await create_database("sqlite+aiosqlite:///:memory:")
    catalog = SQLAlchemyCatalog(session_factory)
    for option in shipping_options():
        await catalog.put_shipping_option(option)
    for product in products():
        await catalog.put_product(product)
    for discount in discounts():
        await catalog.put_discount(discount)
    for member in staff():
        await catalog.put_staff_member(member)

    gateway = SQLAlchemyGateway(session_factory)
    yield SQLStack(catalog, gateway, OrderService(catalog, gateway, settings, clock=clock), engine)
    await engine.dispose()
