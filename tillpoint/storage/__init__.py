"""
Storage — order persistence behind one transactional boundary.

    from tillpoint import storage as S

    session_factory, engine = await S.create_database()
    gateway = S.SQLAlchemyGateway(session_factory)

    async with gateway.transaction() as uow:
        ...

MemoryGateway gives the same guarantees in-process, for tests and demos.
"""

from tillpoint.storage._types import UnitOfWork, Gateway
from tillpoint.storage._memory import MemoryUnitOfWork, MemoryGateway
from tillpoint.storage._tables import Base, create_database
from tillpoint.storage._sqlalchemy import (
    SQLAlchemyCatalog,
    SQLAlchemyUnitOfWork,
    SQLAlchemyGateway,
    to_order,
    to_product,
)

__all__ = (
    "UnitOfWork",
    "Gateway",
    "MemoryUnitOfWork",
    "MemoryGateway",
    "Base",
    "create_database",
    "SQLAlchemyCatalog",
    "SQLAlchemyUnitOfWork",
    "SQLAlchemyGateway",
    "to_order",
    "to_product",
)
