"""SQLAlchemy repository for the read-only product catalog.

The schema is a single ``products`` table keyed by a slug-like product id.
Prices are stored in cents. Connection parameters come from the ``DB_*``
environment variables, or a full ``DATABASE_URL`` when set.
"""

import os
from contextlib import contextmanager

from sqlalchemy import Boolean, Integer, String, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Session, mapped_column

DB_HOST = os.getenv("DB_HOST", "catalog-db")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "catalog")
DB_USER = os.getenv("DB_USER", "catalog_user")
DB_PASSWORD = os.getenv("DB_PASSWORD", "catalog-pass")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)
engine = create_engine(DATABASE_URL, pool_pre_ping=True)

# (id, name, price_cents)
SEED_MENU = (
    ("burger", "Ghost Burger", 1250),
    ("double-cheeseburger", "Cheeseburger Doble", 1299),
    ("onion-rings", "Aros de Cebolla", 599),
    ("fries", "Papas Fritas", 450),
    ("large-drink", "Bebida Grande", 250),
)


class Base(DeclarativeBase):
    pass


class Product(Base):
    """A sellable product.

    Attributes:
        id: Product id (string, max 64 chars) used as primary key.
        name: Display name shown on orders.
        price_cents: Unit price in cents.
        available: False while the kitchen cannot make it.
    """
    __tablename__ = "products"
    id = mapped_column(String(64), primary_key=True)
    name = mapped_column(String(120), nullable=False)
    price_cents = mapped_column(Integer, nullable=False)
    available = mapped_column(Boolean, nullable=False, default=True)


@contextmanager
def get_session():
    with Session(engine) as s:
        yield s


def init_db(seed: bool = True) -> None:
    """Create the schema and insert the seed menu on an empty table."""
    Base.metadata.create_all(engine)
    if not seed:
        return
    with get_session() as s:
        if s.scalars(select(Product.id).limit(1)).first() is None:
            s.add_all(Product(id=pid, name=name, price_cents=cents, available=True) for pid, name, cents in SEED_MENU)
            s.commit()


class CatalogRepo:
    def get(self, product_id: str) -> Product | None:
        with get_session() as s:
            return s.get(Product, product_id)

    def list_available(self) -> list[Product]:
        with get_session() as s:
            return list(s.scalars(select(Product).where(Product.available.is_(True)).order_by(Product.name)))
