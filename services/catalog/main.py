"""Catalog service API built with FastAPI.

Read-only product lookup used by the orders engine to snapshot names and
prices at order time. Persistence is delegated to ``repo.CatalogRepo``.
"""

import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel
from pythonjsonlogger import jsonlogger
from sqlalchemy import text

from repo import CatalogRepo, engine, init_db

app = FastAPI(title="Catalog Service")

logger = logging.getLogger("catalog")
if not logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    logger.addHandler(h)
    logger.setLevel(logging.INFO)


@app.on_event("startup")
def _startup_db():
    # wait for the database to accept connections
    deadline = time.time() + 30
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            break
        except Exception:
            if time.time() > deadline:
                raise
            time.sleep(1)
    init_db()


class ProductOut(BaseModel):
    """Public view of a product. ``price`` is in currency units."""
    id: str
    name: str
    price: float
    available: bool

    @classmethod
    def from_row(cls, row) -> "ProductOut":
        return cls(id=row.id, name=row.name, price=row.price_cents / 100, available=row.available)


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/products", response_model=list[ProductOut])
def list_products():
    """Products that can currently be ordered, by name."""
    return [ProductOut.from_row(p) for p in CatalogRepo().list_available()]


@app.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str):
    """Look one product up.

    Unavailable products are still returned (with ``available=false``) so the
    caller can tell "withdrawn" from "unknown".

    Raises:
        HTTPException: 404 when the id is unknown.
    """
    row = CatalogRepo().get(product_id)
    if row is None:
        raise HTTPException(status_code=404, detail="PRODUCT_NOT_FOUND")
    return ProductOut.from_row(row)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"request_id": rid, "path": request.url.path, "method": request.method})
    response.headers["X-Request-ID"] = rid
    return response
