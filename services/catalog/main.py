"""Catalog service API built with FastAPI.

Serves product lookups to the storefront core and performs the atomic
stock reservation used at checkout. Persistence lives in
``repo.CatalogRepo``.
"""

import time
from decimal import Decimal
from typing import List

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, constr
from sqlalchemy import text

from services.logs import install_request_id, json_logger

from .repo import CatalogRepo, engine, init_db

app = FastAPI(title="Catalog Service")

ProductId = constr(pattern=r"^[A-Za-z0-9_-]{1,64}$")

logger = json_logger("catalog")
install_request_id(app, logger)


@app.on_event("startup")
def _startup_db():
    # wait briefly until the database accepts connections
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


class ProductIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    stock: int = Field(ge=0)
    is_active: bool = True
    image: str = Field(default="", max_length=500)


class Line(BaseModel):
    """A product line to reserve or release.

    Attributes:
        product_id: Catalog product id.
        quantity: Positive quantity.
    """
    product_id: ProductId
    quantity: int = Field(gt=0)


class LinesRequest(BaseModel):
    items: List[Line] = Field(min_length=1)


class ReserveResponse(BaseModel):
    reserved: bool
    detail: str | None = None


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/products/{product_id}")
def get_product(product_id: ProductId):
    product = CatalogRepo().get(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="NOT_FOUND")
    return product


@app.put("/products/{product_id}")
def put_product(product_id: ProductId, req: ProductIn):
    """Create or replace a product (admin and seeding)."""
    return CatalogRepo().upsert(product_id, req.name, req.price, req.stock, req.is_active, req.image)


@app.post("/reserve", response_model=ReserveResponse)
def reserve(req: LinesRequest):
    """Reserve stock for every line, all or nothing.

    Raises:
        HTTPException: 422 INSUFFICIENT_STOCK when any line cannot be covered.
    """
    items = [(it.product_id, it.quantity) for it in req.items]
    if not CatalogRepo().reserve(items):
        logger.info("reservation rejected", extra={"items": items})
        raise HTTPException(status_code=422, detail={"reserved": False, "detail": "INSUFFICIENT_STOCK"})
    return ReserveResponse(reserved=True)


@app.post("/release")
def release(req: LinesRequest):
    CatalogRepo().release([(it.product_id, it.quantity) for it in req.items])
    return {"released": True}
