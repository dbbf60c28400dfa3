"""FastAPI endpoints for the Catalogue domain: read-only product lookups."""

from fastapi import APIRouter
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from starlette.concurrency import run_in_threadpool

from catalogue.api.schemas import ProductResponse
from catalogue.product.product import Product

product_router = APIRouter(prefix="/products", tags=["products"])


def _list_products() -> list[ProductResponse]:
    return [ProductResponse.model_validate(p) for p in current_domain.repository_for(Product).catalogue()]


def _get_product(product_id: str) -> ProductResponse:
    product = current_domain.repository_for(Product).get_or_none(product_id)
    if product is None:
        raise ObjectNotFoundError("Product not found")
    return ProductResponse.model_validate(product)


@product_router.get("", response_model=list[ProductResponse])
async def list_products() -> list[ProductResponse]:
    return await run_in_threadpool(_list_products)


@product_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str) -> ProductResponse:
    return await run_in_threadpool(_get_product, product_id)
