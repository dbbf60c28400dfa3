"""Pydantic response schemas for the Catalogue API."""

from pydantic import BaseModel, ConfigDict


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: float
    stock: int
    images: list[str]
    flavors: list[str]
    strengths: list[int]
