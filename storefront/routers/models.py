"""
Cart API Pydantic Models
"""
from typing import List

from pydantic import BaseModel, Field


class AddToCartRequest(BaseModel):
    merchandise_id: str
    quantity: int = 1


class UpdateLineRequest(BaseModel):
    line_id: str
    quantity: int  # 0 removes the line


class CartItemRequest(BaseModel):
    merchandise_id: str
    quantity: int = 1


class AddMultipleRequest(BaseModel):
    items: List[CartItemRequest] = Field(default_factory=list)
