from typing import List, Optional

from pydantic import BaseModel, Field


class OrderItem(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    price: float = Field(ge=0)


class OrderRequest(BaseModel):
    user_id: str
    items: List[OrderItem]
    total: Optional[float] = None
    email: Optional[str] = None
    shipping_address: Optional[dict] = None


class OrderUpdate(BaseModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None


class PaymentRequest(BaseModel):
    order_id: str
    amount: float = Field(gt=0)
    currency: str = "USD"
    payment_method: str


class StockUpdate(BaseModel):
    stock_count: int = Field(ge=0)
