from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class TransactionCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=20, decimal_places=4)
    currency: str = Field("USD", min_length=3, max_length=3, pattern="^[A-Z]{3}$")
    reference: str | None = Field(None, max_length=100)


class TransactionResponse(BaseModel):
    id: str
    amount: Decimal
    currency: str
    reference: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=20, decimal_places=4)
    currency: str = Field("USD", min_length=3, max_length=3, pattern="^[A-Z]{3}$")


class PaymentResponse(BaseModel):
    id: str
    transaction_id: str
    amount: Decimal
    currency: str
    created_at: datetime
