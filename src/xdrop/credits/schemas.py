"""Pydantic schemas for credits."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BalanceResponse(BaseModel):
    credits: int
    costs: dict[str, int]


class SpendRequest(BaseModel):
    amount: int = Field(..., gt=0)
    type: str = Field(..., min_length=1, max_length=32)
    description: str | None = Field(None, max_length=500)


class CreditTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    amount: int
    balance_after: int
    type: str
    description: str | None = None
    created_at: datetime


class SpendResponse(BaseModel):
    success: bool = True
    credits: int
    transaction: CreditTransactionResponse


class TransactionListResponse(BaseModel):
    transactions: list[CreditTransactionResponse]
    total: int
    limit: int
    offset: int
