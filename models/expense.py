"""Pydantic models for Expense data"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

class Expense(BaseModel):
    """
    Represents a single recorded purchase.
    """
    id: str
    description: str
    cost: float
    createdDate: datetime

class ExpenseCreate(BaseModel):
    """Body of a create request. Range checks happen in the service layer."""
    description: Optional[str] = None
    # strict: `true` and "4.5" are not numbers
    cost: Optional[float] = Field(default=None, strict=True, allow_inf_nan=False)

class ExpenseUpdate(BaseModel):
    """Body of a partial update. Only fields the client sent end up in `model_fields_set`."""
    description: Optional[str] = None
    cost: Optional[float] = Field(default=None, strict=True, allow_inf_nan=False)

class SuccessResponse(BaseModel):
    success: bool = True

class ErrorResponse(BaseModel):
    success: bool = False
    message: str
