"""Service layer for handling expense-related logic."""
import logging
import math
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional
from models.expense import Expense, ExpenseCreate, ExpenseUpdate
from services.errors import ExpenseValidationError, ExpenseNotFound
from services.expense_store import ExpenseStore, parse_expense_id

logger = logging.getLogger(__name__)

COST_NOT_POSITIVE_MSG = "`cost` must be a positive number"
DESCRIPTION_EMPTY_MSG = "`description` must not be empty"

# Fields a client may change after creation
MUTABLE_FIELDS = ("description", "cost")

# --- Validation ---

def validate_cost(cost: Optional[float]) -> float:
    if cost is None or not math.isfinite(cost) or cost <= 0:
        raise ExpenseValidationError(COST_NOT_POSITIVE_MSG)
    return float(cost)

def validate_description(description: Optional[str]) -> str:
    if description is None or description == "":
        raise ExpenseValidationError(DESCRIPTION_EMPTY_MSG)
    return description

def collect_update_fields(payload: ExpenseUpdate) -> Dict[str, Any]:
    """
    Builds the mapping of fields to change from a partial update body.

    A field takes part only if the client sent it with a non-null value.
    Every such field is validated before the mapping is returned, so one bad
    field rejects the whole update.
    """
    supplied = {
        name: getattr(payload, name)
        for name in MUTABLE_FIELDS
        if name in payload.model_fields_set and getattr(payload, name) is not None
    }
    if "cost" in supplied:
        supplied["cost"] = validate_cost(supplied["cost"])
    if "description" in supplied:
        supplied["description"] = validate_description(supplied["description"])
    return supplied

# --- Operations (the store is always passed in by the caller) ---

async def list_expenses(store: ExpenseStore) -> List[Expense]:
    """Returns every expense as the store hands it back. Ordering is left to the client."""
    return await store.find_all()

async def add_expense(store: ExpenseStore, payload: ExpenseCreate) -> Expense:
    cost = validate_cost(payload.cost)
    description = validate_description(payload.description)

    record = {
        "description": description,
        "cost": cost,
        "createdDate": datetime.now(timezone.utc),
    }
    inserted_id = await store.insert(record)
    expense = Expense(id=str(inserted_id), **record)
    logger.info(f"Created expense {expense.id}: {description[:30]} ({cost})")
    return expense

async def update_expense(store: ExpenseStore, raw_id: str, payload: ExpenseUpdate) -> None:
    expense_id = parse_expense_id(raw_id)
    fields = collect_update_fields(payload)

    logger.debug(f"Updating expense {expense_id} with fields {sorted(fields)}")
    if not await store.update_fields(expense_id, fields):
        raise ExpenseNotFound()
    logger.info(f"Updated expense {expense_id}: {', '.join(sorted(fields)) or 'no fields'}")

async def remove_expense(store: ExpenseStore, raw_id: str) -> None:
    expense_id = parse_expense_id(raw_id)

    deleted_count = await store.delete_by_id(expense_id)
    if deleted_count == 0:
        raise ExpenseNotFound()
    logger.info(f"Deleted expense {expense_id}")
