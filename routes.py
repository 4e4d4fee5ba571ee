"""API Routes for expenses"""
from fastapi import APIRouter, Depends, Request
from typing import List, Annotated
from services import expenses_service
from services.errors import StorageUnavailable
from services.expense_store import ExpenseStore
from models.expense import Expense, ExpenseCreate, ExpenseUpdate, SuccessResponse, ErrorResponse
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input or storage error"},
}

# --- Dependency Function ---
def get_expense_store(request: Request) -> ExpenseStore:
    """Dependency to get the expense store from the request state."""
    store = getattr(request.state, "expense_store", None)
    if store is None:
        logger.error("Expense store not found in application state. Check MongoDB connection.")
        raise StorageUnavailable("Database service not available.")
    return store

# Type hint for the dependency
ExpenseStoreDep = Annotated[ExpenseStore, Depends(get_expense_store)]

# --- API Routes ---

@router.get("/expenses", response_model=List[Expense], responses=ERROR_RESPONSES, summary="Get All Expenses", description="Retrieves all expense records. Order is unspecified; the client sorts and groups them.")
async def get_expenses(store: ExpenseStoreDep) -> List[Expense]:
    logger.info("GET /expenses endpoint called.")
    return await expenses_service.list_expenses(store)

@router.post("/expenses", response_model=Expense, status_code=201, responses=ERROR_RESPONSES, summary="Create Expense")
async def create_expense(store: ExpenseStoreDep, payload: ExpenseCreate) -> Expense:
    """Validates the body, stamps the creation time and stores the expense."""
    logger.info("POST /expenses endpoint called.")
    return await expenses_service.add_expense(store, payload)

@router.patch(
    "/expenses/{expense_id}",
    response_model=SuccessResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse, "description": "No expense with this id"}},
    summary="Update Expense",
    description="Changes `description` and/or `cost`. Fields left out of the body are not modified.",
)
async def update_expense(store: ExpenseStoreDep, expense_id: str, payload: ExpenseUpdate) -> SuccessResponse:
    logger.info(f"PATCH /expenses/{expense_id} endpoint called with fields {sorted(payload.model_fields_set)}")
    await expenses_service.update_expense(store, expense_id, payload)
    return SuccessResponse()

@router.delete(
    "/expenses/{expense_id}",
    response_model=SuccessResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse, "description": "No expense with this id"}},
    summary="Delete Expense",
)
async def delete_expense(store: ExpenseStoreDep, expense_id: str) -> SuccessResponse:
    logger.info(f"DELETE /expenses/{expense_id} endpoint called.")
    await expenses_service.remove_expense(store, expense_id)
    return SuccessResponse()
