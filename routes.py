"""API Routes for expenses"""
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pymongo.errors import PyMongoError

from models.expense import Expense, ExpenseIn, ExpenseListResponse, MessageResponse
from services.expenses_service import ExpenseStore, sum_amounts

router = APIRouter()
logger = logging.getLogger(__name__)

EXPENSE_NOT_FOUND = "Expense not found"

# --- Dependency Functions ---
def get_expense_store(request: Request) -> ExpenseStore:
    """Dependency to get the expense store from the request state."""
    store = getattr(request.state, "expense_store", None)
    if store is None:
        logger.error("Expense store not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=503, detail="Database service not available.")
    return store


def get_owner_id(x_user_id: Annotated[Optional[str], Header()] = None) -> Optional[str]:
    """Caller identity from the optional X-User-Id header."""
    return x_user_id


ExpenseStoreDep = Annotated[ExpenseStore, Depends(get_expense_store)]
OwnerIdDep = Annotated[Optional[str], Depends(get_owner_id)]

# --- API Routes ---

@router.get("/health", summary="Health Check")
async def health(request: Request):
    """Reports whether the API is up and whether MongoDB answers a ping."""
    db = getattr(request.state, "db", None)
    database = "down"
    if db is not None:
        try:
            await db.command("ping")
            database = "up"
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
    return {"status": "ok", "database": database}


@router.get("/expenses", response_model=ExpenseListResponse, summary="Get All Expenses", description="Retrieves the caller's expenses, sorted by date descending, with their total.")
async def get_expenses(store: ExpenseStoreDep, owner_id: OwnerIdDep) -> ExpenseListResponse:
    logger.info(f"GET /expenses endpoint called for owner {owner_id}")
    expenses = await store.list(owner_id)
    return ExpenseListResponse(expenses=expenses, total_amount=sum_amounts(expenses), count=len(expenses))


@router.get("/expenses/{expense_id}", response_model=Expense, summary="Get Expense")
async def get_expense(expense_id: str, store: ExpenseStoreDep) -> Expense:
    expense = await store.get_by_id(expense_id)
    if expense is None:
        raise HTTPException(status_code=404, detail=EXPENSE_NOT_FOUND)
    return expense


@router.post("/expenses", response_model=Expense, status_code=status.HTTP_201_CREATED, summary="Create Expense")
async def create_expense(expense_in: ExpenseIn, store: ExpenseStoreDep, owner_id: OwnerIdDep) -> Expense:
    created = await store.create(expense_in, owner_id)
    logger.info(f"Created expense: {created.id}")
    return created


@router.put("/expenses/{expense_id}", response_model=Expense, summary="Update Expense")
async def update_expense(expense_id: str, expense_in: ExpenseIn, store: ExpenseStoreDep, owner_id: OwnerIdDep) -> Expense:
    updated = await store.update(expense_id, expense_in, owner_id)
    if updated is None:
        raise HTTPException(status_code=404, detail=EXPENSE_NOT_FOUND)
    logger.info(f"Updated expense: {updated.id}")
    return updated


@router.delete("/expenses/{expense_id}", response_model=MessageResponse, summary="Delete Expense")
async def delete_expense(expense_id: str, store: ExpenseStoreDep, owner_id: OwnerIdDep) -> MessageResponse:
    if not await store.delete(expense_id, owner_id):
        raise HTTPException(status_code=404, detail=EXPENSE_NOT_FOUND)
    logger.info(f"Deleted expense with ID: {expense_id}")
    return MessageResponse(message="Expense deleted successfully")
