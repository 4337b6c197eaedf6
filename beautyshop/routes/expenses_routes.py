from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from beautyshop.auth.dependencies import get_current_user
from beautyshop.database import get_db
from beautyshop.models.expense import Expense
from beautyshop.models.user import User
from beautyshop.routes.common import CamelModel, database_unavailable, normalize_required_text

router = APIRouter(tags=['expenses'])


class ExpenseRequest(CamelModel):
    amount: int = Field(ge=1)
    description: str

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str) -> str:
        return normalize_required_text(value, 'Description')


class ExpenseResponse(CamelModel):
    id: int
    owner_id: int
    amount: int
    description: str
    created_at: datetime | None = None


class ExpenseMessageResponse(CamelModel):
    message: str
    expense: ExpenseResponse


class ExpenseListResponse(CamelModel):
    expenses: list[ExpenseResponse]


@router.get('', response_model=ExpenseListResponse)
def list_expenses(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        expenses = db.query(Expense).filter(Expense.owner_id == current_user.id).order_by(
            Expense.created_at.desc(),
            Expense.id.desc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return ExpenseListResponse(expenses=[ExpenseResponse.model_validate(expense) for expense in expenses])


@router.post('', response_model=ExpenseMessageResponse, status_code=status.HTTP_201_CREATED)
def create_expense(
    data: ExpenseRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        expense = Expense(owner_id=current_user.id, amount=data.amount, description=data.description)
        db.add(expense)
        db.commit()
        db.refresh(expense)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return ExpenseMessageResponse(message='Expense added.', expense=ExpenseResponse.model_validate(expense))
