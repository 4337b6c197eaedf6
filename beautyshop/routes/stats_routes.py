from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from beautyshop.auth.dependencies import get_current_user
from beautyshop.core import config
from beautyshop.database import get_db
from beautyshop.models.appointment import STATUS_COMPLETED, Appointment
from beautyshop.models.expense import Expense
from beautyshop.models.user import User
from beautyshop.routes.common import CamelModel, database_unavailable, utc_now

router = APIRouter(tags=['stats'])


class MonthlyStatsResponse(CamelModel):
    month: str
    appointments: int
    revenue: int


class StatsResponse(CamelModel):
    total_appointments: int
    completed_appointments: int
    total_revenue: int
    total_expenses: int
    net_profit: int
    monthly_stats: list[MonthlyStatsResponse]


def month_start(year: int, month: int, offset: int = 0) -> datetime:
    index = year * 12 + (month - 1) + offset
    return datetime(index // 12, index % 12 + 1, 1)


def build_stats(db: Session, owner_id: int, now: datetime, months: int) -> StatsResponse:
    completed = db.query(Appointment.start_time, Appointment.final_price).filter(
        Appointment.owner_id == owner_id,
        Appointment.status == STATUS_COMPLETED,
    ).all()
    total_expenses = db.query(func.coalesce(func.sum(Expense.amount), 0)).filter(
        Expense.owner_id == owner_id,
    ).scalar()

    total_revenue = sum(final_price or 0 for _, final_price in completed)

    monthly_stats: list[MonthlyStatsResponse] = []
    for offset in range(months - 1, -1, -1):
        period_start = month_start(now.year, now.month, -offset)
        period_end = month_start(now.year, now.month, -offset + 1)
        in_period = [
            final_price or 0
            for start_time, final_price in completed
            if period_start <= start_time < period_end
        ]
        monthly_stats.append(
            MonthlyStatsResponse(
                month=period_start.strftime('%Y-%m'),
                appointments=len(in_period),
                revenue=sum(in_period),
            )
        )

    return StatsResponse(
        total_appointments=len(completed),
        completed_appointments=len(completed),
        total_revenue=total_revenue,
        total_expenses=int(total_expenses),
        net_profit=total_revenue - int(total_expenses),
        monthly_stats=monthly_stats,
    )


@router.get('', response_model=StatsResponse)
def get_stats(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return build_stats(db, current_user.id, utc_now(), config.STATS_MONTHS)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc
