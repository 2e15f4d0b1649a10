from datetime import date
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

import metrics
from categories import categories_by_type, display_label
from csv_utils import export_transactions
from database import SessionLocal, init_db
from fx_rates import RateCache, format_for_settings
from models import TransactionType
from periods import resolve_range
from scheduler import SchedulerManager
from schemas import (
    BudgetIn,
    PotIn,
    PotMoveIn,
    ProfileIn,
    RecurringBillIn,
    TransactionIn,
    UserSettings,
)
from services import (
    BudgetService,
    DashboardService,
    ExportService,
    PotService,
    ProfileService,
    RecurringBillService,
    ReportService,
    TransactionFilters,
    TransactionService,
    bill_dict,
    budget_dict,
    local_now,
    pot_dict,
    transaction_dict,
)


app = FastAPI(title="Finance Tracker")

ITEMS_PER_PAGE = 10


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


scheduler_manager = SchedulerManager()


def get_rate_cache() -> RateCache:
    return scheduler_manager.rate_cache


@app.on_event("startup")
def startup_event():
    init_db()
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    ProfileService(db, x_user_id).ensure_profile(email=x_user_email)
    return x_user_id


def _not_found(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


# Reference data


@app.get("/api/categories")
def api_categories(type: TransactionType = TransactionType.expense):
    return [
        {
            "id": item.id,
            "name": item.name,
            "icon": item.icon,
            "color": item.color,
            "type": item.type.value,
            "label": display_label(item.name),
        }
        for item in categories_by_type(type)
    ]


@app.get("/api/exchange-rates")
def api_exchange_rates(rate_cache: RateCache = Depends(get_rate_cache)):
    return rate_cache.current().as_payload()


# Profile and settings


@app.get("/api/profile")
def api_profile(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
    profile = ProfileService(db, user_id).get()
    return {
        "id": profile.id,
        "email": profile.email,
        "name": profile.name,
        "phone": profile.phone,
        "bio": profile.bio,
        "created_at": profile.created_at.isoformat(),
    }


@app.put("/api/profile")
def api_update_profile(
    data: ProfileIn, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    ProfileService(db, user_id).update(data)
    return api_profile(user_id, db)


@app.delete("/api/profile", status_code=204)
def api_delete_profile(
    user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    ProfileService(db, user_id).delete()
    return Response(status_code=204)


@app.get("/api/settings", response_model=UserSettings)
def api_settings(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
    return ProfileService(db, user_id).get_settings()


@app.put("/api/settings", response_model=UserSettings)
def api_update_settings(
    data: UserSettings,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db, user_id).update_settings(data)


# Transactions


@app.get("/api/transactions")
def api_transactions(
    q: Optional[str] = None,
    type: Optional[TransactionType] = None,
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(ITEMS_PER_PAGE, ge=1, le=100),
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    service = TransactionService(db, user_id)
    filters = TransactionFilters(query=q, type=type, category=category)
    items = service.list(filters, limit=limit + 1, offset=(page - 1) * limit)
    has_more = len(items) > limit
    return {
        "items": [transaction_dict(t) for t in items[:limit]],
        "page": page,
        "limit": limit,
        "has_more": has_more,
        "categories": service.categories_in_use(),
    }


@app.post("/api/transactions", status_code=201)
def api_create_transaction(
    data: TransactionIn,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    return transaction_dict(TransactionService(db, user_id).create(data))


@app.get("/api/transactions/summary")
def api_transactions_summary(
    user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    return TransactionService(db, user_id).month_summary()


@app.get("/api/transactions/export.csv")
def api_export_csv(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
    content = export_transactions(TransactionService(db, user_id).all())
    filename = f"transactions-{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/transactions/{transaction_id}")
def api_transaction(
    transaction_id: int,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return transaction_dict(TransactionService(db, user_id).get(transaction_id))
    except ValueError as exc:
        raise _not_found(exc) from exc


@app.put("/api/transactions/{transaction_id}")
def api_update_transaction(
    transaction_id: int,
    data: TransactionIn,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user_id).update(transaction_id, data)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return transaction_dict(txn)


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def api_delete_transaction(
    transaction_id: int,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        TransactionService(db, user_id).delete(transaction_id)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=204)


# Budgets


def _budget_progress_dict(progress: metrics.BudgetProgress) -> dict[str, object]:
    return {
        **budget_dict(progress.budget),
        "spent": progress.spent,
        "remaining": progress.remaining,
        "percentage": progress.percentage,
        "is_over_budget": progress.is_over_budget,
    }


@app.get("/api/budgets")
def api_budgets(
    q: Optional[str] = None,
    category: Optional[str] = None,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    service = BudgetService(db, user_id)
    progress = service.progress(search=q, category=category)
    return {
        "items": [_budget_progress_dict(p) for p in progress],
        "categories": service.categories_in_use(),
    }


@app.get("/api/budgets/summary")
def api_budgets_summary(
    user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    summary = BudgetService(db, user_id).summary()
    return {
        "budget_count": summary.budget_count,
        "total_budget": summary.total_budget,
        "total_spent": summary.total_spent,
        "remaining": summary.remaining,
        "over_budget_count": summary.over_budget_count,
    }


@app.post("/api/budgets", status_code=201)
def api_create_budget(
    data: BudgetIn, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    try:
        budget = BudgetService(db, user_id).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return budget_dict(budget)


@app.put("/api/budgets/{budget_id}")
def api_update_budget(
    budget_id: int,
    data: BudgetIn,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    service = BudgetService(db, user_id)
    try:
        service.get(budget_id)
    except ValueError as exc:
        raise _not_found(exc) from exc
    try:
        budget = service.update(budget_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return budget_dict(budget)


@app.delete("/api/budgets/{budget_id}", status_code=204)
def api_delete_budget(
    budget_id: int, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    try:
        BudgetService(db, user_id).delete(budget_id)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=204)


# Pots


def _pot_progress_dict(progress: metrics.PotProgress) -> dict[str, object]:
    return {
        **pot_dict(progress.pot),
        "percentage": progress.percentage,
        "is_completed": progress.is_completed,
        "is_near_target": progress.is_near_target,
        "remaining": progress.remaining,
    }


@app.get("/api/pots")
def api_pots(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
    service = PotService(db, user_id)
    summary = service.summary()
    return {
        "items": [_pot_progress_dict(metrics.pot_progress(p)) for p in service.list()],
        "summary": {
            "total_saved": summary.total_saved,
            "active": summary.active,
            "completed": summary.completed,
            "completion_rate": summary.completion_rate,
            "in_progress": summary.in_progress,
            "near_target": summary.near_target,
        },
    }


@app.post("/api/pots", status_code=201)
def api_create_pot(
    data: PotIn, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    return pot_dict(PotService(db, user_id).create(data))


@app.put("/api/pots/{pot_id}")
def api_update_pot(
    pot_id: int,
    data: PotIn,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return pot_dict(PotService(db, user_id).update(pot_id, data))
    except ValueError as exc:
        raise _not_found(exc) from exc


@app.delete("/api/pots/{pot_id}", status_code=204)
def api_delete_pot(
    pot_id: int, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    try:
        PotService(db, user_id).delete(pot_id)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=204)


def _move_money(
    pot_id: int, data: PotMoveIn, direction: Literal["add", "withdraw"], user_id: str, db: Session
):
    service = PotService(db, user_id)
    try:
        service.get(pot_id)
    except ValueError as exc:
        raise _not_found(exc) from exc
    try:
        if direction == "add":
            pot = service.add_money(pot_id, data.amount)
        else:
            pot = service.withdraw(pot_id, data.amount)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _pot_progress_dict(metrics.pot_progress(pot))


@app.post("/api/pots/{pot_id}/add")
def api_pot_add(
    pot_id: int,
    data: PotMoveIn,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    return _move_money(pot_id, data, "add", user_id, db)


@app.post("/api/pots/{pot_id}/withdraw")
def api_pot_withdraw(
    pot_id: int,
    data: PotMoveIn,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    return _move_money(pot_id, data, "withdraw", user_id, db)


# Recurring bills


@app.get("/api/recurring-bills")
def api_recurring_bills(
    q: Optional[str] = None,
    sort: Literal["name", "amount", "due_date"] = "due_date",
    match_payments: bool = False,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    now = local_now()
    service = RecurringBillService(db, user_id)
    transactions = TransactionService(db, user_id).all() if match_payments else None
    views = service.list(search=q, sort_by=sort, now=now, transactions=transactions)
    summary = metrics.bills_summary([v.bill for v in views], now, transactions)
    return {
        "items": [bill_dict(v.bill, v.status) for v in views],
        "summary": {
            "total_paid": summary.total_paid,
            "total_due": summary.total_due,
            "total_upcoming": summary.total_upcoming,
        },
    }


@app.post("/api/recurring-bills", status_code=201)
def api_create_bill(
    data: RecurringBillIn,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    bill = RecurringBillService(db, user_id).create(data)
    status = metrics.bill_status(bill.due_date, local_now().day)
    return bill_dict(bill, status)


@app.put("/api/recurring-bills/{bill_id}")
def api_update_bill(
    bill_id: int,
    data: RecurringBillIn,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        bill = RecurringBillService(db, user_id).update(bill_id, data)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return bill_dict(bill, metrics.bill_status(bill.due_date, local_now().day))


@app.delete("/api/recurring-bills/{bill_id}", status_code=204)
def api_delete_bill(
    bill_id: int, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    try:
        RecurringBillService(db, user_id).delete(bill_id)
    except ValueError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=204)


# Dashboard and reports


@app.get("/api/dashboard")
def api_dashboard(
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
    rate_cache: RateCache = Depends(get_rate_cache),
):
    settings = ProfileService(db, user_id).get_settings()
    return DashboardService(db, user_id).overview(
        settings=settings, rates=rate_cache.current().rates
    )


@app.get("/api/reports/spending")
def api_report_spending(
    preset: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
    rate_cache: RateCache = Depends(get_rate_cache),
):
    try:
        period = resolve_range(preset, start, end, now=local_now())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    report = ReportService(db, user_id).spending(period)
    settings = ProfileService(db, user_id).get_settings()
    rates = rate_cache.current().rates
    report["display"] = {
        key: format_for_settings(report[key], settings, rates)
        for key in ("income", "expense", "net")
    }
    return report


@app.get("/api/reports/trend")
def api_report_trend(
    months: int = Query(6, ge=1, le=24),
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    return ReportService(db, user_id).trend(months)


@app.get("/api/export")
def api_export(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
    return ExportService(db, user_id).export_all()


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
