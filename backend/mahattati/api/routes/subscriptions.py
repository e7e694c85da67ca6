from datetime import date, datetime
from typing import Literal, Optional
import pandas as pd
from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, field_serializer
from sqlalchemy.orm import Session
from mahattati.api.dependencies import require_permission
from mahattati.core.database import get_db
from mahattati.core.exceptions import NotFound, ValidationError
from mahattati.core.permissions import Action
from mahattati.models.payment import Payment
from mahattati.models.subscription import Subscription
from mahattati.models.user import User
from mahattati.services.audit_service import audit_service
from mahattati.utils.dates import utcnow

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


class SubscriptionCreate(BaseModel):
    payment_id: int
    type: Literal["monthly"] = "monthly"


class SubscriptionResponse(BaseModel):
    id: int
    user_id: int
    type: str
    start_date: date
    end_date: date
    payment_status: str
    payment_id: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('start_date', 'end_date')
    def serialize_dates(self, value: date, _info):
        return value.isoformat()

    @field_serializer('created_at')
    def serialize_created_at(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


def subscription_period(start: date, months: int = 1) -> tuple[date, date]:
    """Start and end of a subscription lasting whole calendar months"""
    # DateOffset clamps to the month end (Jan 31 + 1 month -> Feb 28/29)
    end = (pd.Timestamp(start) + pd.DateOffset(months=months)).date()
    return start, end


@router.get("/status")
async def subscription_status(
    current_user: User = Depends(require_permission(Action.SUBSCRIPTION_MANAGE)),
    db: Session = Depends(get_db)
):
    """Whether the caller has a paid subscription covering today"""
    today = utcnow().date()
    subscription = (
        db.query(Subscription)
        .filter(
            Subscription.user_id == current_user.id,
            Subscription.payment_status == "paid",
            Subscription.end_date >= today,
        )
        .order_by(Subscription.end_date.desc(), Subscription.id.desc())
        .first()
    )
    if subscription is None:
        return {"active": False, "message": "No active subscription"}
    return {"active": True, "subscription": SubscriptionResponse.model_validate(subscription)}


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    request: Request,
    current_user: User = Depends(require_permission(Action.SUBSCRIPTION_MANAGE)),
    db: Session = Depends(get_db)
):
    """Start a subscription paid for by a completed subscription payment"""
    payment = db.query(Payment).filter(
        Payment.id == data.payment_id,
        Payment.user_id == current_user.id,
        Payment.payment_type == "subscription",
    ).first()
    if payment is None:
        raise NotFound("Payment not found")
    if payment.status != "completed":
        raise ValidationError.for_field("payment_id", "Payment not completed")
    if db.query(Subscription).filter(Subscription.payment_id == payment.id).first():
        raise ValidationError.for_field("payment_id", "Payment already used for a subscription")

    start_date, end_date = subscription_period(utcnow().date())
    subscription = Subscription(
        user_id=current_user.id,
        type=data.type,
        start_date=start_date,
        end_date=end_date,
        payment_status="paid",
        payment_id=payment.id,
    )
    db.add(subscription)
    db.commit()
    db.refresh(subscription)

    audit_service.record(
        db, "subscription.created", current_user.id, request, subscription_id=subscription.id
    )
    return {"subscription": SubscriptionResponse.model_validate(subscription)}


@router.get("/history")
async def subscription_history(
    current_user: User = Depends(require_permission(Action.SUBSCRIPTION_MANAGE)),
    db: Session = Depends(get_db)
):
    subscriptions = (
        db.query(Subscription)
        .filter(Subscription.user_id == current_user.id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .all()
    )
    return {"subscriptions": [SubscriptionResponse.model_validate(s) for s in subscriptions]}
