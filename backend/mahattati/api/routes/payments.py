import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Literal, Optional
from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from sqlalchemy.orm import Session
from mahattati.api.dependencies import get_current_user, require_permission
from mahattati.core.config import settings
from mahattati.core.database import get_db
from mahattati.core.exceptions import AppError, NotFound, UpstreamError, ValidationError
from mahattati.core.permissions import Action
from mahattati.models.ad import Ad
from mahattati.models.payment import Payment
from mahattati.models.user import User
from mahattati.services.audit_service import audit_service
from mahattati.services.payment_gateway import payment_gateway
from mahattati.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

MAX_HISTORY = 50
DEFAULT_PROMOTION_TYPE = "top_banner"


class NotImplementedYet(AppError):
    status_code = status.HTTP_501_NOT_IMPLEMENTED
    default_message = "Not implemented"


class CreateIntentRequest(BaseModel):
    amount: float = Field(ge=0.01)
    payment_type: Literal["ad_promotion", "subscription", "ad_upload"]
    currency: Literal["SAR", "USD"] = "SAR"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ConfirmRequest(BaseModel):
    payment_id: int
    transaction_id: str = Field(min_length=1)


class PaymentResponse(BaseModel):
    id: int
    user_id: int
    amount: float
    currency: str
    gateway: str
    payment_type: str
    status: str
    transaction_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="payment_metadata")
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_created_at(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


def _promote_ad(db: Session, user: User, metadata: Dict[str, Any]) -> Optional[Ad]:
    """Apply a paid promotion to one of the payer's ads"""
    try:
        ad_id = int(metadata.get("ad_id"))
    except (TypeError, ValueError):
        return None

    ad = db.query(Ad).filter(Ad.id == ad_id, Ad.user_id == user.id).first()
    if ad is None:
        logger.warning("Promotion paid by user %s for unknown ad %s", user.id, ad_id)
        return None

    expires_at = None
    if metadata.get("expires_at"):
        try:
            expires_at = as_utc(datetime.fromisoformat(str(metadata["expires_at"])))
        except ValueError:
            raise ValidationError.for_field("metadata.expires_at", "Invalid promotion expiry date")
    if expires_at is None:
        expires_at = utcnow() + timedelta(days=settings.PROMOTION_DEFAULT_DAYS)

    ad.is_promoted = True
    ad.promotion_type = metadata.get("promotion_type") or DEFAULT_PROMOTION_TYPE
    ad.promotion_expires_at = expires_at
    return ad


@router.post("/create-intent", status_code=status.HTTP_201_CREATED)
async def create_payment_intent(
    data: CreateIntentRequest,
    request: Request,
    current_user: User = Depends(require_permission(Action.PAYMENT_CREATE)),
    db: Session = Depends(get_db)
):
    """Record a pending payment and open a gateway PaymentIntent for it"""
    payment = Payment(
        user_id=current_user.id,
        amount=round(data.amount, 2),
        currency=data.currency,
        gateway=payment_gateway.name,
        payment_type=data.payment_type,
        status="pending",
        payment_metadata=data.metadata,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)

    try:
        intent = payment_gateway.create_intent(
            data.amount,
            data.currency,
            {
                "payment_id": str(payment.id),
                "user_id": str(current_user.id),
                "payment_type": data.payment_type,
            },
        )
    except UpstreamError:
        payment.status = "failed"
        db.commit()
        raise

    payment.transaction_id = intent["id"]
    db.commit()
    audit_service.record(
        db, "payment.created", current_user.id, request,
        payment_id=payment.id, payment_type=payment.payment_type,
    )

    return {
        "client_secret": intent["client_secret"],
        "payment_id": payment.id,
        "transaction_id": intent["id"],
    }


@router.post("/confirm")
async def confirm_payment(
    data: ConfirmRequest,
    request: Request,
    current_user: User = Depends(require_permission(Action.PAYMENT_CREATE)),
    db: Session = Depends(get_db)
):
    """Confirm a payment once the gateway reports it succeeded"""
    payment = db.query(Payment).filter(
        Payment.id == data.payment_id,
        Payment.user_id == current_user.id,
    ).first()
    if payment is None:
        raise NotFound("Payment not found")
    if payment.transaction_id != data.transaction_id:
        raise ValidationError.for_field("transaction_id", "Transaction does not match this payment")

    if payment.status == "completed":
        return {"message": "Payment already confirmed", "payment": PaymentResponse.model_validate(payment)}

    if payment_gateway.get_intent_status(data.transaction_id) != "succeeded":
        raise ValidationError(message="Payment not completed")

    payment.status = "completed"
    if payment.payment_type == "ad_promotion":
        _promote_ad(db, current_user, payment.payment_metadata or {})
    db.commit()
    db.refresh(payment)

    audit_service.record(db, "payment.completed", current_user.id, request, payment_id=payment.id)
    return {"message": "Payment confirmed successfully", "payment": PaymentResponse.model_validate(payment)}


@router.get("/history")
async def payment_history(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The caller's latest payments, newest first"""
    payments = (
        db.query(Payment)
        .filter(Payment.user_id == current_user.id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(MAX_HISTORY)
        .all()
    )
    return {"payments": [PaymentResponse.model_validate(p) for p in payments]}


@router.post("/mada")
async def mada_payment(current_user: User = Depends(require_permission(Action.PAYMENT_CREATE))):
    raise NotImplementedYet("Mada integration pending")
