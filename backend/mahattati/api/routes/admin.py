import io
import logging
import math
from datetime import date, datetime
from typing import Any, Dict, Literal, Optional
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer
from sqlalchemy.orm import Session
from mahattati.api.dependencies import require_permission
from mahattati.api.schemas import SponsoredAdResponse, UserResponse
from mahattati.core.config import settings
from mahattati.core.database import get_db
from mahattati.core.exceptions import Conflict, NotFound, ValidationError
from mahattati.core.permissions import Action, Role
from mahattati.models.log import LogEntry
from mahattati.models.sponsored_ad import SponsoredAd
from mahattati.models.user import User
from mahattati.services.audit_service import audit_service
from mahattati.services.auth_service import normalize_email
from mahattati.services.report_service import report_service
from mahattati.services.upload_service import (
    IMAGE_EXTENSIONS,
    IMAGE_MIME_TYPES,
    VIDEO_EXTENSIONS,
    VIDEO_MIME_TYPES,
    upload_service,
)
from mahattati.utils.dates import as_utc
from mahattati.utils.export_utils import XLSX_MEDIA_TYPE, create_xlsx_workbook, summary_frame

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

SPONSORED_POSITIONS = ("top_banner", "left_sidebar", "right_sidebar")
MEDIA_TYPES = ("image", "video")
# phone and company_name may be cleared with null; these may not
REQUIRED_USER_FIELDS = ("name", "email", "role", "email_verified")


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    email_verified: Optional[bool] = None


class LogResponse(BaseModel):
    id: int
    event_type: str
    user_id: Optional[int] = None
    ip_address: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="details")
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_created_at(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


def _pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if total else 0}


@router.get("/users")
async def list_users(
    role: Optional[Role] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission(Action.USER_ADMINISTER)),
    db: Session = Depends(get_db)
):
    """All users, newest first, with pagination"""
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role.value)

    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "users": [UserResponse.model_validate(u) for u in users],
        "pagination": _pagination(page, limit, total),
    }


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdate,
    request: Request,
    current_user: User = Depends(require_permission(Action.USER_ADMINISTER)),
    db: Session = Depends(get_db)
):
    """Edit any user; the only place a role can change"""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User not found")

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError(message="No fields to update")
    for field in REQUIRED_USER_FIELDS:
        if field in changes and changes[field] is None:
            raise ValidationError.for_field(field, f"{field} cannot be null")

    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
        taken = db.query(User).filter(User.email == changes["email"], User.id != user.id).first()
        if taken:
            raise Conflict("Email already in use")
    if "role" in changes:
        changes["role"] = changes["role"].value
    if "name" in changes:
        changes["name"] = changes["name"].strip()

    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)

    audit_service.record(
        db, "admin.user_updated", current_user.id, request,
        target_user_id=user.id, fields=sorted(changes),
    )
    return {"message": "User updated successfully", "user": UserResponse.model_validate(user)}


@router.get("/reports")
async def get_report(
    report_type: str = Query(..., alias="type"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    format: Literal["json", "xlsx"] = Query("json"),
    current_user: User = Depends(require_permission(Action.REPORT_VIEW)),
    db: Session = Depends(get_db)
):
    """Aggregated report; format=xlsx downloads summary and rows as a workbook"""
    if start_date and end_date and start_date > end_date:
        raise ValidationError.for_field("start_date", "start_date must not be after end_date")

    report = report_service.build(db, report_type, start_date, end_date)
    if format == "json":
        return {"report": report}

    rows = report_service.load_frame(db, report_type, start_date, end_date)
    content = create_xlsx_workbook({"summary": summary_frame(report["data"]), report_type: rows})
    return StreamingResponse(
        io.BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={report_type}-report.xlsx"}
    )


@router.get("/logs")
async def list_logs(
    event_type: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    current_user: User = Depends(require_permission(Action.LOG_VIEW)),
    db: Session = Depends(get_db)
):
    """Audit log, newest first"""
    query = db.query(LogEntry)
    if event_type:
        query = query.filter(LogEntry.event_type == event_type)
    if user_id is not None:
        query = query.filter(LogEntry.user_id == user_id)

    total = query.count()
    logs = (
        query.order_by(LogEntry.created_at.desc(), LogEntry.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "logs": [LogResponse.model_validate(entry) for entry in logs],
        "pagination": _pagination(page, limit, total),
    }


@router.post("/sponsored-ads", status_code=status.HTTP_201_CREATED)
async def create_sponsored_ad(
    request: Request,
    position: str = Form(...),
    title: Optional[str] = Form(None),
    media_type: Optional[str] = Form(None),
    media_url: Optional[str] = Form(None),
    link_url: Optional[str] = Form(None),
    start_date: Optional[datetime] = Form(None),
    end_date: Optional[datetime] = Form(None),
    media: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_permission(Action.SPONSORED_AD_MANAGE)),
    db: Session = Depends(get_db)
):
    """Create a banner placement from an uploaded file or an external media URL"""
    if position not in SPONSORED_POSITIONS:
        raise ValidationError.for_field(
            "position", f"Invalid position. Allowed: {', '.join(SPONSORED_POSITIONS)}"
        )
    start_date, end_date = as_utc(start_date), as_utc(end_date)
    if start_date and end_date and start_date > end_date:
        raise ValidationError.for_field("end_date", "end_date must be after start_date")

    if media is not None and media.filename:
        pending = await upload_service.read_upload(
            media,
            "media",
            settings.MAX_BLOG_MEDIA_SIZE,
            IMAGE_EXTENSIONS | VIDEO_EXTENSIONS,
            IMAGE_MIME_TYPES | VIDEO_MIME_TYPES,
        )
        media_type = pending.media_type
        media_url = upload_service.store("sponsored", [pending])[0]
    else:
        if not media_url:
            raise ValidationError.for_field("media", "Media file or media_url is required")
        if media_type not in MEDIA_TYPES:
            raise ValidationError.for_field("media_type", "Media type must be image or video")

    sponsored_ad = SponsoredAd(
        created_by=current_user.id,
        title=title or None,
        media_url=media_url,
        media_type=media_type,
        position=position,
        link_url=link_url or None,
        start_date=start_date,
        end_date=end_date,
        is_active=True,
    )
    db.add(sponsored_ad)
    db.commit()
    db.refresh(sponsored_ad)

    audit_service.record(
        db, "sponsored_ad.created", current_user.id, request, sponsored_ad_id=sponsored_ad.id
    )
    return {"sponsored_ad": SponsoredAdResponse.model_validate(sponsored_ad)}


@router.get("/sponsored-ads")
async def list_all_sponsored_ads(
    current_user: User = Depends(require_permission(Action.SPONSORED_AD_MANAGE)),
    db: Session = Depends(get_db)
):
    """Every placement, including inactive and expired ones"""
    sponsored_ads = db.query(SponsoredAd).order_by(SponsoredAd.created_at.desc(), SponsoredAd.id.desc()).all()
    return {"sponsored_ads": [SponsoredAdResponse.model_validate(s) for s in sponsored_ads]}
