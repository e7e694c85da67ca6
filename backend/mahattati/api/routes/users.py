import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from mahattati.api.dependencies import get_current_user
from mahattati.api.schemas import UserResponse
from mahattati.core.config import settings
from mahattati.core.database import get_db
from mahattati.core.exceptions import ValidationError
from mahattati.models.user import User
from mahattati.services.audit_service import audit_service
from mahattati.services.auth_service import auth_service
from mahattati.services.upload_service import upload_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

LANGUAGES = ("ar", "en")


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get the caller's profile"""
    return {"user": UserResponse.model_validate(current_user)}


@router.put("/profile")
async def update_profile(
    name: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    company_name: Optional[str] = Form(None),
    language_preference: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update the caller's profile; a new image replaces the old one"""
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError.for_field("name", "Name cannot be empty")
        current_user.name = name
    if phone is not None:
        current_user.phone = phone.strip() or None
    if company_name is not None:
        current_user.company_name = company_name.strip() or None
    if language_preference is not None:
        if language_preference not in LANGUAGES:
            raise ValidationError.for_field("language_preference", "Language must be ar or en")
        current_user.language_preference = language_preference

    old_image = current_user.profile_image
    new_image = None
    if profile_image is not None and profile_image.filename:
        pending = await upload_service.read_upload(
            profile_image, "profile_image", settings.MAX_PROFILE_IMAGE_SIZE
        )
        new_image = upload_service.store("profiles", [pending])[0]
        current_user.profile_image = new_image

    try:
        db.commit()
    except Exception:
        db.rollback()
        if new_image:
            upload_service.discard([new_image])
        raise
    db.refresh(current_user)

    if new_image and old_image:
        upload_service.discard([old_image])

    return {"message": "Profile updated successfully", "user": UserResponse.model_validate(current_user)}


@router.put("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change the caller's password after checking the current one"""
    auth_service.change_password(db, current_user, data.current_password, data.new_password)
    audit_service.record(db, "user.password_changed", current_user.id, request)
    logger.info("Password changed for user %s", current_user.id)
    return {"message": "Password changed successfully"}
