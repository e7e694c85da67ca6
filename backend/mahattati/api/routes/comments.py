from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from sqlalchemy.orm import Session, joinedload
from mahattati.api.dependencies import get_current_user, require_permission
from mahattati.core.database import get_db
from mahattati.core.exceptions import NotFound, ValidationError
from mahattati.core.permissions import Action, ensure_allowed
from mahattati.models.comment import Comment
from mahattati.models.user import User
from mahattati.services.ad_service import ad_service
from mahattati.services.notification_service import notification_service

router = APIRouter(prefix="/comments", tags=["comments"])

COMMENT_NOT_FOUND_MESSAGE = "Comment not found"


class CommentCreate(BaseModel):
    ad_id: int
    content: str = Field(min_length=1)
    parent_id: Optional[int] = None


class CommentResponse(BaseModel):
    id: int
    ad_id: int
    user_id: int
    parent_id: Optional[int] = None
    content: str
    user_name: Optional[str] = None
    profile_image: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_created_at(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


def _to_response(comment: Comment) -> CommentResponse:
    response = CommentResponse.model_validate(comment)
    if comment.user is not None:
        response.user_name = comment.user.name
        response.profile_image = comment.user.profile_image
    return response


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_comment(
    data: CommentCreate,
    current_user: User = Depends(require_permission(Action.COMMENT_CREATE)),
    db: Session = Depends(get_db)
):
    """Comment on an ad, optionally as a reply"""
    content = data.content.strip()
    if not content:
        raise ValidationError.for_field("content", "Comment content is required")

    ad = ad_service.find_commentable(db, current_user, data.ad_id)

    if data.parent_id is not None:
        parent = db.query(Comment).filter(Comment.id == data.parent_id).first()
        if parent is None or parent.ad_id != ad.id:
            raise ValidationError.for_field("parent_id", "Parent comment must belong to the same ad")

    comment = Comment(
        ad_id=ad.id,
        user_id=current_user.id,
        parent_id=data.parent_id,
        content=content,
    )
    db.add(comment)

    if ad.user_id != current_user.id:
        notification_service.notify_comment(db, ad.user_id, current_user.name, ad.id)

    db.commit()
    db.refresh(comment)
    return {"comment": _to_response(comment)}


@router.get("/{ad_id}")
async def list_comments(
    ad_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Comments on an ad, oldest first"""
    ad = ad_service.find_commentable(db, current_user, ad_id)
    comments = (
        db.query(Comment)
        .options(joinedload(Comment.user))
        .filter(Comment.ad_id == ad.id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )
    return {"comments": [_to_response(c) for c in comments]}


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    current_user: User = Depends(require_permission(Action.COMMENT_DELETE)),
    db: Session = Depends(get_db)
):
    """Delete a comment (author only); replies go with it"""
    comment = db.query(Comment).filter(Comment.id == comment_id).first()
    if comment is None:
        raise NotFound(COMMENT_NOT_FOUND_MESSAGE)
    ensure_allowed(
        current_user,
        Action.COMMENT_DELETE,
        is_owner=comment.user_id == current_user.id,
        message="Not authorized to delete this comment",
    )

    db.delete(comment)
    db.commit()
    return {"message": "Comment deleted successfully"}
