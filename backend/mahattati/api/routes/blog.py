from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from pydantic import BaseModel, ConfigDict, field_serializer
from sqlalchemy.orm import Session, joinedload
from mahattati.api.dependencies import require_permission
from mahattati.core.config import settings
from mahattati.core.database import get_db
from mahattati.core.exceptions import NotFound, ValidationError
from mahattati.core.permissions import Action, ensure_allowed
from mahattati.models.blog_post import BlogPost
from mahattati.models.user import User
from mahattati.services.audit_service import audit_service
from mahattati.services.upload_service import (
    IMAGE_EXTENSIONS,
    IMAGE_MIME_TYPES,
    VIDEO_EXTENSIONS,
    VIDEO_MIME_TYPES,
    PendingUpload,
    upload_service,
)
from mahattati.utils.dates import utcnow

router = APIRouter(prefix="/blog", tags=["blog"])

POST_NOT_FOUND_MESSAGE = "Blog post not found"
BLOG_STATUSES = ("draft", "published")
UPLOAD_CATEGORY = "blog"


class BlogPostResponse(BaseModel):
    id: int
    author_id: int
    author_name: Optional[str] = None
    title: str
    title_ar: Optional[str] = None
    content: str
    content_ar: Optional[str] = None
    media_url: Optional[str] = None
    media_type: str
    status: str
    views_count: int = 0
    publish_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('publish_date', 'created_at', 'updated_at')
    def serialize_datetimes(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


def _to_response(post: BlogPost) -> BlogPostResponse:
    response = BlogPostResponse.model_validate(post)
    if post.author is not None:
        response.author_name = post.author.name
    return response


def _check_status(value: str) -> str:
    if value not in BLOG_STATUSES:
        raise ValidationError.for_field("status", "Status must be draft or published")
    return value


async def _read_media(media: Optional[UploadFile]) -> Optional[PendingUpload]:
    if media is None or not media.filename:
        return None
    return await upload_service.read_upload(
        media,
        "media",
        settings.MAX_BLOG_MEDIA_SIZE,
        IMAGE_EXTENSIONS | VIDEO_EXTENSIONS,
        IMAGE_MIME_TYPES | VIDEO_MIME_TYPES,
    )


@router.get("")
async def list_posts(db: Session = Depends(get_db)):
    """Published posts, latest publication first (public)"""
    posts = (
        db.query(BlogPost)
        .options(joinedload(BlogPost.author))
        .filter(BlogPost.status == "published")
        .order_by(BlogPost.publish_date.desc(), BlogPost.created_at.desc())
        .all()
    )
    return {"posts": [_to_response(p) for p in posts]}


@router.get("/{post_id}")
async def get_post(post_id: int, db: Session = Depends(get_db)):
    """One published post (public); each read counts as a view"""
    post = db.query(BlogPost).filter(
        BlogPost.id == post_id,
        BlogPost.status == "published",
    ).first()
    if post is None:
        raise NotFound(POST_NOT_FOUND_MESSAGE)

    db.query(BlogPost).filter(BlogPost.id == post.id).update(
        {BlogPost.views_count: BlogPost.views_count + 1}, synchronize_session=False
    )
    db.commit()
    db.refresh(post)
    return {"post": _to_response(post)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_post(
    request: Request,
    title: str = Form(...),
    content: str = Form(...),
    title_ar: Optional[str] = Form(None),
    content_ar: Optional[str] = Form(None),
    status_value: str = Form("draft", alias="status"),
    media: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_permission(Action.BLOG_CREATE)),
    db: Session = Depends(get_db)
):
    """Create a blog post (managers)"""
    title = title.strip()
    content = content.strip()
    if not title:
        raise ValidationError.for_field("title", "Title is required")
    if not content:
        raise ValidationError.for_field("content", "Content is required")
    post_status = _check_status(status_value)

    pending = await _read_media(media)
    media_url = upload_service.store(UPLOAD_CATEGORY, [pending])[0] if pending else None

    post = BlogPost(
        author_id=current_user.id,
        title=title,
        title_ar=title_ar or None,
        content=content,
        content_ar=content_ar or None,
        media_url=media_url,
        media_type=pending.media_type if pending else "none",
        status=post_status,
        views_count=0,
        publish_date=utcnow() if post_status == "published" else None,
    )
    db.add(post)
    db.commit()
    db.refresh(post)

    audit_service.record(db, "blog.created", current_user.id, request, post_id=post.id)
    return {"post": _to_response(post)}


@router.put("/{post_id}")
async def update_post(
    post_id: int,
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    title_ar: Optional[str] = Form(None),
    content_ar: Optional[str] = Form(None),
    status_value: Optional[str] = Form(None, alias="status"),
    media: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_permission(Action.BLOG_UPDATE)),
    db: Session = Depends(get_db)
):
    """Update a blog post (its author only)"""
    post = db.query(BlogPost).filter(BlogPost.id == post_id).first()
    if post is None:
        raise NotFound(POST_NOT_FOUND_MESSAGE)
    ensure_allowed(
        current_user,
        Action.BLOG_UPDATE,
        is_owner=post.author_id == current_user.id,
        message="Not authorized to update this post",
    )

    if title is not None:
        if not title.strip():
            raise ValidationError.for_field("title", "Title is required")
        post.title = title.strip()
    if content is not None:
        if not content.strip():
            raise ValidationError.for_field("content", "Content is required")
        post.content = content.strip()
    if title_ar is not None:
        post.title_ar = title_ar or None
    if content_ar is not None:
        post.content_ar = content_ar or None
    if status_value is not None:
        post.status = _check_status(status_value)
        if post.status == "published" and post.publish_date is None:
            post.publish_date = utcnow()

    old_media = post.media_url
    new_media = None
    pending = await _read_media(media)
    if pending:
        new_media = upload_service.store(UPLOAD_CATEGORY, [pending])[0]
        post.media_url = new_media
        post.media_type = pending.media_type

    try:
        db.commit()
    except Exception:
        db.rollback()
        if new_media:
            upload_service.discard([new_media])
        raise
    db.refresh(post)

    if new_media and old_media:
        upload_service.discard([old_media])
    return {"post": _to_response(post)}
