from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from sqlalchemy.orm import Session
from mahattati.api.dependencies import require_permission
from mahattati.core.database import get_db
from mahattati.core.permissions import Action
from mahattati.models.news_ticker import NewsTickerItem
from mahattati.models.user import User

router = APIRouter(prefix="/news-ticker", tags=["news-ticker"])


class NewsTickerCreate(BaseModel):
    content: str = Field(min_length=1)
    content_ar: Optional[str] = None
    link_url: Optional[str] = None
    priority: int = 0
    is_active: bool = True


class NewsTickerResponse(BaseModel):
    id: int
    content: str
    content_ar: Optional[str] = None
    link_url: Optional[str] = None
    priority: int
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_created_at(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


@router.get("")
async def list_news(db: Session = Depends(get_db)):
    """Active ticker items, highest priority first (public)"""
    items = (
        db.query(NewsTickerItem)
        .filter(NewsTickerItem.is_active.is_(True))
        .order_by(NewsTickerItem.priority.desc(), NewsTickerItem.created_at.desc(), NewsTickerItem.id.desc())
        .all()
    )
    return {"news": [NewsTickerResponse.model_validate(i) for i in items]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_news(
    data: NewsTickerCreate,
    current_user: User = Depends(require_permission(Action.NEWS_TICKER_MANAGE)),
    db: Session = Depends(get_db)
):
    item = NewsTickerItem(
        content=data.content.strip(),
        content_ar=data.content_ar or None,
        link_url=data.link_url or None,
        priority=data.priority,
        is_active=data.is_active,
        created_by=current_user.id,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return {"news": NewsTickerResponse.model_validate(item)}
