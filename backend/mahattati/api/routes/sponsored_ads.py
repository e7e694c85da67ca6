from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from mahattati.api.schemas import SponsoredAdResponse
from mahattati.core.database import get_db
from mahattati.models.sponsored_ad import SponsoredAd
from mahattati.utils.dates import utcnow

router = APIRouter(prefix="/sponsored-ads", tags=["sponsored-ads"])


@router.get("")
async def list_sponsored_ads(
    position: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Active placements running right now (public)"""
    now = utcnow()
    query = db.query(SponsoredAd).filter(
        SponsoredAd.is_active.is_(True),
        or_(SponsoredAd.start_date.is_(None), SponsoredAd.start_date <= now),
        or_(SponsoredAd.end_date.is_(None), SponsoredAd.end_date >= now),
    )
    if position:
        query = query.filter(SponsoredAd.position == position)

    sponsored_ads = query.order_by(SponsoredAd.created_at.desc(), SponsoredAd.id.desc()).all()
    return {"sponsored_ads": [SponsoredAdResponse.model_validate(s) for s in sponsored_ads]}
