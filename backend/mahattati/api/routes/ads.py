from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.orm import Session
from mahattati.api.dependencies import get_current_user, require_permission
from mahattati.api.schemas import AdResponse
from mahattati.core.database import get_db
from mahattati.core.permissions import Action
from mahattati.models.ad import AdStatus
from mahattati.models.user import User
from mahattati.services.ad_service import AdFilters, ad_service
from mahattati.services.audit_service import audit_service

router = APIRouter(prefix="/ads", tags=["ads"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ad(
    request: Request,
    title: str = Form(...),
    location_latitude: float = Form(...),
    location_longitude: float = Form(...),
    description: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    region: Optional[str] = Form(None),
    facilities: Optional[str] = Form(None, description="JSON array of strings"),
    fuel_types: Optional[str] = Form(None, description="JSON array of strings"),
    images: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(require_permission(Action.AD_CREATE)),
    db: Session = Depends(get_db)
):
    """Create a new advertisement (starts as draft)"""
    ad = await ad_service.create_ad(
        db,
        current_user,
        {
            "title": title,
            "location_latitude": location_latitude,
            "location_longitude": location_longitude,
            "description": description,
            "address": address,
            "city": city,
            "region": region,
            "facilities": facilities,
            "fuel_types": fuel_types,
        },
        images,
    )
    audit_service.record(db, "ad.created", current_user.id, request, ad_id=ad.id)
    return {"ad": AdResponse.model_validate(ad)}


@router.get("")
async def list_ads(
    status_filter: str = Query(AdStatus.PUBLISHED.value, alias="status"),
    region: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius: Optional[int] = Query(None, ge=1, le=100, description="Search radius in km"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List ads visible to the caller, newest first"""
    filters = AdFilters(
        status=status_filter,
        region=region.strip() if region else None,
        city=city.strip() if city else None,
        latitude=latitude,
        longitude=longitude,
        radius=radius,
    )
    ads = ad_service.list_ads(db, current_user, filters)
    return {"ads": [AdResponse.model_validate(ad) for ad in ads]}


@router.get("/{ad_id}")
async def get_ad(
    ad_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a single ad; subscriber reads count as views"""
    ad = ad_service.get_ad(db, current_user, ad_id)
    return {"ad": AdResponse.model_validate(ad)}


@router.put("/{ad_id}")
async def update_ad(
    ad_id: int,
    request: Request,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    location_latitude: Optional[float] = Form(None),
    location_longitude: Optional[float] = Form(None),
    address: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    region: Optional[str] = Form(None),
    facilities: Optional[str] = Form(None),
    fuel_types: Optional[str] = Form(None),
    status_value: Optional[str] = Form(None, alias="status"),
    images: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(require_permission(Action.AD_UPDATE)),
    db: Session = Depends(get_db)
):
    """Update an advertisement (owner only)"""
    ad = await ad_service.update_ad(
        db,
        current_user,
        ad_id,
        {
            "title": title,
            "description": description,
            "location_latitude": location_latitude,
            "location_longitude": location_longitude,
            "address": address,
            "city": city,
            "region": region,
            "facilities": facilities,
            "fuel_types": fuel_types,
            "status": status_value,
        },
        images,
    )
    audit_service.record(db, "ad.updated", current_user.id, request, ad_id=ad.id)
    return {"ad": AdResponse.model_validate(ad)}


@router.delete("/{ad_id}")
async def delete_ad(
    ad_id: int,
    request: Request,
    current_user: User = Depends(require_permission(Action.AD_DELETE)),
    db: Session = Depends(get_db)
):
    """Delete an advertisement (owner only, not recoverable)"""
    ad_service.delete_ad(db, current_user, ad_id)
    audit_service.record(db, "ad.deleted", current_user.id, request, ad_id=ad_id)
    return {"message": "Ad deleted successfully"}
