"""
Advertisement CRUD with role-scoped visibility.

Visibility rules:
- advertisers only ever see their own ads (any status)
- everyone else only sees published ads
- a hidden ad answers exactly like a missing one (404)
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from fastapi import UploadFile
from sqlalchemy.orm import Session
from mahattati.core.config import settings
from mahattati.core.exceptions import NotFound, ValidationError
from mahattati.core.permissions import Action, Role, ensure_allowed, parse_role
from mahattati.models.ad import Ad, AdStatus
from mahattati.models.user import User
from mahattati.services.upload_service import upload_service
from mahattati.utils.geo import bounding_box, haversine_km

logger = logging.getLogger(__name__)

AD_NOT_FOUND_MESSAGE = "Ad not found"
MAX_IMAGES = 5
MAX_RESULTS = 100
UPLOAD_CATEGORY = "ads"

# Fields an owner may change; user_id and views_count are never in here
UPDATABLE_FIELDS = (
    "title",
    "description",
    "location_latitude",
    "location_longitude",
    "address",
    "city",
    "region",
    "facilities",
    "fuel_types",
    "status",
)


@dataclass
class AdFilters:
    status: str = AdStatus.PUBLISHED.value
    region: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None

    @property
    def has_proximity(self) -> bool:
        return None not in (self.latitude, self.longitude, self.radius)


def parse_status(value: str, field: str = "status") -> str:
    try:
        return AdStatus(value).value
    except ValueError:
        allowed = ", ".join(s.value for s in AdStatus)
        raise ValidationError.for_field(field, f"Invalid status. Allowed: {allowed}")


def parse_string_set(raw: Any, field: str) -> Optional[List[str]]:
    """
    Accept a JSON array of strings (as sent in multipart forms) or a list.

    Duplicates are dropped; first-seen order is kept.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError.for_field(field, f"{field} must be a JSON array of strings")
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise ValidationError.for_field(field, f"{field} must be a JSON array of strings")

    seen = []
    for item in (i.strip() for i in raw):
        if item and item not in seen:
            seen.append(item)
    return seen


def validate_coordinates(latitude: Optional[float], longitude: Optional[float]) -> None:
    errors = []
    if latitude is not None and not -90.0 <= latitude <= 90.0:
        errors.append({"field": "location_latitude", "message": "Valid latitude is required"})
    if longitude is not None and not -180.0 <= longitude <= 180.0:
        errors.append({"field": "location_longitude", "message": "Valid longitude is required"})
    if errors:
        raise ValidationError(errors=errors)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class AdService:
    @staticmethod
    async def create_ad(
        db: Session,
        user: User,
        data: Dict[str, Any],
        images: Optional[List[UploadFile]] = None,
    ) -> Ad:
        """Create a draft ad owned by the calling advertiser"""
        ensure_allowed(user, Action.AD_CREATE)

        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError.for_field("title", "Title is required")
        validate_coordinates(data.get("location_latitude"), data.get("location_longitude"))
        facilities = parse_string_set(data.get("facilities"), "facilities")
        fuel_types = parse_string_set(data.get("fuel_types"), "fuel_types")

        # Validate every image before writing any of them
        pending = await upload_service.read_images(images, "images", settings.MAX_FILE_SIZE, MAX_IMAGES)
        image_urls = upload_service.store(UPLOAD_CATEGORY, pending)

        ad = Ad(
            user_id=user.id,
            title=title,
            description=_clean_text(data.get("description")),
            location_latitude=data["location_latitude"],
            location_longitude=data["location_longitude"],
            address=_clean_text(data.get("address")),
            city=_clean_text(data.get("city")),
            region=_clean_text(data.get("region")),
            facilities=facilities,
            fuel_types=fuel_types,
            images=image_urls,
            status=AdStatus.DRAFT.value,
            views_count=0,
        )
        db.add(ad)
        try:
            db.commit()
        except Exception:
            db.rollback()
            upload_service.discard(image_urls)
            raise
        db.refresh(ad)

        logger.info("Ad %s created by user %s", ad.id, user.id)
        return ad

    @staticmethod
    def list_ads(db: Session, user: User, filters: AdFilters) -> List[Ad]:
        """Ads visible to the caller, newest first, at most MAX_RESULTS"""
        ensure_allowed(user, Action.AD_LIST)
        status = parse_status(filters.status)

        query = db.query(Ad).filter(Ad.status == status)

        if parse_role(user.role) == Role.ADVERTISER:
            # Advertisers see only their own ads; search filters do not apply
            query = query.filter(Ad.user_id == user.id)
        else:
            # Other advertisers' unpublished ads are never listed
            if status != AdStatus.PUBLISHED.value:
                raise ValidationError.for_field("status", "Only published ads can be listed")
            if filters.region:
                query = query.filter(Ad.region == filters.region)
            if filters.city:
                query = query.filter(Ad.city == filters.city)

        query = query.order_by(Ad.created_at.desc(), Ad.id.desc())

        if parse_role(user.role) == Role.ADVERTISER or not filters.has_proximity:
            return query.limit(MAX_RESULTS).all()
        return AdService._within_radius(query, filters)

    @staticmethod
    def _within_radius(query, filters: AdFilters) -> List[Ad]:
        min_lat, max_lat, min_lng, max_lng = bounding_box(
            filters.latitude, filters.longitude, filters.radius
        )
        query = query.filter(Ad.location_latitude.between(min_lat, max_lat))
        # Skip the longitude pre-filter when the box wraps around the antimeridian
        if min_lng >= -180.0 and max_lng <= 180.0:
            query = query.filter(Ad.location_longitude.between(min_lng, max_lng))

        candidates = query.all()
        if not candidates:
            return []

        distances = haversine_km(
            filters.latitude,
            filters.longitude,
            [ad.location_latitude for ad in candidates],
            [ad.location_longitude for ad in candidates],
        )
        nearby = [ad for ad, distance in zip(candidates, distances) if distance <= filters.radius]
        return nearby[:MAX_RESULTS]

    @staticmethod
    def find_commentable(db: Session, user: User, ad_id: int) -> Ad:
        """Published ad, or one of the caller's own; 404 otherwise"""
        ad = db.query(Ad).filter(Ad.id == ad_id).first()
        if ad is None or (ad.status != AdStatus.PUBLISHED.value and ad.user_id != user.id):
            raise NotFound(AD_NOT_FOUND_MESSAGE)
        return ad

    @staticmethod
    def get_ad(db: Session, user: User, ad_id: int) -> Ad:
        """
        Fetch one ad under the caller's visibility rules.

        A subscriber read counts as one view.
        """
        ensure_allowed(user, Action.AD_READ)
        role = parse_role(user.role)

        query = db.query(Ad).filter(Ad.id == ad_id)
        if role == Role.ADVERTISER:
            query = query.filter(Ad.user_id == user.id)
        else:
            query = query.filter(Ad.status == AdStatus.PUBLISHED.value)

        ad = query.first()
        if ad is None:
            raise NotFound(AD_NOT_FOUND_MESSAGE)

        if role == Role.SUBSCRIBER:
            # Atomic increment in SQL so concurrent reads are not lost
            db.query(Ad).filter(Ad.id == ad.id).update(
                {Ad.views_count: Ad.views_count + 1}, synchronize_session=False
            )
            db.commit()
            db.refresh(ad)

        return ad

    @staticmethod
    def _load_owned(db: Session, user: User, ad_id: int, action: Action, message: str) -> Ad:
        # Role first (403), then existence (404), then ownership (403)
        ensure_allowed(user, action, message=message)
        ad = db.query(Ad).filter(Ad.id == ad_id).first()
        if ad is None:
            raise NotFound(AD_NOT_FOUND_MESSAGE)
        ensure_allowed(user, action, is_owner=ad.user_id == user.id, message=message)
        return ad

    @staticmethod
    async def update_ad(
        db: Session,
        user: User,
        ad_id: int,
        changes: Dict[str, Any],
        images: Optional[List[UploadFile]] = None,
    ) -> Ad:
        """Apply whitelisted changes; re-uploaded images replace the old list"""
        ad = AdService._load_owned(db, user, ad_id, Action.AD_UPDATE, "Not authorized to update this ad")

        updates: Dict[str, Any] = {}
        for field in UPDATABLE_FIELDS:
            value = changes.get(field)
            if value is None:
                continue
            if field == "title":
                value = value.strip()
                if not value:
                    raise ValidationError.for_field("title", "Title is required")
            elif field in ("facilities", "fuel_types"):
                value = parse_string_set(value, field)
            elif field == "status":
                value = parse_status(value)
            elif field in ("description", "address", "city", "region"):
                value = _clean_text(value)
            updates[field] = value

        validate_coordinates(updates.get("location_latitude"), updates.get("location_longitude"))

        pending = await upload_service.read_images(images, "images", settings.MAX_FILE_SIZE, MAX_IMAGES)
        if not updates and not pending:
            raise ValidationError(message="No fields to update")

        old_images = list(ad.images or [])
        new_images = upload_service.store(UPLOAD_CATEGORY, pending) if pending else None

        for field, value in updates.items():
            setattr(ad, field, value)
        if new_images is not None:
            ad.images = new_images

        try:
            db.commit()
        except Exception:
            db.rollback()
            upload_service.discard(new_images or [])
            raise
        db.refresh(ad)

        if new_images is not None:
            upload_service.discard(old_images)
        logger.info("Ad %s updated by user %s (%s)", ad.id, user.id, ", ".join(sorted(updates)) or "images")
        return ad

    @staticmethod
    def delete_ad(db: Session, user: User, ad_id: int) -> None:
        """Hard delete; stored images go with it"""
        ad = AdService._load_owned(db, user, ad_id, Action.AD_DELETE, "Not authorized to delete this ad")
        images = list(ad.images or [])

        db.delete(ad)
        db.commit()

        upload_service.discard(images)
        logger.info("Ad %s deleted by user %s", ad_id, user.id)


ad_service = AdService()
