from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, field_serializer, field_validator


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    phone: Optional[str] = None
    company_name: Optional[str] = None
    profile_image: Optional[str] = None
    language_preference: Optional[str] = None
    email_verified: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_created_at(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


class AdResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    location_latitude: float
    location_longitude: float
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    facilities: List[str] = []
    fuel_types: List[str] = []
    images: List[str] = []
    status: str
    views_count: int = 0
    is_promoted: bool = False
    promotion_type: Optional[str] = None
    promotion_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('facilities', 'fuel_types', 'images', mode='before')
    @classmethod
    def empty_list_for_null(cls, value):
        # JSON columns are NULL when the advertiser never sent the field
        return value or []

    @field_serializer('created_at', 'updated_at', 'promotion_expires_at')
    def serialize_datetimes(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


class SponsoredAdResponse(BaseModel):
    id: int
    title: Optional[str] = None
    media_url: str
    media_type: str
    position: str
    link_url: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('start_date', 'end_date', 'created_at')
    def serialize_datetimes(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None
