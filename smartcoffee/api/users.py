from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field

from smartcoffee.config import get_settings
from smartcoffee.db import get_db
from smartcoffee.engine.types import CoffeeType
from smartcoffee.models import User, CoffeePreference

router = APIRouter()


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    timezone: Optional[str] = None  # e.g. "Europe/Bucharest"
    wake_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")  # "06:30" format


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    timezone: Optional[str]
    wake_time: Optional[str]

    class Config:
        from_attributes = True


class PreferencesUpdate(BaseModel):
    preferred_type: Optional[CoffeeType] = None
    preferred_strength: Optional[float] = Field(None, ge=0, le=1)
    max_caffeine_per_day_mg: Optional[float] = Field(None, gt=0)
    auto_mode_enabled: Optional[bool] = None
    require_confirmation: Optional[bool] = None
    countdown_seconds: Optional[float] = Field(None, ge=0)
    auto_only_on_weekdays: Optional[bool] = None
    clear_preferred_type: bool = False


class PreferencesResponse(BaseModel):
    preferred_type: Optional[CoffeeType]
    preferred_strength: float
    max_caffeine_per_day_mg: float
    auto_mode_enabled: bool
    require_confirmation: bool
    countdown_seconds: float
    auto_only_on_weekdays: bool

    class Config:
        from_attributes = True


def new_preference() -> CoffeePreference:
    """Preference row seeded from the configured defaults."""
    return CoffeePreference(max_caffeine_per_day_mg=get_settings().default_max_caffeine_mg)


def get_user_or_404(user_id: str, db: Session) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("", response_model=UserResponse)
def create_user(user_data: UserCreate, db: Session = Depends(get_db)):
    """Create a new user with default coffee preferences."""
    existing = db.query(User).filter(User.email == user_data.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        name=user_data.name,
        email=user_data.email,
        timezone=user_data.timezone,
        wake_time=user_data.wake_time
    )
    user.preference = new_preference()
    db.add(user)
    db.commit()
    db.refresh(user)

    return user


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, db: Session = Depends(get_db)):
    """Get a user by ID."""
    return get_user_or_404(user_id, db)


@router.get("/{user_id}/preferences", response_model=PreferencesResponse)
def get_preferences(user_id: str, db: Session = Depends(get_db)):
    """Get a user's coffee preferences."""
    user = get_user_or_404(user_id, db)
    if user.preference is None:
        user.preference = new_preference()
        db.commit()
        db.refresh(user)
    return user.preference


@router.put("/{user_id}/preferences", response_model=PreferencesResponse)
def update_preferences(user_id: str, update: PreferencesUpdate, db: Session = Depends(get_db)):
    """Update a user's coffee preferences. Only provided fields are changed."""
    user = get_user_or_404(user_id, db)
    pref = user.preference
    if pref is None:
        pref = new_preference()
        user.preference = pref

    if update.clear_preferred_type:
        pref.preferred_type = None
    elif update.preferred_type is not None:
        pref.preferred_type = update.preferred_type.value

    for field_name in [
        "preferred_strength",
        "max_caffeine_per_day_mg",
        "auto_mode_enabled",
        "require_confirmation",
        "countdown_seconds",
        "auto_only_on_weekdays",
    ]:
        value = getattr(update, field_name)
        if value is not None:
            setattr(pref, field_name, value)

    db.commit()
    db.refresh(pref)
    return pref
