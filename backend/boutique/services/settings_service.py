# Overview: Service-layer operations for the business profile and the category list.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import BusinessProfile, Category
from ..validation import ModelValidationPolicy, ValidationError, ConflictError, NotFoundError, percent_to_bps
from .ledger_service import append_change_event


PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={
        "business_name",
        "owner_name",
        "email",
        "phone",
        "address",
        "gstin",
        "description",
        "established",
        "specialization",
        "default_tax_rate_bps",
    },
)

DEFAULT_PROFILE = {
    "business_name": "Aleen Clothing",
    "owner_name": "Admin",
    "email": "admin@aleen.com",
    "phone": "+91 98765 43210",
    "address": "Baba Jaan Chawk, Pune, Maharashtra 411001",
    "gstin": "27XXXXX1234X1ZX",
    "description": "Premium women's clothing store offering the latest fashion trends and timeless classics.",
    "established": "2020",
    "specialization": "Women's Fashion & Accessories",
    "default_tax_rate_bps": 1800,
}

DEFAULT_CATEGORIES = ["Tops", "Dresses", "Kurtis", "Sarees", "Accessories"]

MAX_CATEGORY_LENGTH = 64


def get_profile() -> BusinessProfile:
    """Return the singleton profile, creating it with defaults on first use."""
    profile = db.session.query(BusinessProfile).order_by(BusinessProfile.id.asc()).first()
    if profile is None:
        defaults = dict(DEFAULT_PROFILE)
        defaults["default_tax_rate_bps"] = percent_to_bps(
            current_app.config.get("DEFAULT_TAX_RATE_PERCENT", 18), "DEFAULT_TAX_RATE_PERCENT"
        )
        profile = BusinessProfile(**defaults)
        db.session.add(profile)
        db.session.commit()
    return profile


def update_profile(patch: dict) -> BusinessProfile:
    profile = get_profile()
    for k, v in patch.items():
        if k not in PROFILE_POLICY.writable_fields:
            continue
        setattr(profile, k, v)
    append_change_event(collection="settings.profile", action="updated", entity_id=profile.id)
    db.session.commit()
    return profile


def _normalize_category(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("category name is required")
    name = name.strip()
    if len(name) > MAX_CATEGORY_LENGTH:
        raise ValidationError(f"category name exceeds max length {MAX_CATEGORY_LENGTH}")
    return name


def list_categories() -> list[str]:
    rows = db.session.query(Category).order_by(Category.position.asc(), Category.id.asc()).all()
    return [c.name for c in rows]


def add_category(name: str) -> list[str]:
    name = _normalize_category(name)
    exists = db.session.query(Category).filter(func.lower(Category.name) == name.lower()).first()
    if exists:
        raise ConflictError(f"Category {name!r} already exists")

    last = db.session.query(func.max(Category.position)).scalar()
    db.session.add(Category(name=name, position=(last + 1) if last is not None else 0))
    append_change_event(collection="settings.categories", action="updated")
    db.session.commit()
    return list_categories()


def replace_categories(names: list) -> list[str]:
    """Replace the whole list, keeping the given order. Duplicates are rejected."""
    if not isinstance(names, list):
        raise ValidationError("categories must be a list")
    cleaned = [_normalize_category(n) for n in names]
    lowered = [n.lower() for n in cleaned]
    if len(set(lowered)) != len(lowered):
        raise ValidationError("categories must be unique")

    db.session.query(Category).delete()
    db.session.flush()
    for position, name in enumerate(cleaned):
        db.session.add(Category(name=name, position=position))
    append_change_event(collection="settings.categories", action="updated")
    db.session.commit()
    return list_categories()


def delete_category(name: str) -> list[str]:
    """Remove a category from the list. Items keep their category text."""
    row = db.session.query(Category).filter(Category.name == name).first()
    if row is None:
        raise NotFoundError(f"Category {name!r} not found")
    db.session.delete(row)
    append_change_event(collection="settings.categories", action="updated")
    db.session.commit()
    return list_categories()


def ensure_default_categories() -> int:
    """Seed DEFAULT_CATEGORIES when the list is empty. Returns how many were added."""
    if db.session.query(Category).count():
        return 0
    for position, name in enumerate(DEFAULT_CATEGORIES):
        db.session.add(Category(name=name, position=position))
    db.session.commit()
    return len(DEFAULT_CATEGORIES)
