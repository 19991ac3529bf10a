"""
Game Platform Backend: Game Catalog Schemas
=============================================

What:  Request/response contracts for the catalog service.

Price handling:
    Stored as NUMERIC(10, 2) and validated as Decimal on input; serialized
    as a JSON number so clients don't have to parse strings.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

GAME_SORTS = {"newest", "oldest", "price_asc", "price_desc", "rating", "title"}


def _clean_labels(values: List[str]) -> List[str]:
    """Strip, drop empties and de-duplicate case-insensitively, keeping order."""
    seen = set()
    cleaned = []
    for value in values:
        value = value.strip()
        if value and value.lower() not in seen:
            seen.add(value.lower())
            cleaned.append(value)
    return cleaned


class GameCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=20000)
    short_description: Optional[str] = Field(default=None, max_length=500)
    price: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    genres: List[str] = Field(default_factory=list, max_length=10)
    tags: List[str] = Field(default_factory=list, max_length=30)
    platforms: List[str] = Field(default_factory=list, max_length=10)
    release_date: Optional[date] = None
    status: Literal["draft", "published"] = "published"
    publisher_id: Optional[uuid.UUID] = Field(
        default=None,
        description="User id of a verified publisher releasing the game",
    )

    @field_validator("genres", "tags", "platforms")
    @classmethod
    def clean_labels(cls, v: List[str]) -> List[str]:
        return _clean_labels(v)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class GameUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=20000)
    short_description: Optional[str] = Field(default=None, max_length=500)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    genres: Optional[List[str]] = Field(default=None, max_length=10)
    tags: Optional[List[str]] = Field(default=None, max_length=30)
    platforms: Optional[List[str]] = Field(default=None, max_length=10)
    release_date: Optional[date] = None
    status: Optional[Literal["draft", "published", "archived"]] = None

    @field_validator("genres", "tags", "platforms")
    @classmethod
    def clean_labels(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_labels(v) if v is not None else v


class GameQueryParams(BaseModel):
    """Validated query parameters for the catalog listing."""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    genre: Optional[str] = None
    tag: Optional[str] = None
    q: Optional[str] = Field(default=None, max_length=200)
    min_price: Optional[Decimal] = Field(default=None, ge=0)
    max_price: Optional[Decimal] = Field(default=None, ge=0)
    sort: str = "newest"

    @field_validator("sort")
    @classmethod
    def validate_sort(cls, v: str) -> str:
        if v not in GAME_SORTS:
            raise ValueError(f"Invalid sort '{v}'. Must be one of: {sorted(GAME_SORTS)}")
        return v


class GameResponse(BaseModel):
    id: uuid.UUID
    title: str
    slug: str
    description: str
    short_description: Optional[str] = None
    developer_id: uuid.UUID
    developer_name: Optional[str] = None
    publisher_id: Optional[uuid.UUID] = None
    publisher_name: Optional[str] = None
    price: Decimal
    currency: str
    genres: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)
    release_date: Optional[date] = None
    status: str
    average_rating: float
    reviews_count: int
    views_count: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)


class GameListResponse(BaseModel):
    items: List[GameResponse]
    total: int
    page: int
    limit: int
    pages: int


class GameAnalyticsResponse(BaseModel):
    game_id: uuid.UUID
    title: str
    status: str
    views_count: int
    average_rating: float
    reviews_count: int
