"""
Country schemas for validation and serialization.

These mirror the rows of the countries table the import pipeline writes to.
"""

from pydantic import Field, field_validator
from typing import Optional
from enum import Enum

from models.base import BaseSchema, TimestampMixin


class CountryStatus(str, Enum):
    """Country availability status."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class CountryCreate(BaseSchema):
    """
    Create a new country.

    Required: name, code, continent, region, currency, currency_symbol
    Optional: everything else (booleans default to False)
    """

    name: str = Field(
        ...,
        min_length=2,
        max_length=100,
        description="Display name (unique)",
        examples=["Italy", "United States"]
    )
    code: str = Field(
        ...,
        min_length=2,
        max_length=2,
        description="ISO 3166-1 alpha-2 code (natural key)",
        examples=["IT", "US"]
    )
    continent: str = Field(..., min_length=1, description="Continent")
    region: str = Field(..., min_length=1, description="Sub-region")
    currency: str = Field(
        ...,
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )
    currency_symbol: str = Field(..., min_length=1, description="Currency symbol")
    status: CountryStatus = Field(
        CountryStatus.ACTIVE,
        description="Availability status"
    )
    flag_url: Optional[str] = Field(None, description="Flag image URL")
    is_popular: bool = Field(False, description="Featured destination")
    visa_required: bool = Field(False, description="Visa required for entry")
    languages: list[str] = Field(default_factory=list, description="Spoken languages")
    pricing_currency_override: bool = Field(
        False,
        description="Price in a currency other than the local one"
    )
    pricing_currency: Optional[str] = Field(None, description="Override currency code")
    pricing_currency_symbol: Optional[str] = Field(None, description="Override currency symbol")

    @field_validator("code", "currency")
    @classmethod
    def uppercase_codes(cls, v: str) -> str:
        """Codes are stored uppercase."""
        return v.upper().strip()


class CountryUpdate(BaseSchema):
    """
    Update existing country.

    All fields optional - only provided fields are updated.
    """

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    continent: Optional[str] = None
    region: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    currency_symbol: Optional[str] = None
    status: Optional[CountryStatus] = None
    flag_url: Optional[str] = None
    is_popular: Optional[bool] = None
    visa_required: Optional[bool] = None
    pricing_currency_override: Optional[bool] = None
    pricing_currency: Optional[str] = None
    pricing_currency_symbol: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def uppercase_currency(cls, v: Optional[str]) -> Optional[str]:
        """Currency must be uppercase if provided."""
        if v is None:
            return v
        return v.upper().strip()


class CountryResponse(BaseSchema, TimestampMixin):
    """
    Country response with all fields.

    Used when listing the existing store snapshot.
    """

    id: str = Field(..., description="Country UUID")
    name: str
    code: str
    continent: Optional[str] = None
    region: Optional[str] = None
    currency: Optional[str] = None
    currency_symbol: Optional[str] = None
    status: CountryStatus = CountryStatus.ACTIVE
    flag_url: Optional[str] = None
    is_popular: Optional[bool] = False
    visa_required: Optional[bool] = False
    languages: Optional[list[str]] = None
    pricing_currency_override: Optional[bool] = False
    pricing_currency: Optional[str] = None
    pricing_currency_symbol: Optional[str] = None
