"""
Request models for the DomainHub API.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal


Structure = Literal["wordpress", "atomicat"]
Language = Literal["portuguese", "english", "spanish"]


class BulkPurchaseRequest(BaseModel):
    domains: List[str] = Field(..., description="Domains to purchase")
    structure: Structure = "wordpress"


class ManualPurchaseRequest(BaseModel):
    domain: str
    platform: Structure = "wordpress"
    traffic_source: str = ""
    price: Optional[float] = None
    funnel_id: Optional[str] = None


class AIPurchaseRequest(BaseModel):
    niche: str
    quantity: int = Field(1, ge=1, le=50)
    language: Language = "portuguese"
    structure: Structure = "wordpress"


class DomainCheckRequest(BaseModel):
    domains: List[str] = Field(..., min_length=1, max_length=50)


class SuggestionRequest(BaseModel):
    niche: str
    quantity: int = Field(5, ge=1, le=50)
    language: Language = "portuguese"


class DomainUpdate(BaseModel):
    """Editable domain fields. Each one is gated by its own permission."""
    status: Optional[Literal["active", "expired", "pending", "suspended"]] = None
    platform: Optional[str] = None
    traffic_source: Optional[str] = None
    funnel_id: Optional[str] = None


class ClassifyRequest(BaseModel):
    domain_ids: List[str] = Field(..., min_length=1)
    traffic_source: str


class NameserversUpdate(BaseModel):
    nameservers: List[str] = Field(..., min_length=2, max_length=12)


class NotificationSettingsUpdate(BaseModel):
    whatsapp_enabled: Optional[bool] = None
    whatsapp_number: Optional[str] = None
    notify_purchases: Optional[bool] = None
    notify_expiring: Optional[bool] = None


class CustomFilterCreate(BaseModel):
    filter_type: Literal["platform", "traffic_source"]
    filter_value: str


class DeactivationRequest(BaseModel):
    """The domain name typed back by the user to confirm."""
    confirmation: str
