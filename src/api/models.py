"""
Pydantic models for SlipSafe API request/response schemas.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


CATEGORIES = ["Electronics", "Clothing", "Home", "Auto", "Other"]


# --- Purchases ---


class PurchaseRecord(BaseModel):
    """A purchase record from Airtable."""

    id: str = Field(description="Airtable record ID")
    fields: dict = Field(description="Record fields")
    created_time: str | None = None


class PurchaseListResponse(BaseModel):
    """Response from GET /purchases."""

    purchases: list[PurchaseRecord]
    total: int


class PurchaseCreateRequest(BaseModel):
    """Request body for POST /purchases."""

    merchant: str = Field(description="Merchant name as printed on the receipt")
    date: str = Field(description="Purchase date (YYYY-MM-DD)")
    total: float = Field(gt=0, description="Receipt total")
    category: str = "Other"
    tax_amount: float | None = Field(default=None, ge=0)
    vat_amount: float | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("merchant")
    @classmethod
    def merchant_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Merchant name cannot be empty")
        return value

    @field_validator("category")
    @classmethod
    def known_category(cls, value: str) -> str:
        if value not in CATEGORIES:
            raise ValueError(f"category must be one of: {', '.join(CATEGORIES)}")
        return value


class PurchaseUpdateRequest(BaseModel):
    """Request body for PATCH /purchases/{id}."""

    category: str | None = None


# --- Settings ---


class SettingsResponse(BaseModel):
    """Notification settings."""

    theme: str = "light"
    notify_return_deadline: bool = True
    notify_warranty_expiry: bool = True
    return_alert_days: int | str = "7"
    warranty_alert_days: int | str = "30"


class SettingsUpdateRequest(BaseModel):
    """Request body for PATCH /settings. Only provided fields are changed."""

    theme: Literal["light", "dark"] | None = None
    notify_return_deadline: bool | None = None
    notify_warranty_expiry: bool | None = None
    return_alert_days: int | None = Field(default=None, ge=0, le=365)
    warranty_alert_days: int | None = Field(default=None, ge=0, le=365)

    def to_fields(self) -> dict:
        """Fields to store; thresholds are kept as numeric strings."""
        fields = self.model_dump(exclude_none=True)
        for key in ("return_alert_days", "warranty_alert_days"):
            if key in fields:
                fields[key] = str(fields[key])
        return fields


# --- Alerts ---


class AlertModel(BaseModel):
    """A deadline alert."""

    id: str = Field(description="Purchase record ID")
    kind: Literal["return", "warranty"]
    merchant: str
    days_left: int
    deadline_date: Any
    priority: Literal["high", "medium", "low"]


class AlertsResponse(BaseModel):
    """Response from GET /alerts."""

    enabled: bool = Field(description="False when both notification kinds are turned off")
    alerts: list[AlertModel] = Field(default_factory=list)
    count: int = 0


class UrgentMessageModel(BaseModel):
    title: str
    text: str
    severity: Literal["info", "critical"]


class UrgentResponse(BaseModel):
    """Response from GET /alerts/urgent."""

    enabled: bool
    warranty_count: int = 0
    return_count: int = 0
    messages: list[UrgentMessageModel] = Field(default_factory=list)


# --- Merchant rules ---


class MerchantRuleModel(BaseModel):
    """A merchant-specific return/warranty policy."""

    id: str
    merchant_name: str
    return_policy_days: int
    warranty_months: int


class MerchantRuleCreateRequest(BaseModel):
    """Request body for POST /merchant-rules."""

    merchant_name: str
    return_policy_days: int = Field(ge=0, description="Return policy days must be 0 or greater")
    warranty_months: int = Field(ge=0, description="Warranty months must be 0 or greater")

    @field_validator("merchant_name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Merchant name cannot be empty")
        return value


class MerchantRuleUpdateRequest(BaseModel):
    """Request body for PATCH /merchant-rules/{id}."""

    merchant_name: str | None = None
    return_policy_days: int | None = Field(default=None, ge=0)
    warranty_months: int | None = Field(default=None, ge=0)

    @field_validator("merchant_name")
    @classmethod
    def blank_name_is_unset(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    def to_fields(self) -> dict:
        return self.model_dump(exclude_none=True)


class MerchantRuleListResponse(BaseModel):
    rules: list[MerchantRuleModel]


class DeleteResponse(BaseModel):
    """Response from DELETE endpoints."""

    id: str
    deleted: bool = True


# --- Reports ---


class ReportTotals(BaseModel):
    total_receipts: int
    total_spent: str
    total_tax: str
    total_vat: str


class ReportGroup(BaseModel):
    name: str | None = None
    month: str | None = None
    count: int
    total: str
    tax: str
    vat: str


class ReportSummaryResponse(BaseModel):
    """Response from GET /reports/summary."""

    summary: ReportTotals
    by_category: list[ReportGroup]
    by_merchant: list[ReportGroup]
    by_month: list[ReportGroup]


# --- System ---


class HealthResponse(BaseModel):
    """Response from GET /health."""

    status: str = "ok"
    version: str = "1.0.0"
    time: datetime = Field(default_factory=datetime.utcnow)


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: str | None = None
