"""
SlipSafe Receipt API.

FastAPI server for tracked purchases, notification settings, merchant
return/warranty rules and deadline alerts.
"""

import os
from contextlib import asynccontextmanager
from typing import Annotated

from dotenv import load_dotenv

# Load environment variables before other imports
load_dotenv()

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from alerts.evaluator import evaluate_alerts, to_utc
from alerts.rules import compute_deadlines, parse_purchase_date, purchase_hash
from alerts.urgent import summarize_urgent
from api.logging import get_logger, log_error, log_request
from api.models import (
    CATEGORIES,
    AlertModel,
    AlertsResponse,
    DeleteResponse,
    ErrorResponse,
    HealthResponse,
    MerchantRuleCreateRequest,
    MerchantRuleListResponse,
    MerchantRuleModel,
    MerchantRuleUpdateRequest,
    PurchaseCreateRequest,
    PurchaseListResponse,
    PurchaseRecord,
    PurchaseUpdateRequest,
    ReportSummaryResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    UrgentMessageModel,
    UrgentResponse,
)
from api.services.airtable import (
    AirtableService,
    DuplicateMerchantRuleError,
    to_merchant_rule,
    to_notification_settings,
    to_purchase,
)
from api.services.reports import build_spending_summary

# Environment detection
IS_PRODUCTION = bool(os.getenv("RAILWAY_ENVIRONMENT"))

# API Key from environment
API_KEY = os.getenv("API_KEY")

logger = get_logger(__name__)


async def verify_api_key(x_api_key: Annotated[str | None, Header()] = None) -> None:
    """Verify the API key from the X-API-Key header.

    In production (RAILWAY_ENVIRONMENT set), API_KEY is required - the app
    refuses to start without it. In development, if API_KEY is not set,
    authentication is disabled for convenience.
    """
    if not API_KEY:
        return

    if not x_api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key. Provide X-API-Key header.",
        )

    if x_api_key != API_KEY:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key.",
        )


# Global service instances
_airtable: AirtableService | None = None


def get_airtable() -> AirtableService:
    """Get or create Airtable service instance."""
    global _airtable
    if _airtable is None:
        _airtable = AirtableService()
    return _airtable


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - initialize services on startup."""
    logger.info("Starting SlipSafe API...")

    if IS_PRODUCTION and not API_KEY:
        logger.critical("API_KEY must be set in production. Refusing to start.")
        raise RuntimeError("API_KEY environment variable is required in production")

    if not API_KEY:
        logger.warning("API_KEY not set - authentication disabled (development mode)")

    global _airtable
    try:
        _airtable = AirtableService()
        logger.info("Airtable service initialized")
    except Exception as e:
        logger.warning(f"Could not initialize Airtable: {type(e).__name__}: {e}")

    logger.info("SlipSafe API ready")
    yield

    logger.info("Shutting down SlipSafe API...")
    _airtable = None


app = FastAPI(
    title="SlipSafe Receipts",
    description="API for tracking purchases and their return and warranty deadlines",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _purchase_record(record: dict) -> PurchaseRecord:
    return PurchaseRecord(
        id=record["id"],
        fields=record["fields"],
        created_time=record.get("createdTime"),
    )


def _rule_model(record: dict) -> MerchantRuleModel:
    rule = to_merchant_rule(record)
    return MerchantRuleModel(
        id=rule.id,
        merchant_name=rule.merchant_name,
        return_policy_days=rule.return_policy_days,
        warranty_months=rule.warranty_months,
    )


def _reference_time(now: str | None):
    """Parse the optional ?now= override used for previews and testing."""
    if now is None:
        return None
    parsed = to_utc(now)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid 'now' timestamp: {now}")
    return parsed


def _load_alert_inputs(airtable: AirtableService):
    try:
        records = airtable.list_purchases(limit=None)
        settings = to_notification_settings(airtable.get_settings())
    except Exception as e:
        log_error(logger, "Alert data fetch failed", e)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load purchases: {type(e).__name__}: {e}",
        )
    return [to_purchase(r) for r in records], settings


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health():
    """Health check endpoint."""
    return HealthResponse()


# --- Purchases ---


@app.get(
    "/purchases",
    response_model=PurchaseListResponse,
    responses={401: {"model": ErrorResponse, "description": "Unauthorized"}},
    tags=["Purchases"],
    dependencies=[Depends(verify_api_key)],
)
async def list_purchases(
    category: Annotated[str | None, Query(description="Filter by category")] = None,
    search: Annotated[
        str | None,
        Query(description="Match merchant, category, total or date"),
    ] = None,
    limit: Annotated[
        int,
        Query(ge=1, le=1000, description="Maximum number of records to return"),
    ] = 100,
):
    """List purchases, newest first. search takes precedence over category."""
    airtable = get_airtable()

    if search:
        records = airtable.list_purchases(search=search, limit=limit)
    else:
        records = airtable.list_purchases(category=category, limit=limit)

    purchases = [_purchase_record(r) for r in records]
    return PurchaseListResponse(purchases=purchases, total=len(purchases))


@app.get(
    "/purchases/{record_id}",
    response_model=PurchaseRecord,
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        404: {"model": ErrorResponse},
    },
    tags=["Purchases"],
    dependencies=[Depends(verify_api_key)],
)
async def get_purchase(record_id: str):
    """Get a purchase by its Airtable record ID."""
    record = get_airtable().get_purchase(record_id)

    if not record:
        raise HTTPException(status_code=404, detail="Purchase not found")

    return _purchase_record(record)


@app.post(
    "/purchases",
    response_model=PurchaseRecord,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid purchase date"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        409: {"model": ErrorResponse, "description": "Receipt already saved"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
    tags=["Purchases"],
    dependencies=[Depends(verify_api_key)],
)
async def create_purchase(body: PurchaseCreateRequest):
    """
    Save a confirmed receipt.

    This endpoint:
    1. Normalizes the purchase date
    2. Rejects receipts already saved (same merchant, date and total)
    3. Computes return and warranty deadlines from the merchant's rule
    4. Stores the purchase in Airtable
    """
    try:
        purchase_date = parse_purchase_date(body.date).isoformat()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    total = str(int(body.total)) if body.total.is_integer() else str(body.total)
    fingerprint = purchase_hash(body.merchant, purchase_date, total)

    airtable = get_airtable()

    try:
        if airtable.find_by_hash(fingerprint):
            logger.warning(f"Duplicate receipt rejected: {body.merchant} {purchase_date} {total}")
            raise HTTPException(status_code=409, detail="This receipt has already been saved")

        rule_record = airtable.get_merchant_rule(body.merchant)
        if rule_record:
            rule = to_merchant_rule(rule_record)
            logger.info(
                f"Applying custom rules for merchant '{body.merchant}': "
                f"return_days={rule.return_policy_days}, warranty_months={rule.warranty_months}"
            )
            deadlines = compute_deadlines(
                purchase_date, rule.return_policy_days, rule.warranty_months
            )
        else:
            deadlines = compute_deadlines(purchase_date)

        record = airtable.create_purchase({
            "hash": fingerprint,
            "merchant": body.merchant,
            "date": purchase_date,
            "total": total,
            "return_by": deadlines.return_by,
            "warranty_ends": deadlines.warranty_ends,
            "category": body.category,
            "tax_amount": body.tax_amount,
            "vat_amount": body.vat_amount,
            "notes": body.notes,
        })
    except HTTPException:
        raise
    except Exception as e:
        log_error(logger, "Purchase save failed", e, merchant=body.merchant)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to save receipt: {type(e).__name__}: {e}",
        )

    log_request(
        logger,
        "Purchase saved",
        id=record["id"],
        merchant=body.merchant,
        return_by=deadlines.return_by,
        warranty_ends=deadlines.warranty_ends,
    )
    return _purchase_record(record)


@app.patch(
    "/purchases/{record_id}",
    response_model=PurchaseRecord,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid category"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        404: {"model": ErrorResponse},
    },
    tags=["Purchases"],
    dependencies=[Depends(verify_api_key)],
)
async def update_purchase(record_id: str, body: PurchaseUpdateRequest):
    """Change a purchase's category."""
    if not body.category or body.category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")

    airtable = get_airtable()

    if not airtable.get_purchase(record_id):
        raise HTTPException(status_code=404, detail="Purchase not found")

    try:
        updated = airtable.update_purchase(record_id, {"category": body.category})
    except Exception as e:
        log_error(logger, "Purchase update failed", e, record_id=record_id)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update purchase: {type(e).__name__}: {e}",
        )

    return _purchase_record(updated)


# --- Settings ---


@app.get(
    "/settings",
    response_model=SettingsResponse,
    responses={401: {"model": ErrorResponse, "description": "Unauthorized"}},
    tags=["Settings"],
    dependencies=[Depends(verify_api_key)],
)
async def get_settings():
    """Get notification settings."""
    return SettingsResponse(**get_airtable().get_settings())


@app.patch(
    "/settings",
    response_model=SettingsResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
    tags=["Settings"],
    dependencies=[Depends(verify_api_key)],
)
async def update_settings(body: SettingsUpdateRequest):
    """Update notification settings. Alert thresholds must be whole days (0-365)."""
    try:
        settings = get_airtable().update_settings(body.to_fields())
    except Exception as e:
        log_error(logger, "Settings update failed", e)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update settings: {type(e).__name__}: {e}",
        )

    return SettingsResponse(**settings)


# --- Alerts ---


@app.get(
    "/alerts",
    response_model=AlertsResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid 'now' timestamp"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
    },
    tags=["Alerts"],
    dependencies=[Depends(verify_api_key)],
)
async def get_alerts(
    now: Annotated[
        str | None,
        Query(description="Evaluate as of this ISO timestamp instead of the current time"),
    ] = None,
):
    """
    Active return and warranty alerts.

    enabled is false when both notification kinds are turned off, in which
    case the alerts feature should be hidden entirely.
    """
    reference = _reference_time(now)
    purchases, settings = _load_alert_inputs(get_airtable())

    summary = evaluate_alerts(purchases, settings, now=reference)

    return AlertsResponse(
        enabled=summary.enabled,
        alerts=[
            AlertModel(
                id=a.id,
                kind=a.kind.value,
                merchant=a.merchant,
                days_left=a.days_left,
                deadline_date=a.deadline_date,
                priority=a.priority.value,
            )
            for a in summary.alerts
        ],
        count=summary.count,
    )


@app.get(
    "/alerts/urgent",
    response_model=UrgentResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid 'now' timestamp"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
    },
    tags=["Alerts"],
    dependencies=[Depends(verify_api_key)],
)
async def get_urgent_alerts(
    now: Annotated[str | None, Query(description="Reference ISO timestamp")] = None,
):
    """Counts of warranties ending within a week and returns closing within three days."""
    reference = _reference_time(now)
    purchases, settings = _load_alert_inputs(get_airtable())

    summary = summarize_urgent(purchases, settings, now=reference)
    if summary is None:
        return UrgentResponse(enabled=False)

    return UrgentResponse(
        enabled=True,
        warranty_count=len(summary.warranties),
        return_count=len(summary.returns),
        messages=[
            UrgentMessageModel(title=m.title, text=m.text, severity=m.severity)
            for m in summary.messages()
        ],
    )


# --- Merchant rules ---


@app.get(
    "/merchant-rules",
    response_model=MerchantRuleListResponse,
    responses={401: {"model": ErrorResponse, "description": "Unauthorized"}},
    tags=["Merchant Rules"],
    dependencies=[Depends(verify_api_key)],
)
async def list_merchant_rules():
    """List merchant-specific return/warranty rules."""
    records = get_airtable().list_merchant_rules()
    return MerchantRuleListResponse(rules=[_rule_model(r) for r in records])


@app.post(
    "/merchant-rules",
    response_model=MerchantRuleModel,
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        409: {"model": ErrorResponse, "description": "Rule already exists for merchant"},
    },
    tags=["Merchant Rules"],
    dependencies=[Depends(verify_api_key)],
)
async def create_merchant_rule(body: MerchantRuleCreateRequest):
    """Create a return/warranty rule for a merchant."""
    try:
        record = get_airtable().create_merchant_rule(
            merchant_name=body.merchant_name,
            return_policy_days=body.return_policy_days,
            warranty_months=body.warranty_months,
        )
    except DuplicateMerchantRuleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        log_error(logger, "Merchant rule create failed", e, merchant=body.merchant_name)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create merchant rule: {type(e).__name__}: {e}",
        )

    logger.info(f"Created merchant rule: {body.merchant_name} -> {record['id']}")
    return _rule_model(record)


@app.patch(
    "/merchant-rules/{record_id}",
    response_model=MerchantRuleModel,
    responses={
        400: {"model": ErrorResponse, "description": "No fields provided"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        404: {"model": ErrorResponse, "description": "Merchant rule not found"},
        409: {"model": ErrorResponse, "description": "Rule already exists for merchant"},
    },
    tags=["Merchant Rules"],
    dependencies=[Depends(verify_api_key)],
)
async def update_merchant_rule(record_id: str, body: MerchantRuleUpdateRequest):
    """Update a merchant rule."""
    fields = body.to_fields()
    if not fields:
        raise HTTPException(
            status_code=400,
            detail="At least one field must be provided for update",
        )

    try:
        record = get_airtable().update_merchant_rule(record_id, fields)
    except DuplicateMerchantRuleError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if record is None:
        raise HTTPException(status_code=404, detail="Merchant rule not found")

    return _rule_model(record)


@app.delete(
    "/merchant-rules/{record_id}",
    response_model=DeleteResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        404: {"model": ErrorResponse, "description": "Merchant rule not found"},
    },
    tags=["Merchant Rules"],
    dependencies=[Depends(verify_api_key)],
)
async def delete_merchant_rule(record_id: str):
    """Delete a merchant rule."""
    if not get_airtable().delete_merchant_rule(record_id):
        raise HTTPException(status_code=404, detail="Merchant rule not found")

    logger.info(f"Deleted merchant rule: {record_id}")
    return DeleteResponse(id=record_id)


# --- Reports ---


@app.get(
    "/reports/summary",
    response_model=ReportSummaryResponse,
    responses={401: {"model": ErrorResponse, "description": "Unauthorized"}},
    tags=["Reports"],
    dependencies=[Depends(verify_api_key)],
)
async def reports_summary(
    start_date: Annotated[str | None, Query(description="Inclusive start (YYYY-MM-DD)")] = None,
    end_date: Annotated[str | None, Query(description="Inclusive end (YYYY-MM-DD)")] = None,
):
    """Spending totals grouped by category, merchant and month."""
    records = get_airtable().list_purchases(limit=None)
    purchases = [r["fields"] for r in records]
    return build_spending_summary(purchases, start_date, end_date)


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
