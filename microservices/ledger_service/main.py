"""
Ledger Service Main Application

FastAPI adapter for the pledge ledger: campaigns, donations, profiles.
Port: 8250
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.errors import LedgerError, StorageError, ValidationError
from core.logger import setup_service_logger

from microservices.account_service.account_service import AccountService
from microservices.account_service.models import ProfileUpdateRequest
from microservices.campaign_service.campaign_service import CampaignService
from microservices.campaign_service.models import CampaignCreateRequest, CampaignQuery
from microservices.donation_service.aggregate_reader import AggregateReader
from microservices.donation_service.donation_service import DonationService
from microservices.donation_service.models import DonationCreateRequest

from .factory import LedgerServiceFactory
from .models import (
    CampaignCreatedResponse,
    CampaignCreatePayload,
    CampaignDonationsResponse,
    CampaignListEnvelope,
    CampaignResponse,
    CampaignUpdatePayload,
    DonationRecordedResponse,
    DonationSummaryResponse,
    HealthResponse,
    SuccessResponse,
    UserResponse,
    WalletDonationsResponse,
)

settings = get_settings()
logger = setup_service_logger("ledger_service", settings.logging)

SERVICE_NAME = "ledger_service"
SERVICE_PORT = settings.ledger.service_port
SERVICE_VERSION = "1.0.0"

RECENT_DONATIONS_LIMIT = 5

# Global factory instance
factory: Optional[LedgerServiceFactory] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")
    factory = LedgerServiceFactory(settings)
    await factory.initialize()

    yield

    logger.info(f"Shutting down {SERVICE_NAME}")
    await factory.close()
    factory = None


app = FastAPI(
    title="Pledge Ledger",
    description="Donation campaign ledger: campaigns, idempotent donations and aggregates",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if isinstance(exc, StorageError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc.__cause__!r}")
    content = {"success": False, "message": exc.message}
    if isinstance(exc, ValidationError) and exc.field_errors:
        content["errors"] = exc.field_errors
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())[1:]) or "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Invalid input. Please check your inputs and try again.",
            "errors": errors,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "An internal error occurred"},
    )


# ====================
# Dependencies
# ====================


def get_ledger_factory() -> LedgerServiceFactory:
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory


def get_campaign_service(f: LedgerServiceFactory = Depends(get_ledger_factory)) -> CampaignService:
    return f.campaign_service


def get_donation_service(f: LedgerServiceFactory = Depends(get_ledger_factory)) -> DonationService:
    return f.donation_service


def get_aggregate_reader(f: LedgerServiceFactory = Depends(get_ledger_factory)) -> AggregateReader:
    return f.aggregate_reader


def get_account_service(f: LedgerServiceFactory = Depends(get_ledger_factory)) -> AccountService:
    return f.account_service


# ====================
# Health
# ====================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    dependencies = {}
    if factory:
        dependencies["postgres"] = "healthy" if await factory.health_check() else "unhealthy"
    else:
        dependencies["postgres"] = "not_initialized"

    return HealthResponse(
        status="healthy" if dependencies["postgres"] == "healthy" else "degraded",
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        dependencies=dependencies,
    )


# ====================
# Campaign Endpoints
# ====================


@app.post("/api/v1/campaigns", response_model=CampaignCreatedResponse, tags=["Campaigns"])
async def create_campaign(
    payload: CampaignCreatePayload,
    service: CampaignService = Depends(get_campaign_service),
):
    request = CampaignCreateRequest(**payload.model_dump(exclude={"wallet_address"}))
    created = await service.create(request, payload.wallet_address)
    return CampaignCreatedResponse(
        message="Campaign created successfully",
        id=created.campaign_id,
        slug=created.slug,
    )


@app.get("/api/v1/campaigns", response_model=CampaignListEnvelope, tags=["Campaigns"])
async def list_campaigns(
    category: Optional[str] = Query(None),
    wallet: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    sort: str = Query("newest"),
    page: int = Query(1),
    limit: int = Query(20),
    service: CampaignService = Depends(get_campaign_service),
):
    try:
        query = CampaignQuery(
            category=category,
            wallet_address=wallet,
            search=q,
            sort=sort,
            page=page,
            limit=limit,
        )
    except ValueError as e:
        raise ValidationError("Invalid listing parameters") from e

    listing = await service.list_campaigns(query)
    return CampaignListEnvelope(campaigns=listing.campaigns, page=listing.page, limit=listing.limit)


@app.get("/api/v1/campaigns/slug/{slug}", response_model=CampaignResponse, tags=["Campaigns"])
async def get_campaign_by_slug(slug: str, service: CampaignService = Depends(get_campaign_service)):
    return CampaignResponse(campaign=await service.get_campaign_by_slug(slug))


@app.get("/api/v1/campaigns/{campaign_id}", response_model=CampaignResponse, tags=["Campaigns"])
async def get_campaign(campaign_id: str, service: CampaignService = Depends(get_campaign_service)):
    return CampaignResponse(campaign=await service.get_campaign(campaign_id))


@app.patch("/api/v1/campaigns/{campaign_id}", response_model=CampaignResponse, tags=["Campaigns"])
async def update_campaign(
    campaign_id: str,
    payload: CampaignUpdatePayload,
    service: CampaignService = Depends(get_campaign_service),
):
    campaign = await service.update(
        campaign_id, payload.patch(), keep_existing_slug=payload.keep_existing_slug
    )
    return CampaignResponse(message="Campaign updated successfully", campaign=campaign)


@app.delete("/api/v1/campaigns/{campaign_id}", response_model=SuccessResponse, tags=["Campaigns"])
async def delete_campaign(
    campaign_id: str,
    wallet: str = Query(..., min_length=1),
    service: CampaignService = Depends(get_campaign_service),
):
    await service.delete(campaign_id, wallet)
    return SuccessResponse(message="Campaign deleted successfully")


# ====================
# Donation Endpoints
# ====================


@app.post("/api/v1/donations", response_model=DonationRecordedResponse, tags=["Donations"])
async def record_donation(
    request: DonationCreateRequest,
    service: DonationService = Depends(get_donation_service),
):
    receipt = await service.record(
        campaign_id=request.campaign_id,
        wallet_address=request.wallet_address,
        amount=request.amount,
        transaction_signature=request.transaction_signature,
        donation_id=request.id,
    )
    return DonationRecordedResponse(
        message="Donation already recorded" if receipt.replayed else "Donation recorded successfully",
        donation_id=receipt.donation_id,
        replayed=receipt.replayed,
        receipt=receipt,
        campaign_stats=receipt.campaign_stats,
    )


@app.get("/api/v1/donations", response_model=WalletDonationsResponse, tags=["Donations"])
async def list_wallet_donations(
    wallet: str = Query(..., min_length=1),
    service: DonationService = Depends(get_donation_service),
):
    return WalletDonationsResponse(donations=await service.list_by_wallet(wallet))


@app.get(
    "/api/v1/donations/campaign/{campaign_id}",
    response_model=CampaignDonationsResponse,
    tags=["Donations"],
)
async def list_campaign_donations(
    campaign_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: DonationService = Depends(get_donation_service),
):
    result = await service.list_for_campaign(campaign_id, page=page, limit=limit)
    return CampaignDonationsResponse(donations=result.donations, pagination=result.pagination)


@app.get(
    "/api/v1/donations/summary/{campaign_id}",
    response_model=DonationSummaryResponse,
    tags=["Donations"],
)
async def donation_summary(
    campaign_id: str,
    reader: AggregateReader = Depends(get_aggregate_reader),
    service: DonationService = Depends(get_donation_service),
):
    summary = await reader.summary(campaign_id)
    recent = await service.list_for_campaign(campaign_id, page=1, limit=RECENT_DONATIONS_LIMIT)
    return DonationSummaryResponse(summary=summary, recent_donations=recent.donations)


# ====================
# Profile Endpoints
# ====================


@app.get("/api/v1/users/profile", response_model=UserResponse, tags=["Users"])
async def get_profile(
    wallet: str = Query(..., min_length=1),
    service: AccountService = Depends(get_account_service),
):
    return UserResponse(user=await service.get_by_wallet(wallet))


@app.patch("/api/v1/users/profile", response_model=UserResponse, tags=["Users"])
async def update_profile(
    request: ProfileUpdateRequest,
    service: AccountService = Depends(get_account_service),
):
    user = await service.update_profile(request.wallet_address, request.name)
    return UserResponse(message="User profile updated successfully", user=user)


# ====================
# Main Entry Point
# ====================


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.ledger_service.main:app",
        host="0.0.0.0",
        port=SERVICE_PORT,
        log_level=settings.logging.log_level.lower(),
    )


if __name__ == "__main__":
    main()
