import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Path, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette import status

from voice2fire.core.auth import require_auth_token
from voice2fire.core.db import get_db, init_db
from voice2fire.core.errors import NotFoundError, ServiceError, ValidationError
from voice2fire.core.logging_config import configure_logging
from voice2fire.core.settings import config_settings
from voice2fire.models.schemas.affiliate import (
    AffiliateChainResponseModel,
    AffiliateLinkCreateModel,
    AffiliateLinkResponseModel,
)
from voice2fire.models.schemas.assignment import (
    AssignVariantRequestModel,
    AssignVariantResponseModel,
)
from voice2fire.models.schemas.commission import (
    DistributeAdCommissionsRequestModel,
    DistributeCommissionsResponseModel,
    DistributeOrderCommissionsRequestModel,
)
from voice2fire.models.schemas.event import TrackEventRequestModel, TrackEventResponseModel
from voice2fire.models.schemas.notification_test import (
    NotificationTestCreateModel,
    NotificationTestResponseModel,
    NotificationTestResultsModel,
    NotificationTestStatusUpdateModel,
)
from voice2fire.models.schemas.wallet import WalletSummaryModel
from voice2fire.services.affiliate_service import AffiliateService
from voice2fire.services.commission_service import CommissionService
from voice2fire.services.event_service import EventService
from voice2fire.services.notification_test_service import NotificationTestService
from voice2fire.services.wallet_service import WalletService

configure_logging(config_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config_settings.AUTO_CREATE_TABLES:
        init_db()
    yield


app = FastAPI(
    title="Voice2Fire engagement API",
    description="Notification A/B tests, event tracking and affiliate commissions",
    version="0.1.0",
    dependencies=[Depends(require_auth_token)],
    lifespan=lifespan,
)


def _client_failure(message: str) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": message},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def _server_failure(message: str) -> JSONResponse:
    return JSONResponse(
        {"error": message},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def _describe_validation_errors(exc: RequestValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        problems.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "Invalid request body: " + "; ".join(problems)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
):
    """
    Unparseable bodies on the engagement and commission routes get the same
    error shape those routes return for any other failure. The admin routes
    keep FastAPI's 422 response.
    """
    path = request.url.path
    if path in ("/assign-variant", "/track-event"):
        message = _describe_validation_errors(exc)
        logger.warning("Rejected request body on %s: %s", path, message)
        return _client_failure(message)

    if path.startswith("/distribute-commissions/"):
        message = _describe_validation_errors(exc)
        logger.warning("Rejected request body on %s: %s", path, message)
        return _server_failure(message)

    return await request_validation_exception_handler(request, exc)


# --- Notification A/B tests ---


@app.post(
    "/assign-variant",
    response_model=AssignVariantResponseModel,
    status_code=status.HTTP_200_OK,
    summary="Get or create a user's variant assignment",
)
def post_assign_variant(
    request_data: AssignVariantRequestModel,
    db: Session = Depends(get_db),
):
    """
    Returns the user's variant for an active test. If no assignment exists, a
    new, persistent one is drawn by traffic allocation weight.
    """
    try:
        service = NotificationTestService(db)
        return service.assign_variant(request_data.test_id, request_data.user_id)

    except ServiceError as e:
        logger.warning("Error assigning variant: %s", e.message)
        return _client_failure(e.message)

    except Exception as e:
        logger.exception("Unexpected error assigning variant")
        return _client_failure(f"Error assigning variant: {e}")


@app.post(
    "/track-event",
    response_model=TrackEventResponseModel,
    status_code=status.HTTP_200_OK,
    summary="Record a viewed, clicked or converted event",
)
def post_track_event(
    request_data: TrackEventRequestModel,
    db: Session = Depends(get_db),
):
    try:
        event_service = EventService(db)
        return event_service.track_event(
            request_data.test_id, request_data.user_id, request_data.event_type
        )

    except ServiceError as e:
        logger.warning("Error tracking event: %s", e.message)
        return _client_failure(e.message)

    except Exception as e:
        logger.exception("Unexpected error tracking event")
        return _client_failure(f"Error tracking event: {e}")


@app.post(
    "/notification-tests",
    response_model=NotificationTestResponseModel,
    status_code=status.HTTP_201_CREATED,
)
def post_notification_tests(
    test_data: NotificationTestCreateModel,
    db: Session = Depends(get_db),
):
    try:
        return NotificationTestService(db).create_test(test_data)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


@app.patch(
    "/notification-tests/{test_id}/status",
    response_model=NotificationTestResponseModel,
    status_code=status.HTTP_200_OK,
    summary="Activate or complete a test",
)
def patch_notification_test_status(
    status_data: NotificationTestStatusUpdateModel,
    test_id: str = Path(..., description="The ID of the notification test."),
    db: Session = Depends(get_db),
):
    try:
        return NotificationTestService(db).update_status(test_id, status_data.status)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


@app.get(
    "/notification-tests/{test_id}/results",
    response_model=NotificationTestResultsModel,
    status_code=status.HTTP_200_OK,
    summary="Get per-variant results for a test",
)
def get_notification_test_results(
    test_id: str = Path(..., description="The ID of the notification test."),
    db: Session = Depends(get_db),
):
    try:
        return NotificationTestService(db).get_test_results(test_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


# --- Affiliate commissions ---


@app.post(
    "/distribute-commissions/ad",
    response_model=DistributeCommissionsResponseModel,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Pay tiered commissions on an ad's spend",
)
def post_distribute_ad_commissions(
    request_data: DistributeAdCommissionsRequestModel,
    db: Session = Depends(get_db),
):
    try:
        return CommissionService(db).distribute_ad_commissions(
            request_data.source_event_id
        )
    except Exception as e:
        logger.exception("Error calculating ad commissions")
        return _server_failure(str(e))


@app.post(
    "/distribute-commissions/order",
    response_model=DistributeCommissionsResponseModel,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Pay tiered commissions on a store order",
)
def post_distribute_order_commissions(
    request_data: DistributeOrderCommissionsRequestModel,
    db: Session = Depends(get_db),
):
    try:
        return CommissionService(db).distribute_order_commissions(request_data.order_id)
    except Exception as e:
        logger.exception("Error calculating order commissions")
        return _server_failure(str(e))


@app.post(
    "/affiliates/links",
    response_model=AffiliateLinkResponseModel,
    status_code=status.HTTP_201_CREATED,
    summary="Set a user's direct sponsor",
)
def post_affiliate_link(
    link_data: AffiliateLinkCreateModel,
    db: Session = Depends(get_db),
):
    try:
        return AffiliateService(db).set_sponsor(link_data)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


@app.get(
    "/affiliates/{user_id}/chain",
    response_model=AffiliateChainResponseModel,
    status_code=status.HTTP_200_OK,
)
def get_affiliate_chain(
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
):
    return AffiliateService(db).get_chain(user_id)


@app.get(
    "/wallets/{user_id}",
    response_model=WalletSummaryModel,
    status_code=status.HTTP_200_OK,
)
def get_wallet(
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
):
    return WalletService(db).get_wallet_summary(user_id)


# Entry point for running the application directly during local development
if __name__ == "__main__":
    uvicorn.run("voice2fire.main:app", host="0.0.0.0", port=8000, reload=True)
