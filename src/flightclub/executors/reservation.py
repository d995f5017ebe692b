"""
Buntzen Lake reservation executor using the YodelPass API.

Two phases:
1. Add the reservation to the cart (PUT), retried on any non-auth failure
2. Check out the cart (POST), single attempt

The auth token comes from the task parameters and is only ever logged
redacted.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from flightclub.core.clock import Clock, utc_now
from flightclub.core.config import Settings
from flightclub.core.logging import get_logger
from flightclub.core.types import ErrorCategory, ExecutionResult, JSONDict, StringDict
from flightclub.security import redact_token
from flightclub.tasks.execution import ExecutionContext, TaskExecutor

logger = get_logger("executors.reservation")

API_VERSION = "5.6"
CART_PATH = "/api/cart?IsWeb=true"
CHECKOUT_PATH = "/api/orders/checkout"
CONFIRMED = "Confirmed"
DEFAULT_LEAD_DAYS = 7

CHECKOUT_ERRORS = {
    402: "Payment required - insufficient funds in YodelPass wallet",
    409: "Reservation no longer available",
    400: "Invalid checkout request",
}


class ReservationParameters(BaseModel):
    """Task parameters for a ReserveBuntzen task."""

    model_config = ConfigDict(extra="ignore")

    reservation_date: date | None = Field(
        default=None, validation_alias=AliasChoices("date", "Date", "reservation_date")
    )
    auth_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("auth_token", "authToken", "AuthToken"),
    )

    @field_validator("reservation_date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> Any:
        # Accept full timestamps as well as plain dates; keep the calendar day as written
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and value.strip():
            return datetime.fromisoformat(value.strip()).date()
        if isinstance(value, str):
            return None
        return value


@dataclass(frozen=True)
class ReservationItem:
    """What gets reserved: the catalog item and the vehicle it is for."""

    catalog_item_id: int = 11584
    place_id: int = 10672
    vehicle_make_model: str = "Lamborghini Gallardo"
    vehicle_license_plate: str = "CHGTHS"
    vehicle_state: str = "BC"
    source_scope_id: int = 14

    def to_payload(self, reservation_date: date) -> JSONDict:
        """Cart request body in the booking service's wire format."""
        return {
            "catalogItemId": self.catalog_item_id,
            "placeId": self.place_id,
            "quantity": 1,
            "effectiveDateLtc": reservation_date.strftime("%Y-%m-%d"),
            "vehicleMakeModel": self.vehicle_make_model,
            "vehicleLicensePlate": self.vehicle_license_plate,
            "vehicleState": self.vehicle_state,
            "sourceScopeId": self.source_scope_id,
        }


@dataclass
class ReservationOutcome:
    """Progress of one reservation run."""

    status: str = ""
    category: ErrorCategory | None = None
    cart_attempts: int = 0

    @property
    def confirmed(self) -> bool:
        return self.status == CONFIRMED


class ReserveBuntzenExecutor(TaskExecutor):
    """Reserves a Buntzen Lake parking pass."""

    task_type = "ReserveBuntzen"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_url: str = "https://api.yodelpass.com",
        max_attempts: int = 100,
        retry_delay: float = 5.0,
        item: ReservationItem | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Clock = utc_now,
    ):
        """
        Initialize executor.

        Args:
            client: HTTP client used for both phases
            api_url: Booking service base URL
            max_attempts: Cart attempts before giving up
            retry_delay: Seconds between cart attempts
            item: Catalog item and vehicle details
            sleep: Async sleep used between attempts (injectable for tests)
            clock: Source of the current UTC time
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.api_url = api_url.rstrip("/")
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.item = item or ReservationItem()
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient) -> "ReserveBuntzenExecutor":
        return cls(
            client=client,
            api_url=settings.reservation_api_url,
            max_attempts=settings.reservation_max_attempts,
            retry_delay=settings.reservation_retry_delay_seconds,
            item=ReservationItem(
                catalog_item_id=settings.reservation_catalog_item_id,
                place_id=settings.reservation_place_id,
                vehicle_make_model=settings.vehicle_make_model,
                vehicle_license_plate=settings.vehicle_license_plate,
                vehicle_state=settings.vehicle_state,
                source_scope_id=settings.reservation_source_scope_id,
            ),
        )

    @property
    def cart_url(self) -> str:
        return f"{self.api_url}{CART_PATH}"

    @property
    def checkout_url(self) -> str:
        return f"{self.api_url}{CHECKOUT_PATH}"

    async def execute(self, context: ExecutionContext) -> ExecutionResult:
        started_at = self._clock()
        logger.info(f"Executing Buntzen Lake reservation task {context.task_id}")

        try:
            parameters = self._parse_parameters(context.parameters)
            reservation_date = (
                parameters.reservation_date
                if parameters and parameters.reservation_date
                else (self._clock() + timedelta(days=DEFAULT_LEAD_DAYS)).date()
            )
            auth_token = parameters.auth_token if parameters else None

            if not auth_token:
                return ExecutionResult.fail(
                    "Authentication token is required",
                    error="Missing authToken in task parameters",
                    category=ErrorCategory.INVALID_PARAMETERS,
                    started_at=started_at,
                )

            date_text = reservation_date.strftime("%Y-%m-%d")
            logger.info(
                f"Processing Buntzen Lake reservation for {date_text} "
                f"using token {redact_token(auth_token)}"
            )

            outcome = await self._reserve(reservation_date, auth_token, context)
            data = {
                "status": outcome.status,
                "processed_at": self._clock().isoformat(),
                "reservation_date": date_text,
                "cart_attempts": outcome.cart_attempts,
            }

            if outcome.confirmed:
                return ExecutionResult.ok(
                    f"Buntzen Lake reservation confirmed for {date_text}",
                    data=data,
                    started_at=started_at,
                )
            return ExecutionResult.fail(
                f"Buntzen Lake reservation failed: {outcome.status}",
                error=outcome.status,
                category=outcome.category or ErrorCategory.UNEXPECTED,
                data=data,
                started_at=started_at,
            )
        except asyncio.CancelledError:
            logger.warning(f"Buntzen reservation task {context.task_id} was cancelled")
            raise
        except Exception as e:
            logger.error(f"Error executing Buntzen reservation task {context.task_id}: {e}", exc_info=True)
            return ExecutionResult.fail(
                "Buntzen reservation failed",
                error=str(e),
                category=ErrorCategory.UNEXPECTED,
                started_at=started_at,
            )

    async def _reserve(
        self, reservation_date: date, auth_token: str, context: ExecutionContext
    ) -> ReservationOutcome:
        """Run cart then checkout, mapping transport faults to outcome statuses."""
        outcome = ReservationOutcome()
        try:
            if await self._add_to_cart(reservation_date, auth_token, context, outcome):
                await self._checkout(auth_token, context, outcome)
        except httpx.TimeoutException as e:
            logger.error(f"YodelPass request timed out: {e}")
            outcome.status = "Timeout - YodelPass API did not respond in time"
            outcome.category = ErrorCategory.TIMEOUT
        except httpx.DecodingError as e:
            logger.error(f"Undecodable YodelPass response: {e}")
            outcome.status = "API Error - Invalid response format from YodelPass"
            outcome.category = ErrorCategory.PROTOCOL
        except httpx.RequestError as e:
            logger.error(f"YodelPass request failed: {e}")
            outcome.status = "Network Error - Unable to connect to YodelPass API"
            outcome.category = ErrorCategory.NETWORK
        except Exception as e:
            logger.error(f"Error during Buntzen reservation process: {e}", exc_info=True)
            outcome.status = f"Unexpected error: {e}"
            outcome.category = ErrorCategory.UNEXPECTED
        return outcome

    def _headers(self, auth_token: str) -> StringDict:
        return {
            "x-api-version": API_VERSION,
            "Authorization": f"Bearer {auth_token}",
            "Content-Type": "application/json",
        }

    def _log_request(self, label: str, method: str, url: str, auth_token: str, body: str) -> None:
        logger.info(
            f"{label} Request:\nURL: {url}\nMethod: {method}\n"
            f"Headers: x-api-version={API_VERSION}, Authorization=Bearer {redact_token(auth_token)}\n"
            f"Body: {body}"
        )

    def _log_response(self, label: str, response: httpx.Response) -> None:
        logger.info(
            f"{label} Response:\nStatus: {response.status_code} {response.reason_phrase}\n"
            f"Content-Type: {response.headers.get('content-type', '-')}\n"
            f"Body: {response.text}"
        )

    async def _add_to_cart(
        self,
        reservation_date: date,
        auth_token: str,
        context: ExecutionContext,
        outcome: ReservationOutcome,
    ) -> bool:
        """Add the reservation to the cart, retrying until accepted or out of attempts."""
        logger.info("Adding Buntzen Lake reservation to cart...")
        body = json.dumps(self.item.to_payload(reservation_date))

        for attempt in range(1, self.max_attempts + 1):
            context.raise_if_cancelled()
            outcome.cart_attempts = attempt
            label = f"Cart API - Attempt {attempt}"

            self._log_request(label, "PUT", self.cart_url, auth_token, body)
            response = await self.client.put(
                self.cart_url, content=body.encode("utf-8"), headers=self._headers(auth_token)
            )
            self._log_response(label, response)

            if response.is_success:
                logger.info(f"Item added to cart successfully on attempt {attempt}")
                return True

            if response.status_code == httpx.codes.UNAUTHORIZED:
                logger.warning("Authentication failed - invalid token")
                outcome.status = "Authentication Failed - Invalid or expired token"
                outcome.category = ErrorCategory.AUTH_FAILURE
                return False

            logger.warning(
                f"Attempt {attempt} failed with status {response.status_code}, "
                f"trying again in {self.retry_delay} seconds"
            )
            if attempt < self.max_attempts:
                await self._sleep(self.retry_delay)

        outcome.status = "Failed - Unable to add reservation to cart after multiple attempts"
        outcome.category = ErrorCategory.TRANSIENT
        return False

    async def _checkout(
        self, auth_token: str, context: ExecutionContext, outcome: ReservationOutcome
    ) -> None:
        """Check out the cart; a single attempt."""
        context.raise_if_cancelled()
        logger.info("Checking out...")
        body = "{}"

        self._log_request("Checkout API", "POST", self.checkout_url, auth_token, body)
        response = await self.client.post(
            self.checkout_url, content=body.encode("utf-8"), headers=self._headers(auth_token)
        )
        self._log_response("Checkout API", response)

        if response.is_success:
            logger.info("Successfully checked out")
            outcome.status = CONFIRMED
            outcome.category = None
            return

        error = CHECKOUT_ERRORS.get(
            response.status_code, f"Checkout failed (HTTP {response.status_code})"
        )
        logger.warning(f"Failed to checkout with status {response.status_code}: {error}")
        outcome.status = f"Failed - {error}"
        outcome.category = ErrorCategory.REJECTED

    def _parse_parameters(self, parameters: str | None) -> ReservationParameters | None:
        if not parameters:
            return None
        try:
            return ReservationParameters.model_validate_json(parameters)
        except ValidationError as e:
            logger.warning(
                f"Failed to parse Buntzen reservation parameters "
                f"({len(parameters)} chars): {e.error_count()} errors"
            )
            return None
