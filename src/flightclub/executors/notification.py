"""Simulated notification executor."""

import asyncio
from collections.abc import Awaitable, Callable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from flightclub.core.clock import Clock, utc_now
from flightclub.core.logging import get_logger
from flightclub.core.types import ErrorCategory, ExecutionResult
from flightclub.tasks.execution import ExecutionContext, TaskExecutor

logger = get_logger("executors.notification")

# Simulated delivery time per channel, in seconds
DELIVERY_DELAYS = {
    "email": 1.0,
    "sms": 0.5,
    "push": 0.2,
}
DEFAULT_DELAY = 1.0


class NotificationParameters(BaseModel):
    model_config = ConfigDict(extra="ignore")

    recipient: str | None = Field(default=None, validation_alias=AliasChoices("recipient", "Recipient"))
    message: str | None = Field(default=None, validation_alias=AliasChoices("message", "Message"))
    type: str | None = Field(default=None, validation_alias=AliasChoices("type", "Type"))


class NotificationExecutor(TaskExecutor):
    """Sends (simulated) email, SMS or push notifications."""

    task_type = "Notification"

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Clock = utc_now,
    ):
        self._sleep = sleep
        self._clock = clock

    async def execute(self, context: ExecutionContext) -> ExecutionResult:
        started_at = self._clock()
        logger.info(f"Executing notification task {context.task_id}")

        parameters = self._parse_parameters(context.parameters)
        recipient = (parameters and parameters.recipient) or "Unknown"
        message = (parameters and parameters.message) or context.task_name
        channel = (parameters and parameters.type) or "Email"

        logger.info(f"Sending {channel} notification to {recipient}: {message}")
        try:
            await self._sleep(DELIVERY_DELAYS.get(channel.lower(), DEFAULT_DELAY))
        except asyncio.CancelledError:
            logger.warning(f"Notification task {context.task_id} was cancelled")
            raise
        except Exception as e:
            logger.error(f"Error executing notification task {context.task_id}: {e}", exc_info=True)
            return ExecutionResult.fail(
                "Notification failed",
                error=str(e),
                category=ErrorCategory.UNEXPECTED,
                started_at=started_at,
            )
        logger.info("Notification sent successfully")

        return ExecutionResult.ok(
            f"{channel} notification sent to {recipient}",
            data={
                "recipient": recipient,
                "message": message,
                "type": channel,
                "sent_at": self._clock().isoformat(),
            },
            started_at=started_at,
        )

    def _parse_parameters(self, parameters: str | None) -> NotificationParameters | None:
        if not parameters:
            return None
        try:
            return NotificationParameters.model_validate_json(parameters)
        except ValidationError as e:
            logger.warning(f"Failed to parse notification parameters {parameters}: {e}")
            return None
