"""
Local functions the model can call.

The model only ever sees the static schemas in FUNCTION_SPECS. Each call comes
back as a function name plus raw JSON argument text, which FunctionRegistry
validates and routes to a handler. Handlers always answer with plain text:
that text becomes the content of a function-role message.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from dateutil import parser
from dateutil.parser import ParserError
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from leave_assistant.observability import trace_span

logger = logging.getLogger(__name__)

LEAVE_TYPES = ["PaidLeaves", "MedicalLeave", "PaternityLeave", "MaternityLeave"]
LEAVE_BALANCES_UNAVAILABLE = "Leave balances are currently unavailable."


class MalformedArgumentsError(ValueError):
    """Raised when function arguments are not a JSON object of the expected shape."""

    def __init__(self, function_name: str, details: str):
        super().__init__(f"Invalid arguments for {function_name}: {details}")
        self.function_name = function_name
        self.details = details


class UnknownFunctionError(LookupError):
    """Raised when the model asks for a function that is not registered."""

    def __init__(self, function_name: str):
        super().__init__(f"Unknown function: {function_name}")
        self.function_name = function_name


class FunctionName(str, Enum):
    """Closed set of functions exposed to the model."""

    GET_DAY_OF_WEEK = "get_day_of_week"
    GET_USER_LEAVE_BALANCE = "get_user_leave_balance"


class FunctionSpec(BaseModel):
    """Schema advertised to the chat-completion endpoint."""

    model_config = ConfigDict(frozen=True)

    name: FunctionName
    description: str
    parameters: dict[str, Any]

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class DateQuery(BaseModel):
    """Arguments of get_day_of_week."""

    model_config = ConfigDict(populate_by_name=True)

    given_date: str = Field(default="today", alias="givenDate")


_ANY_JSON = TypeAdapter(Any)


FUNCTION_SPECS = (
    FunctionSpec(
        name=FunctionName.GET_USER_LEAVE_BALANCE,
        description="Get the leave balances for the user for a specific leave type",
        parameters={
            "type": "object",
            "properties": {
                "typeOfLeave": {
                    "type": "string",
                    "description": "The type of leave. eg., PaidLeaves, MedicalLeave",
                    "enum": LEAVE_TYPES,
                }
            },
            "required": ["typeOfLeave"],
        },
    ),
    FunctionSpec(
        name=FunctionName.GET_DAY_OF_WEEK,
        description="Gets the day of week for a specific date",
        parameters={
            "type": "object",
            "properties": {
                "givenDate": {
                    "type": "string",
                    "description": "A calendar date",
                }
            },
            "required": ["givenDate"],
        },
    ),
)


def _parse_arguments(function_name: str, raw_arguments: str | None, model: Any):
    """
    Validate raw JSON argument text into ``model`` (a BaseModel subclass or a
    TypeAdapter). Blank text means no arguments.
    """
    text = (raw_arguments or "").strip() or "{}"
    if isinstance(model, TypeAdapter):
        validate_json = model.validate_json
    else:
        validate_json = model.model_validate_json
    try:
        return validate_json(text)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedArgumentsError(function_name, details) from e


class FunctionRegistry:
    """
    Maps function names to their local handlers.

    Args:
        leave_balances_file: Path of the leave data store (read on every lookup)
        clock: Source of the current local time, used for "today"
    """

    def __init__(
        self,
        leave_balances_file: str | Path,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.leave_balances_file = Path(leave_balances_file)
        self.clock = clock
        self._handlers: dict[FunctionName, Callable[[str | None], str]] = {
            FunctionName.GET_DAY_OF_WEEK: self.get_day_of_week,
            FunctionName.GET_USER_LEAVE_BALANCE: self.get_user_leave_balance,
        }

    def specs(self) -> list[dict[str, Any]]:
        """Return the function schemas in the shape the completion API expects."""
        return [spec.to_api() for spec in FUNCTION_SPECS]

    def dispatch(self, name: str, raw_arguments: str | None) -> str:
        """
        Run the named function and return its textual result.

        Raises:
            UnknownFunctionError: If ``name`` is not one of FunctionName
            MalformedArgumentsError: If the arguments do not fit the function
        """
        try:
            function = FunctionName(name)
        except ValueError:
            logger.warning(f"Model requested unknown function: {name}")
            raise UnknownFunctionError(name) from None

        with trace_span("function_call", function=function.value):
            return self._handlers[function](raw_arguments)

    def get_day_of_week(self, raw_arguments: str | None) -> str:
        """
        Name the weekday of the given date.

        "today" (any case) means the current local date. A date that cannot be
        parsed produces an explanatory sentence instead of an exception so the
        model can ask the user again.
        """
        query = _parse_arguments(FunctionName.GET_DAY_OF_WEEK.value, raw_arguments, DateQuery)
        given_date = query.given_date
        logger.info(f"Getting day of week: given_date={given_date}")

        if given_date.strip().lower() == "today":
            dt = self.clock()
        else:
            try:
                dt = parser.parse(given_date)
            except (ParserError, ValueError, OverflowError):
                return (
                    f"The given date {given_date} is not valid. "
                    f"Please provide a date in this format YYYY-MM-DD"
                )

        return f"{given_date} is a {dt.strftime('%A')}"

    def get_user_leave_balance(self, raw_arguments: str | None) -> str:
        """
        Return the leave data store verbatim.

        Any JSON value is accepted and the requested leave type is only logged:
        the whole file is returned for every request. Text that is not JSON at
        all raises MalformedArgumentsError.
        """
        arguments = _parse_arguments(
            FunctionName.GET_USER_LEAVE_BALANCE.value, raw_arguments, _ANY_JSON
        )
        type_of_leave = arguments.get("typeOfLeave") if isinstance(arguments, dict) else None
        if not isinstance(type_of_leave, str):
            type_of_leave = None
        logger.info(
            f"Getting leave balances: type_of_leave={type_of_leave}, "
            f"file={self.leave_balances_file}"
        )

        try:
            with open(self.leave_balances_file, encoding="utf-8", newline="") as fh:
                return fh.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read leave balances from {self.leave_balances_file}: {e}")
            return LEAVE_BALANCES_UNAVAILABLE
