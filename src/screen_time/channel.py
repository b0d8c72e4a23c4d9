"""Request/response surface over ``ScreenTimeService``.

Callers invoke named methods with primitive arguments and always get a
``MethodResult`` back: either a value or an error with a machine-readable code.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from screen_time.errors import (
    InvalidArgumentError,
    MethodNotImplementedError,
    PermissionDeniedError,
    ScreenTimeError,
    SourceUnavailableError,
    UnexpectedFailure,
)
from screen_time.service import ScreenTimeService

logger = logging.getLogger(__name__)

PERMISSION_METHODS = {"request_permission", "is_permission_granted"}


class MethodError(BaseModel):
    code: str
    message: str


class MethodResult(BaseModel):
    """Outcome of a channel call."""

    value: Any = None
    error: MethodError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, exc: ScreenTimeError) -> MethodResult:
        return cls(error=MethodError(code=exc.code, message=str(exc)))


class UsageForAppsArgs(BaseModel):
    model_config = ConfigDict(strict=True)

    package_names: list[str]


class CountedUsageArgs(BaseModel):
    model_config = ConfigDict(strict=True)

    goal_type: str | None = None
    tracked_packages: list[str] | None = None
    exempt_packages: list[str] | None = None


class DateRangeArgs(BaseModel):
    model_config = ConfigDict(strict=True)

    start_time: int
    end_time: int

    @model_validator(mode="after")
    def _check_order(self) -> DateRangeArgs:
        if self.end_time < self.start_time:
            raise ValueError("end_time is before start_time")
        return self


class DateArgs(BaseModel):
    model_config = ConfigDict(strict=True)

    date: int


def _parse(model: type[BaseModel], arguments: dict[str, Any]) -> Any:
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"]) or "arguments"
        raise InvalidArgumentError(f"Missing or invalid argument: {fields}") from e


def _apps(apps: list[BaseModel]) -> list[dict[str, Any]]:
    return [app.model_dump() for app in apps]


class MethodChannel:
    """Dispatch named method calls to a ``ScreenTimeService``."""

    def __init__(self, service: ScreenTimeService) -> None:
        self.service = service
        self._methods: dict[str, Callable[[dict[str, Any]], Any]] = {
            "request_permission": self._request_permission,
            "is_permission_granted": lambda _: service.is_permission_granted(),
            "get_installed_apps": lambda _: _apps(service.installed_apps()),
            "get_usage_top_apps": lambda _: _apps(service.usage_top_apps()),
            "get_usage_for_apps": self._usage_for_apps,
            "get_total_device_usage": lambda _: service.total_device_usage(),
            "get_weekly_device_screen_time": lambda _: service.weekly_device_screen_time(),
            "get_counted_device_usage": self._counted_device_usage,
            "get_usage_for_date_range": self._usage_for_date_range,
            "get_screen_time_for_last_six_days": lambda _: service.screen_time_for_last_six_days(),
            "get_daily_usage_breakdown": lambda _: _apps(service.daily_usage_breakdown()),
            "get_total_usage_for_date": self._total_usage_for_date,
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    def handle(self, method: str, arguments: dict[str, Any] | None = None) -> MethodResult:
        """Run ``method`` and wrap its value or error. Never raises."""
        handler = self._methods.get(method)
        if handler is None:
            return MethodResult.failure(MethodNotImplementedError(method))

        try:
            if method not in PERMISSION_METHODS and not self.service.is_permission_granted():
                raise PermissionDeniedError()
            return MethodResult(value=handler(arguments or {}))
        except SourceUnavailableError as e:
            logger.exception("Event source failed during %s", method)
            return MethodResult.failure(UnexpectedFailure(e))
        except ScreenTimeError as e:
            logger.info("Method %s failed: %s", method, e)
            return MethodResult.failure(e)
        except Exception as e:
            logger.exception("Error handling method %s", method)
            return MethodResult.failure(UnexpectedFailure(e))

    def _request_permission(self, _: dict[str, Any]) -> None:
        self.service.request_permission()

    def _usage_for_apps(self, arguments: dict[str, Any]) -> int:
        args = _parse(UsageForAppsArgs, arguments)
        return self.service.usage_for_apps(args.package_names)

    def _counted_device_usage(self, arguments: dict[str, Any]) -> int:
        args = _parse(CountedUsageArgs, arguments)
        return self.service.counted_device_usage(
            args.goal_type, args.tracked_packages, args.exempt_packages
        )

    def _usage_for_date_range(self, arguments: dict[str, Any]) -> dict[str, int]:
        args = _parse(DateRangeArgs, arguments)
        return self.service.usage_for_date_range(args.start_time, args.end_time)

    def _total_usage_for_date(self, arguments: dict[str, Any]) -> int:
        args = _parse(DateArgs, arguments)
        return self.service.total_usage_for_date(args.date)
