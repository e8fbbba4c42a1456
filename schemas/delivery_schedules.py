"""
Delivery schedules attached to subscriptions.
"""

from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import Field, TypeAdapter

from core.results import Result
from models.base import DayOfWeek
from schemas.base import StorageModel, parse_with_adapter


class TimeOfDay(StorageModel):
    hour: int = Field(ge=0, le=23)
    minute: int = Field(ge=0, le=59)


class NeverDeliverySchedule(StorageModel):
    type: Literal["NEVER"] = "NEVER"


class ImmediateDeliverySchedule(StorageModel):
    type: Literal["IMMEDIATE"] = "IMMEDIATE"


class DaysAndTimesOfWeekDeliverySchedule(StorageModel):
    type: Literal["DAYS_AND_TIMES_OF_WEEK"] = "DAYS_AND_TIMES_OF_WEEK"
    days: List[DayOfWeek] = Field(min_length=1)
    times: List[TimeOfDay] = Field(min_length=1)


class EveryNHoursDeliverySchedule(StorageModel):
    type: Literal["EVERY_N_HOURS"] = "EVERY_N_HOURS"
    hours: int = Field(ge=1)


DeliverySchedule = Annotated[
    Union[
        NeverDeliverySchedule,
        ImmediateDeliverySchedule,
        DaysAndTimesOfWeekDeliverySchedule,
        EveryNHoursDeliverySchedule,
    ],
    Field(discriminator="type"),
]

DELIVERY_SCHEDULE_ADAPTER = TypeAdapter(DeliverySchedule)

DEFAULT_DELIVERY_SCHEDULE = ImmediateDeliverySchedule()


def parse_delivery_schedule(data: Any) -> Result[DeliverySchedule]:
    return parse_with_adapter(DELIVERY_SCHEDULE_ADAPTER, data, "delivery schedule")


def delivery_schedule_from_storage(data: Dict[str, Any]) -> DeliverySchedule:
    return DELIVERY_SCHEDULE_ADAPTER.validate_python(data)
