"""
Feed item import state tagged union and its transitions.

    NEW ──claim──▶ PROCESSING ──success──▶ COMPLETED
                        │                      │
                        └──error──▶ FAILED     │
                                      │        │
         (should_fetch=true) ◀────────┴────────┘ re-enters PROCESSING

``should_fetch`` is the only signal that an item needs (re)import. NEW
always has it set and PROCESSING never does.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union, assert_never

from pydantic import Field, TypeAdapter

from core.exceptions import ImportStateError
from core.results import Result
from schemas.base import StorageModel, parse_with_adapter


class NewImportState(StorageModel):
    status: Literal["NEW"] = "NEW"
    should_fetch: Literal[True] = True
    last_import_requested_time: datetime


class ProcessingImportState(StorageModel):
    status: Literal["PROCESSING"] = "PROCESSING"
    should_fetch: Literal[False] = False
    import_started_time: datetime
    last_import_requested_time: datetime
    last_successful_import_time: Optional[datetime] = None


class FailedImportState(StorageModel):
    status: Literal["FAILED"] = "FAILED"
    should_fetch: bool
    error_message: str
    import_failed_time: datetime
    last_import_requested_time: datetime
    last_successful_import_time: Optional[datetime] = None


class CompletedImportState(StorageModel):
    status: Literal["COMPLETED"] = "COMPLETED"
    should_fetch: bool
    last_import_requested_time: datetime
    last_successful_import_time: datetime


ImportState = Annotated[
    Union[NewImportState, ProcessingImportState, FailedImportState, CompletedImportState],
    Field(discriminator="status"),
]

IMPORT_STATE_ADAPTER = TypeAdapter(ImportState)


def parse_import_state(data: Any) -> Result[ImportState]:
    return parse_with_adapter(IMPORT_STATE_ADAPTER, data, "import state")


def import_state_from_storage(data: Dict[str, Any]) -> ImportState:
    return IMPORT_STATE_ADAPTER.validate_python(data)


def make_new_import_state(now: datetime) -> NewImportState:
    return NewImportState(last_import_requested_time=now)


def get_last_successful_import_time(state: ImportState) -> Optional[datetime]:
    if isinstance(state, NewImportState):
        return None
    elif isinstance(state, (ProcessingImportState, FailedImportState, CompletedImportState)):
        return state.last_successful_import_time
    else:
        assert_never(state)


def make_processing_import_state(previous: ImportState, now: datetime) -> ProcessingImportState:
    """
    Claim transition. Only legal when the previous state has ``should_fetch``.

    Raises:
        ImportStateError: If the previous state is not claimable
    """
    if not previous.should_fetch:
        raise ImportStateError(
            f"Cannot start import from {previous.status} without should_fetch",
            context={"expected_status": "should_fetch=true", "actual_status": previous.status}
        )
    return ProcessingImportState(
        import_started_time=now,
        last_import_requested_time=previous.last_import_requested_time,
        last_successful_import_time=get_last_successful_import_time(previous),
    )


def make_completed_import_state(
    previous: ProcessingImportState,
    now: datetime,
    should_fetch: bool = False,
) -> CompletedImportState:
    return CompletedImportState(
        should_fetch=should_fetch,
        last_import_requested_time=previous.last_import_requested_time,
        last_successful_import_time=now,
    )


def make_failed_import_state(
    previous: ProcessingImportState,
    now: datetime,
    error_message: str,
) -> FailedImportState:
    # Failures stay retryable
    return FailedImportState(
        should_fetch=True,
        error_message=error_message,
        import_failed_time=now,
        last_import_requested_time=previous.last_import_requested_time,
        last_successful_import_time=previous.last_successful_import_time,
    )


def make_reimport_requested_state(previous: ImportState, now: datetime) -> ImportState:
    """
    Mark an item as needing import again. ``last_import_requested_time`` never
    moves backwards. Items that are already processing are returned unchanged.
    """
    requested_time = max(previous.last_import_requested_time, now)
    if isinstance(previous, NewImportState):
        return previous.model_copy(update={"last_import_requested_time": requested_time})
    elif isinstance(previous, ProcessingImportState):
        return previous
    elif isinstance(previous, (FailedImportState, CompletedImportState)):
        return previous.model_copy(update={
            "should_fetch": True,
            "last_import_requested_time": requested_time,
        })
    else:
        assert_never(previous)
