from datetime import datetime
from typing import Any

from pydantic import EmailStr, TypeAdapter

from core.results import Result
from schemas.base import StorageModel, parse_with_adapter
from schemas.ids import AccountIdStr


class Account(StorageModel):
    account_id: AccountIdStr
    email: EmailStr
    created_time: datetime


_ACCOUNT_ADAPTER = TypeAdapter(Account)


def parse_account(data: Any) -> Result[Account]:
    return parse_with_adapter(_ACCOUNT_ADAPTER, data, "account")
