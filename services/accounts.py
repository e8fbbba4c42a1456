import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.clock import Clock
from core.exceptions import NotFoundError, StoreError, ValidationError
from core.results import Result, make_error_result, make_success_result
from models.accounts import AccountRecord
from schemas.accounts import Account
from schemas.ids import parse_account_id, parse_email_address

logger = logging.getLogger(__name__)


class AccountsService:
    def __init__(self, session_factory: async_sessionmaker, clock: Clock):
        self.session_factory = session_factory
        self.clock = clock

    async def create_account(self, firebase_uid: str, email: str) -> Result[Account]:
        """
        Create the account for a newly signed-up user.

        Repeating the call with the same email returns the stored account; a
        different email for an existing id is rejected.
        """
        account_id_result = parse_account_id(firebase_uid)
        if not account_id_result.success:
            return account_id_result

        email_result = parse_email_address(email)
        if not email_result.success:
            return email_result

        account_id = account_id_result.value
        try:
            async with self.session_factory() as session:
                existing = await session.get(AccountRecord, account_id)
                if existing:
                    if existing.email.lower() != email_result.value.lower():
                        return make_error_result(ValidationError(
                            "Account already exists with a different email",
                            context={"field_name": "email", "account_id": account_id}
                        ))
                    return make_success_result(Account.from_storage(existing.to_dict()))

                account = Account(
                    account_id=account_id,
                    email=email_result.value,
                    created_time=self.clock.now(),
                )
                session.add(AccountRecord.from_schema(account))
                await session.commit()
        except SQLAlchemyError as e:
            return make_error_result(StoreError(
                "Failed to create account",
                context={"operation": "insert", "table_name": "accounts", "account_id": account_id},
                original_exception=e
            ))

        logger.info(f"Created account {account_id}")
        return make_success_result(account)

    async def get_account(self, account_id: str) -> Result[Account]:
        try:
            async with self.session_factory() as session:
                record = await session.get(AccountRecord, account_id)
        except SQLAlchemyError as e:
            return make_error_result(StoreError(
                "Failed to fetch account",
                context={"operation": "query", "table_name": "accounts", "account_id": account_id},
                original_exception=e
            ))

        if record is None:
            return make_error_result(NotFoundError(
                f"Account {account_id} not found",
                context={"entity": "account", "entity_id": account_id}
            ))
        return make_success_result(Account.from_storage(record.to_dict()))
