"""
invoflow_services.account_service -- Business owner accounts and settings.

Responsibility:
    Creates users (business owners) and updates the business profile shown
    on invoices: name, business name, address, phone, tax id and currency.

Architecture position:
    Services -- orchestration over kernel models.  Authentication is out
    of scope; callers pass an already authenticated ``user_id``.

Invariants enforced:
    - Email is unique across users (EmailAlreadyRegisteredError).
    - ``invoice_counter`` starts at 0 and is never touched here; only
      InvoiceNumberingService increments it.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select

from invoflow_kernel.db.types import DEFAULT_CURRENCY, validate_currency
from invoflow_kernel.domain.clock import Clock
from invoflow_kernel.domain.dtos import User
from invoflow_kernel.exceptions import (
    EmailAlreadyRegisteredError,
    UserNotFoundError,
    ValidationError,
)
from invoflow_kernel.logging_config import get_logger
from invoflow_kernel.models.user import UserModel
from invoflow_kernel.services.base import BaseService
from invoflow_services.validation import optional_text, require_text, validate_email

logger = get_logger("services.account")

_SETTINGS_FIELDS = ("name", "business_name", "address", "phone", "tax_id", "currency")


class AccountService(BaseService):
    """Owner signup and profile settings."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        super().__init__(session, clock)
        self._default_currency = validate_currency(default_currency)

    def create_user(
        self,
        email: str,
        name: str,
        business_name: str | None = None,
        currency: str | None = None,
    ) -> User:
        address = validate_email(email)
        existing = self.session.execute(
            select(UserModel.id).where(UserModel.email == address)
        ).scalar_one_or_none()
        if existing is not None:
            raise EmailAlreadyRegisteredError(address)

        user = UserModel(
            email=address,
            name=require_text(name, "name"),
            business_name=optional_text(business_name, "business_name", 255),
            currency=validate_currency(currency or self._default_currency),
            invoice_counter=0,
        )
        self.session.add(user)
        self.session.flush()

        logger.info("user_created", extra={"user_id": str(user.id)})
        return user.to_dto()

    def _load(self, user_id: UUID) -> UserModel:
        user = self.session.get(UserModel, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_user(self, user_id: UUID) -> User:
        return self._load(user_id).to_dto()

    def update_settings(self, user_id: UUID, **fields: Any) -> User:
        """
        Update profile fields.  Fields not passed are left unchanged; passing
        ``None`` clears an optional field.

        Raises:
            ValidationError: Unknown field, blank name, bad currency code.
        """
        unknown = set(fields) - set(_SETTINGS_FIELDS)
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not a settings field")

        user = self._load(user_id)
        if "name" in fields:
            user.name = require_text(fields["name"], "name")
        if "business_name" in fields:
            user.business_name = optional_text(fields["business_name"], "business_name", 255)
        if "address" in fields:
            user.address = optional_text(fields["address"], "address")
        if "phone" in fields:
            user.phone = optional_text(fields["phone"], "phone", 50)
        if "tax_id" in fields:
            user.tax_id = optional_text(fields["tax_id"], "tax_id", 100)
        if "currency" in fields:
            user.currency = validate_currency(fields["currency"])
        self.session.flush()

        logger.info(
            "user_settings_updated",
            extra={"user_id": str(user_id), "fields": sorted(fields)},
        )
        return user.to_dto()
