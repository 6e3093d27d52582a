"""
User (business owner) ORM model.

Every client, invoice and recurring template belongs to exactly one user;
``invoice_counter`` is the single source of invoice numbers for that user.
"""

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from invoflow_kernel.db.base import TrackedBase
from invoflow_kernel.domain.dtos import User


class UserModel(TrackedBase):
    """
    ORM model for business owners.

    Guarantees:
        - email is unique (uq_users_email).
        - invoice_counter only ever increases (InvoiceNumberingService).
    """

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tax_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    invoice_counter: Mapped[int] = mapped_column(default=0, nullable=False)

    def to_dto(self) -> User:
        return User(
            id=self.id,
            email=self.email,
            name=self.name,
            business_name=self.business_name,
            address=self.address,
            phone=self.phone,
            tax_id=self.tax_id,
            currency=self.currency,
            invoice_counter=self.invoice_counter,
        )
