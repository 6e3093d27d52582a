"""Client ORM model."""

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from invoflow_kernel.db.base import OwnedByUser, TrackedBase
from invoflow_kernel.domain.dtos import Client


class ClientModel(OwnedByUser, TrackedBase):
    """
    ORM model for a user's clients.

    Guarantees:
        - user_id FK to users.id; a client belongs to exactly one user.
        - Deletion is refused by ClientService while invoices reference it.
    """

    __tablename__ = "clients"

    __table_args__ = (
        Index("idx_clients_user_id", "user_id"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def display_name(self) -> str:
        return self.company or self.name

    def to_dto(self) -> Client:
        return Client(
            id=self.id,
            user_id=self.user_id,
            name=self.name,
            email=self.email,
            company=self.company,
            phone=self.phone,
            address=self.address,
            notes=self.notes,
        )
