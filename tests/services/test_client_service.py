"""
Tests for ClientService -- client CRUD and per-client totals.

Covers:
- create/get/update with ownership checks
- list_clients(): ordering, search, invoiced and outstanding totals
- delete_client(): refused while invoices exist, removes templates
"""

from datetime import date
from decimal import Decimal

import pytest

from invoflow_kernel.exceptions import (
    ClientHasInvoicesError,
    ClientNotFoundError,
    RecurringInvoiceNotFoundError,
    ValidationError,
)


class TestClientCrud:

    def test_create_and_get(self, services, owner):
        created = services.clients.create_client(
            owner.id, name=" Carla ", email="Carla@Example.com", phone="555", notes="VIP",
        )

        fetched = services.clients.get_client(owner.id, created.id)

        assert fetched == created
        assert fetched.name == "Carla"
        assert fetched.email == "carla@example.com"
        assert fetched.display_name == "Carla"

    def test_display_name_prefers_company(self, client):
        assert client.display_name == "Acme Ltd"

    def test_required_fields(self, services, owner):
        with pytest.raises(ValidationError):
            services.clients.create_client(owner.id, name="", email="x@example.com")
        with pytest.raises(ValidationError):
            services.clients.create_client(owner.id, name="X", email="not-an-email")

    def test_other_users_client_not_found(self, services, other_owner, client):
        with pytest.raises(ClientNotFoundError):
            services.clients.get_client(other_owner.id, client.id)

    def test_update_fields(self, services, owner, client):
        updated = services.clients.update_client(
            owner.id, client.id, company=None, phone="555-0199",
        )

        assert updated.company is None
        assert updated.phone == "555-0199"
        assert updated.display_name == "Ada Client"

    def test_update_unknown_field(self, services, owner, client):
        with pytest.raises(ValidationError):
            services.clients.update_client(owner.id, client.id, user_id=owner.id)


class TestListClients:

    def test_ordered_by_name_with_totals(
        self, services, owner, client, second_client, make_invoice,
    ):
        paid = make_invoice(status="sent")
        services.payments.record_payment(owner.id, paid.id, paid.total, "cash")
        partly_paid = make_invoice(status="sent")
        services.payments.record_payment(owner.id, partly_paid.id, 100, "cash")
        make_invoice()  # draft: invoiced but not outstanding

        summaries = services.clients.list_clients(owner.id)

        assert [s.client.name for s in summaries] == ["Ada Client", "Bob Buyer"]
        ada, bob = summaries
        assert ada.invoice_count == 3
        assert ada.total_invoiced == Decimal("3300.00")
        assert ada.outstanding == Decimal("1000.00")
        assert (bob.invoice_count, bob.total_invoiced, bob.outstanding) == (
            0, Decimal("0.00"), Decimal("0.00"),
        )

    def test_overdue_counts_as_outstanding(self, services, owner, client, make_invoice):
        make_invoice(status="sent", issue_date=date(2026, 1, 1), due_date=date(2026, 1, 31))
        services.invoices.sweep_overdue(owner.id)

        (summary,) = services.clients.list_clients(owner.id)

        assert summary.outstanding == Decimal("1100.00")

    def test_search_by_email_or_company(self, services, owner, client, second_client):
        by_company = services.clients.list_clients(owner.id, search="acme")
        by_email = services.clients.list_clients(owner.id, search="buyer.example")

        assert [s.client.id for s in by_company] == [client.id]
        assert [s.client.id for s in by_email] == [second_client.id]

    def test_scoped_to_owner(self, services, other_owner, client):
        assert services.clients.list_clients(other_owner.id) == []


class TestDeleteClient:

    def test_refused_while_invoices_exist(self, services, owner, client, make_invoice):
        make_invoice()
        make_invoice()

        with pytest.raises(ClientHasInvoicesError) as exc_info:
            services.clients.delete_client(owner.id, client.id)

        assert exc_info.value.invoice_count == 2
        assert services.clients.get_client(owner.id, client.id) == client

    def test_deletes_client_and_templates(self, services, owner, second_client):
        template = services.recurring.create_template(
            owner.id, second_client.id,
            frequency="monthly",
            next_date=date(2026, 4, 1),
            items=[{"description": "Retainer", "quantity": 1, "rate": 500}],
        )

        services.clients.delete_client(owner.id, second_client.id)

        with pytest.raises(ClientNotFoundError):
            services.clients.get_client(owner.id, second_client.id)
        with pytest.raises(RecurringInvoiceNotFoundError):
            services.recurring.get_template(owner.id, template.id)
