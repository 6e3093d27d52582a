"""
Tests for the invoicing batch tasks run through BatchRunner.

Covers:
- invoices.materialize_recurring: one item per due template, idempotent
- invoices.sweep_overdue: one item per owner with past-due invoices
- Optional ``user_id`` parameter narrowing either task
"""

from datetime import date

import pytest

from invoflow_batch.domain.types import BatchItemStatus, BatchRunStatus
from invoflow_batch.orchestrator import BatchOrchestrator
from invoflow_kernel.domain.dtos import InvoiceStatus

RETAINER = [{"description": "Retainer", "quantity": 1, "rate": 500}]


@pytest.fixture
def runner(session, clock, app_config, notifier):
    orchestrator = BatchOrchestrator(config=app_config, clock=clock, notifier=notifier)
    return orchestrator.create_runner(session)


class TestMaterializeRecurringTask:

    def test_generates_due_cycles(self, runner, services, owner, client):
        template = services.recurring.create_template(
            owner.id, client.id, frequency="monthly",
            next_date=date(2026, 2, 15), items=RETAINER,
        )
        services.recurring.create_template(
            owner.id, client.id, frequency="monthly",
            next_date=date(2026, 5, 1), items=RETAINER,
        )

        result = runner.run("invoices.materialize_recurring")

        assert result.status == BatchRunStatus.COMPLETED
        assert result.total_items == 1
        (data,) = result.item_data
        assert data["template_id"] == str(template.id)
        assert data["invoice_numbers"] == ["INV-001", "INV-002"]

        issued = sorted(i.issue_date for i in services.invoices.list_invoices(owner.id))
        assert issued == [date(2026, 2, 15), date(2026, 3, 15)]

    def test_second_run_has_nothing_due(self, runner, services, owner, client):
        services.recurring.create_template(
            owner.id, client.id, frequency="weekly",
            next_date=date(2026, 3, 15), items=RETAINER,
        )
        runner.run("invoices.materialize_recurring")

        again = runner.run("invoices.materialize_recurring")

        assert again.total_items == 0
        assert len(services.invoices.list_invoices(owner.id)) == 1

    def test_user_filter(self, runner, services, owner, other_owner, client):
        services.recurring.create_template(
            owner.id, client.id, frequency="weekly",
            next_date=date(2026, 3, 15), items=RETAINER,
        )

        result = runner.run(
            "invoices.materialize_recurring", {"user_id": str(other_owner.id)},
        )

        assert result.total_items == 0


class TestSweepOverdueTask:

    def test_flips_past_due_invoices(self, runner, services, owner, make_invoice):
        invoice = make_invoice(
            status="sent", issue_date=date(2026, 1, 1), due_date=date(2026, 2, 1),
        )

        result = runner.run("invoices.sweep_overdue")

        assert result.status == BatchRunStatus.COMPLETED
        assert result.item_data == ({"user_id": str(owner.id), "updated": 1},)
        assert services.invoices.get_invoice(
            owner.id, invoice.id
        ).status == InvoiceStatus.OVERDUE

    def test_no_past_due_invoices(self, runner, sent_invoice):
        result = runner.run("invoices.sweep_overdue")

        assert result.total_items == 0
        assert result.status == BatchRunStatus.COMPLETED

    def test_item_per_owner(self, runner, services, owner, other_owner, make_invoice):
        make_invoice(status="sent", issue_date=date(2026, 1, 1), due_date=date(2026, 2, 1))
        rival_client = services.clients.create_client(
            other_owner.id, name="Zed", email="zed@example.com",
        )
        services.invoices.create_invoice(
            other_owner.id, rival_client.id,
            issue_date="2026-01-10", due_date="2026-02-10",
            tax_rate=0, items=RETAINER, status="sent",
        )

        result = runner.run("invoices.sweep_overdue")

        assert result.succeeded == 2
        assert all(r.status == BatchItemStatus.SUCCEEDED for r in result.item_results)
