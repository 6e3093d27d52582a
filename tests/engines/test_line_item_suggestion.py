"""
Tests for line-item suggestions.
"""

from decimal import Decimal

from invoflow_engines.line_item_suggestion import suggest_line_items


class TestClientSuggestions:
    """Suggestions from the client's own invoices."""

    def test_groups_case_insensitively_and_ranks_by_frequency(self, invoice_dto, line_dto):
        newest = invoice_dto(lines=[line_dto("Design", 2, 120), line_dto("Hosting", 1, 20)])
        older = invoice_dto(lines=[line_dto("design ", 4, 100)])

        suggestions = suggest_line_items(
            client_history=[newest, older], user_history=[],
        )

        assert [s.description for s in suggestions] == ["Design", "Hosting"]
        design = suggestions[0]
        assert design.frequency == 2
        assert design.rate == Decimal("120")  # most recent rate
        assert design.quantity == Decimal("3.0")  # mean of 2 and 4
        assert design.confidence == 70  # 50 + 2 * 10

    def test_quantity_mean_rounds_half_up_to_one_decimal(self, invoice_dto, line_dto):
        history = [
            invoice_dto(lines=[line_dto("Hours", "1.25", 50)]),
            invoice_dto(lines=[line_dto("Hours", "1", 50)]),
        ]

        suggestions = suggest_line_items(client_history=history, user_history=[])

        # mean 1.125 -> 1.1
        assert suggestions[0].quantity == Decimal("1.1")

    def test_confidence_capped(self, invoice_dto, line_dto):
        history = [invoice_dto(lines=[line_dto("Retainer")]) for _ in range(8)]

        suggestions = suggest_line_items(client_history=history, user_history=[])

        assert suggestions[0].confidence == 95

    def test_ties_keep_first_seen_order(self, invoice_dto, line_dto):
        history = [invoice_dto(lines=[line_dto("Zeta"), line_dto("Alpha")])]

        suggestions = suggest_line_items(client_history=history, user_history=[])

        assert [s.description for s in suggestions] == ["Zeta", "Alpha"]

    def test_at_most_ten(self, invoice_dto, line_dto):
        history = [
            invoice_dto(lines=[line_dto(f"Item {i}") for i in range(15)])
        ]

        suggestions = suggest_line_items(client_history=history, user_history=[])

        assert len(suggestions) == 10


class TestFiltering:

    def test_filter_matches_substring(self, invoice_dto, line_dto):
        history = [invoice_dto(lines=[line_dto("Web design"), line_dto("Hosting")])]

        suggestions = suggest_line_items(
            client_history=history, user_history=[], filter_text="DESIGN",
        )

        assert [s.description for s in suggestions] == ["Web design"]

    def test_filter_matches_any_word(self, invoice_dto, line_dto):
        history = [invoice_dto(lines=[line_dto("Logo work"), line_dto("Hosting")])]

        suggestions = suggest_line_items(
            client_history=history, user_history=[], filter_text="new logo",
        )

        assert [s.description for s in suggestions] == ["Logo work"]

    def test_blank_filter_matches_everything(self, invoice_dto, line_dto):
        history = [invoice_dto(lines=[line_dto("A"), line_dto("B")])]

        suggestions = suggest_line_items(
            client_history=history, user_history=[], filter_text="   ",
        )

        assert len(suggestions) == 2


class TestUserFallback:
    """When the client yields nothing, the user's history is used."""

    def test_fallback_when_client_has_no_history(self, invoice_dto, line_dto):
        user_history = [
            invoice_dto(lines=[line_dto("Audit", 3, 400)]),
            invoice_dto(lines=[line_dto("Audit", 1, 350)]),
        ]

        suggestions = suggest_line_items(client_history=[], user_history=user_history)

        assert len(suggestions) == 1
        audit = suggestions[0]
        assert audit.quantity == Decimal("1")
        assert audit.rate == Decimal("400")
        assert audit.confidence == 40  # 30 + 2 * 5

    def test_fallback_when_filter_excludes_client_items(self, invoice_dto, line_dto):
        client_history = [invoice_dto(lines=[line_dto("Hosting")])]
        user_history = [invoice_dto(lines=[line_dto("Photography")])]

        suggestions = suggest_line_items(
            client_history=client_history,
            user_history=user_history,
            filter_text="photo",
        )

        assert [s.description for s in suggestions] == ["Photography"]

    def test_fallback_confidence_capped(self, invoice_dto, line_dto):
        user_history = [invoice_dto(lines=[line_dto("Support")]) for _ in range(12)]

        suggestions = suggest_line_items(client_history=[], user_history=user_history)

        assert suggestions[0].confidence == 70

    def test_client_results_win_over_user_history(self, invoice_dto, line_dto):
        suggestions = suggest_line_items(
            client_history=[invoice_dto(lines=[line_dto("Client item")])],
            user_history=[invoice_dto(lines=[line_dto("Other item")])],
        )

        assert [s.description for s in suggestions] == ["Client item"]

    def test_nothing_anywhere(self):
        assert suggest_line_items(client_history=[], user_history=[]) == []
