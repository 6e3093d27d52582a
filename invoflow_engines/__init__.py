"""
Module: invoflow_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for invoflow_services
    and invoflow_batch.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import invoflow_kernel.domain, invoflow_kernel.db.types,
    invoflow_kernel.exceptions and sibling engine modules.
    MUST NOT import invoflow_services or invoflow_batch.

Invariants enforced:
    - Purity: engines never read the wall clock.  "Today" is always passed
      in by the calling service from its injected Clock.
    - Money is Decimal, rounded half-up to 2 places.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every top-level engine call is wrapped in ``@traced_engine`` and emits
    an INVOFLOW_ENGINE_TRACE record with the engine name, version, input
    fingerprint and duration.
"""

from invoflow_kernel.logging_config import get_logger

logger = get_logger("engines")

from invoflow_engines.duplicate_detection import (
    DuplicateCandidate,
    DuplicateCheck,
    SimilarInvoice,
    detect_duplicate,
    format_money,
)
from invoflow_engines.line_item_suggestion import (
    LineItemSuggestion,
    suggest_line_items,
)
from invoflow_engines.payment_prediction import (
    PaymentPrediction,
    RiskLevel,
    days_to_pay,
    predict_payment_date,
)
from invoflow_engines.recurrence import DueCycles, add_months, advance, due_cycles
from invoflow_engines.reporting import (
    ClientRevenue,
    MethodBucket,
    MonthlyRevenue,
    OutstandingSummary,
    ReportBundle,
    ReportSummary,
    StatusBucket,
    build_report_bundle,
)
from invoflow_engines.totals import (
    ComputedLine,
    InvoiceTotals,
    coerce_line_items,
    compute_invoice_totals,
    estimate_template_total,
    recompute_tax,
    validate_tax_rate,
)
from invoflow_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Totals
    "ComputedLine",
    "InvoiceTotals",
    "coerce_line_items",
    "compute_invoice_totals",
    "estimate_template_total",
    "recompute_tax",
    "validate_tax_rate",
    # Recurrence
    "DueCycles",
    "add_months",
    "advance",
    "due_cycles",
    # Payment prediction
    "PaymentPrediction",
    "RiskLevel",
    "days_to_pay",
    "predict_payment_date",
    # Line-item suggestion
    "LineItemSuggestion",
    "suggest_line_items",
    # Duplicate detection
    "DuplicateCandidate",
    "DuplicateCheck",
    "SimilarInvoice",
    "detect_duplicate",
    "format_money",
    # Reporting
    "ClientRevenue",
    "MethodBucket",
    "MonthlyRevenue",
    "OutstandingSummary",
    "ReportBundle",
    "ReportSummary",
    "StatusBucket",
    "build_report_bundle",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
