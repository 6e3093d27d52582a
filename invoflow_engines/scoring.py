"""
Module: invoflow_engines.scoring
Responsibility:
    Named constants for the heuristic insight scorers.  Every weight,
    threshold and point allocation used by payment prediction, line-item
    suggestion and duplicate detection lives here so it can be tuned and
    tested independently of the scoring code.

Architecture position:
    Engines -- constants only, zero I/O.
"""

from decimal import Decimal

# ---------------------------------------------------------------------------
# Payment-date prediction
# ---------------------------------------------------------------------------

PREDICTION_HISTORY_LIMIT = 20
NO_HISTORY_BUFFER_DAYS = 3
NO_HISTORY_CONFIDENCE = 30
CONFIDENCE_CAP = 95
STDDEV_PENALTY_PER_DAY = 5
CONSISTENCY_WEIGHT = 0.7
HISTORY_BONUS_PER_INVOICE = 4
HISTORY_BONUS_CAP = 20
MEDIUM_RISK_MAX_DAYS_LATE = 14
LARGE_INVOICE_FACTOR = Decimal("1.5")
LARGE_INVOICE_EXTRA_DAYS = 3

# ---------------------------------------------------------------------------
# Line-item suggestion
# ---------------------------------------------------------------------------

CLIENT_ITEM_HISTORY_LIMIT = 50
USER_ITEM_HISTORY_LIMIT = 100
SUGGESTION_LIMIT = 10
CLIENT_SUGGESTION_BASE = 50
CLIENT_SUGGESTION_PER_USE = 10
CLIENT_SUGGESTION_CAP = 95
FALLBACK_SUGGESTION_BASE = 30
FALLBACK_SUGGESTION_PER_USE = 5
FALLBACK_SUGGESTION_CAP = 70

# ---------------------------------------------------------------------------
# Duplicate detection
# ---------------------------------------------------------------------------

DUPLICATE_WINDOW_DAYS = 30
NO_MATCH_CONFIDENCE = 95

# (exclusive upper bound of relative difference, points); exact match first
AMOUNT_EXACT_POINTS = 40
AMOUNT_TIERS: tuple[tuple[Decimal, int], ...] = (
    (Decimal("0.01"), 35),
    (Decimal("0.05"), 20),
    (Decimal("0.10"), 10),
)

# (exclusive upper bound in days, points)
DATE_TIERS: tuple[tuple[int, int], ...] = (
    (1, 20),
    (3, 15),
    (7, 10),
    (14, 5),
)

ITEM_POINTS = 40
ITEM_FULL_MATCH = 1.0
ITEM_DESC_RATE_MATCH = 0.7
ITEM_DESC_MATCH = 0.4
ITEM_VALUE_TOLERANCE = Decimal("0.01")

SIMILAR_THRESHOLD = 30
DUPLICATE_THRESHOLD = 75
SIMILAR_RESULT_LIMIT = 5
NON_DUPLICATE_CONFIDENCE_SLOPE = 0.5
