from __future__ import annotations

DRIVER_MIN = 0.0
DRIVER_MAX = 100.0

# Integration friction at 100% complexity.
MAX_COMPLEXITY_DAYS = 5

SICKNESS_BLOCK_DAYS = 3

RISK_HIGH_DAYS = 15
RISK_MEDIUM_DAYS = 5

# Aggregate delay probability weights.
PROBABILITY_LOAD_WEIGHT = 0.4
PROBABILITY_COMPLEXITY_WEIGHT = 0.4
PROBABILITY_STOCHASTIC_SPAN = 20

ADVICE_CRITICAL = 70
ADVICE_HIGH = 50
ADVICE_MODERATE = 30
