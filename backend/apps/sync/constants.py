"""
Constants for the sync app.
"""

PRIORITY_WEIGHTS: dict[str, int] = {
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
}

# Jitter added on top of the exponential retry delay, as a fraction of it
RETRY_JITTER_RATIO = 0.2

QUEUE_FULL_ERROR = "evicted: queue full"
