"""Prometheus metrics for the Gomoku engine.

This module centralises counters and histograms so that the decision
pipeline, the skill engine and the HTTP handlers can record lightweight
telemetry without each managing its own metric instances. Labels are kept
small so they stay usable in local/dev Prometheus setups.
"""

from __future__ import annotations

from typing import Final, Optional

from prometheus_client import Counter, Gauge, Histogram


AI_DECISIONS: Final[Counter] = Counter(
    "gomoku_ai_decisions_total",
    (
        "Total AI decisions, labeled by kind (move/skill), source "
        "(rule/evaluator/advisor/opening/fallback) and difficulty."
    ),
    labelnames=("kind", "source", "difficulty"),
)

AI_DECISION_LATENCY: Final[Histogram] = Histogram(
    "gomoku_ai_decision_latency_seconds",
    "Latency of a full AI turn in seconds, labeled by difficulty.",
    labelnames=("difficulty",),
    buckets=(
        0.005,
        0.01,
        0.05,
        0.1,
        0.5,
        1.0,
        5.0,
        15.0,
    ),
)

ADVISOR_REQUESTS: Final[Counter] = Counter(
    "gomoku_advisor_requests_total",
    (
        "External advisor consultations, labeled by kind (move/skill) and "
        "outcome (accepted/rejected/timeout/error/stale)."
    ),
    labelnames=("kind", "outcome"),
)

SKILL_USES: Final[Counter] = Counter(
    "gomoku_skill_uses_total",
    "Skill activations, labeled by skill and outcome (ok or error code).",
    labelnames=("skill", "outcome"),
)

INVARIANT_VIOLATIONS: Final[Counter] = Counter(
    "gomoku_invariant_violations_total",
    "Internal invariant violations detected and contained, labeled by invariant.",
    labelnames=("invariant",),
)

GAMES_COMPLETED: Final[Counter] = Counter(
    "gomoku_games_completed_total",
    "Finished games, labeled by outcome (winner_1/winner_2/draw).",
    labelnames=("outcome",),
)

ACTIVE_GAMES: Final[Gauge] = Gauge(
    "gomoku_active_games",
    "Number of game sessions held by this process.",
)


def record_game_outcome(winner: Optional[int], draw: bool) -> None:
    """Count a finished game once its result is known."""
    if draw:
        GAMES_COMPLETED.labels("draw").inc()
    elif winner is not None:
        GAMES_COMPLETED.labels(f"winner_{int(winner)}").inc()


def record_invariant_violation(invariant: str) -> None:
    INVARIANT_VIOLATIONS.labels(invariant).inc()
