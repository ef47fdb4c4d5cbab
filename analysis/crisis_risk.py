"""
Crisis Risk Analysis Module.

Turns a patient's recent self-report signals (mood records, diary entries,
chat messages and tasks) into weighted risk indicators, a bounded risk score
and a discrete risk level.

Everything in this module is pure: no I/O, no clock reads unless ``now`` is
omitted by the caller.
"""

import math
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd


RECENT_ACTIVITY_DAYS = int(os.getenv("CRISIS_RECENT_ACTIVITY_DAYS", "7"))

# Níveis de risco em ordem crescente de gravidade
RISK_LEVELS = ["baixo", "medio", "alto", "critico"]

# Pesos por tipo de indicador
INDICATOR_WEIGHTS: Dict[str, float] = {
    "low_mood": 25,
    "declining_mood": 20,
    "no_diary_activity": 15,
    "communication_drop": 15,
    "low_task_completion": 10,
}
DEFAULT_INDICATOR_WEIGHT = 5

# Multiplicadores por severidade
SEVERITY_MULTIPLIERS: Dict[str, float] = {
    "baixo": 0.5,
    "medio": 1.0,
    "alto": 1.5,
    "critico": 2.0,
}
DEFAULT_SEVERITY_MULTIPLIER = 1.0

LOW_MOOD_THRESHOLD = 3.0
DECLINING_MOOD_SLOPE = -0.5
LOW_TASK_COMPLETION_RATE = 0.3

MIN_RISK_SCORE = 0.0
MAX_RISK_SCORE = 100.0

# Lower bound (inclusive) of each tier, highest first
RISK_LEVEL_THRESHOLDS = [
    (80, "critico"),
    (60, "alto"),
    (30, "medio"),
]

INTERVENTION_PLAN_MIN_SCORE = 30
ALERT_MIN_SCORE = 70

SignalRecords = Union[pd.DataFrame, Iterable[Dict[str, Any]], None]


def signal_frame(records: SignalRecords, columns: Sequence[str] = ("created_at",)) -> pd.DataFrame:
    """
    Normalize raw signal rows into a DataFrame sorted oldest first.

    ``created_at`` is parsed as a timezone-aware UTC timestamp; naive values
    are taken as UTC. Malformed timestamps raise ``ValueError``.

    Args:
        records: Rows as returned by PostgREST (list of dicts) or an
            existing DataFrame
        columns: Columns guaranteed to exist in the result

    Returns:
        DataFrame with at least ``columns``, sorted by ``created_at``
    """
    if isinstance(records, pd.DataFrame):
        frame = records.copy()
    else:
        frame = pd.DataFrame(list(records or []))

    for column in columns:
        if column not in frame.columns:
            frame[column] = pd.Series(dtype="object")

    if "created_at" not in frame.columns:
        frame["created_at"] = pd.Series(dtype="object")

    frame["created_at"] = pd.to_datetime(frame["created_at"], utc=True, format="ISO8601")
    return frame.sort_values("created_at", kind="stable").reset_index(drop=True)


def calculate_trend(values: Sequence[float]) -> float:
    """
    Ordinary least-squares slope of ``values`` against their positions 0..n-1.

    Returns 0.0 when fewer than two points are available.
    """
    y = np.asarray(values, dtype=float)
    n = y.size
    if n < 2:
        return 0.0

    x = np.arange(n, dtype=float)
    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_xx = (x * x).sum()

    return float((n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x))


def _count_since(frame: pd.DataFrame, since: datetime) -> int:
    if frame.empty:
        return 0
    return int((frame["created_at"] >= pd.Timestamp(since)).sum())


def extract_risk_indicators(
    mood_records: SignalRecords = None,
    diary_entries: SignalRecords = None,
    chat_messages: SignalRecords = None,
    tasks: SignalRecords = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Apply the fixed rule set to each signal kind.

    Args:
        mood_records: Rows with ``mood_score`` and ``created_at``
        diary_entries: Rows with ``created_at``
        chat_messages: Rows with ``created_at``
        tasks: Rows with ``status`` and ``created_at``
        now: Reference time for the recent-activity cut-off (UTC now by default)

    Returns:
        List of indicator dicts ``{"type", "severity", "value"}``; may be empty
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    recent_since = now - timedelta(days=RECENT_ACTIVITY_DAYS)

    moods = signal_frame(mood_records, ("mood_score", "created_at"))
    diary = signal_frame(diary_entries)
    messages = signal_frame(chat_messages)
    task_frame = signal_frame(tasks, ("status", "created_at"))

    indicators: List[Dict[str, Any]] = []

    # Humor: média e tendência
    mood_scores = moods["mood_score"].dropna().astype(float).tolist()
    if mood_scores:
        avg_mood = float(np.mean(mood_scores))
        mood_trend = calculate_trend(mood_scores)

        if avg_mood < LOW_MOOD_THRESHOLD:
            indicators.append({"type": "low_mood", "severity": "alto", "value": avg_mood})
        if mood_trend < DECLINING_MOOD_SLOPE:
            indicators.append({"type": "declining_mood", "severity": "medio", "value": mood_trend})

    # Diário: atividade recente
    if _count_since(diary, recent_since) == 0:
        indicators.append({"type": "no_diary_activity", "severity": "medio", "value": 0})

    # Comunicação: mensagens recentes
    if _count_since(messages, recent_since) == 0:
        indicators.append({"type": "communication_drop", "severity": "medio", "value": 0})

    # Tarefas: sem tarefas atribuídas não é sinal de risco
    total_tasks = len(task_frame)
    if total_tasks > 0:
        completed = int((task_frame["status"] == "completed").sum())
        completion_rate = completed / total_tasks
        if completion_rate < LOW_TASK_COMPLETION_RATE:
            indicators.append({"type": "low_task_completion", "severity": "medio", "value": completion_rate})

    return indicators


def indicator_contribution(indicator: Dict[str, Any]) -> float:
    """Weighted contribution of a single indicator to the risk score."""
    weight = INDICATOR_WEIGHTS.get(indicator.get("type"), DEFAULT_INDICATOR_WEIGHT)
    multiplier = SEVERITY_MULTIPLIERS.get(indicator.get("severity"), DEFAULT_SEVERITY_MULTIPLIER)
    return weight * multiplier


def calculate_risk_score(indicators: Iterable[Dict[str, Any]]) -> float:
    """
    Sum the weighted indicator contributions and clamp to [0, 100].

    ``math.fsum`` keeps the reduction exact, so indicator order never
    changes the result.
    """
    total = math.fsum(indicator_contribution(indicator) for indicator in indicators)
    return float(np.clip(total, MIN_RISK_SCORE, MAX_RISK_SCORE))


def get_risk_level(score: float) -> str:
    for lower_bound, level in RISK_LEVEL_THRESHOLDS:
        if score >= lower_bound:
            return level
    return "baixo"


def requires_intervention_plan(score: float) -> bool:
    return score >= INTERVENTION_PLAN_MIN_SCORE


def should_alert(score: float) -> bool:
    """Alert flag for urgent follow-up; independent of the risk level."""
    return score >= ALERT_MIN_SCORE
