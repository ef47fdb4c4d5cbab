"""
Concurrent reads of a patient's self-report signals from Supabase.

The four signal kinds are fetched in parallel and joined before analysis.
Each read yields a tagged result (ok / empty / failed) so every failing kind
is reported, but any failure still aborts the evaluation.
"""
import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from supabase import Client

from analysis.crisis_risk import signal_frame
from api.utils import hash_user_id_for_logging
from services.errors import SignalFetchError

logger = logging.getLogger("crisis-api.signals")

SIGNAL_WINDOW_DAYS = int(os.getenv("CRISIS_WINDOW_DAYS", "30"))
SIGNAL_FETCH_TIMEOUT_SECONDS = float(os.getenv("SIGNAL_FETCH_TIMEOUT_SECONDS", "10"))

SIGNAL_KINDS = ["mood", "journal", "messages", "tasks"]

MOOD_SCORE_MIN = 1
MOOD_SCORE_MAX = 5


@dataclass(frozen=True)
class SignalSource:
    table: str
    columns: Tuple[str, ...]
    patient_column: str = "patient_id"


SIGNAL_SOURCES: Dict[str, SignalSource] = {
    "mood": SignalSource("mood_records", ("mood_score", "created_at")),
    "journal": SignalSource("diary_entries", ("created_at",)),
    "messages": SignalSource("chat_messages", ("created_at",), patient_column="sender_id"),
    "tasks": SignalSource("tasks", ("status", "created_at")),
}


@dataclass
class SignalFetchResult:
    kind: str
    status: str  # "ok", "empty" or "failed"
    frame: Optional[pd.DataFrame] = None
    error: Optional[Exception] = None


@dataclass
class SignalBundle:
    """Signals of one patient over one trailing window, oldest first."""
    mood_records: pd.DataFrame
    diary_entries: pd.DataFrame
    chat_messages: pd.DataFrame
    tasks: pd.DataFrame
    since: datetime
    results: Dict[str, SignalFetchResult] = field(default_factory=dict)

    def counts(self) -> Dict[str, int]:
        return {kind: len(result.frame) for kind, result in self.results.items() if result.frame is not None}


def fetch_signal_rows(supabase: Client, kind: str, patient_id: str, since: datetime) -> List[Dict[str, Any]]:
    """Blocking read of one signal kind; runs inside the default executor."""
    source = SIGNAL_SOURCES[kind]
    response = supabase.table(source.table)\
        .select(", ".join(source.columns))\
        .eq(source.patient_column, patient_id)\
        .gte("created_at", since.isoformat())\
        .order("created_at")\
        .execute()

    rows = response.data
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise ValueError(f"Unexpected response for {source.table}: {type(rows).__name__}")
    return rows


def _validate_mood_scores(frame: pd.DataFrame) -> pd.DataFrame:
    """Coerce mood_score to numbers in [1, 5]; anything else is a malformed payload."""
    scores = pd.to_numeric(frame["mood_score"], errors="raise")
    present = scores.dropna()
    out_of_range = present[~present.between(MOOD_SCORE_MIN, MOOD_SCORE_MAX)]
    if not out_of_range.empty:
        raise ValueError(f"mood_score fora do intervalo [{MOOD_SCORE_MIN}, {MOOD_SCORE_MAX}]: {out_of_range.tolist()}")
    frame["mood_score"] = scores.astype(float)
    return frame


def _to_result(kind: str, outcome: Any) -> SignalFetchResult:
    if isinstance(outcome, BaseException):
        return SignalFetchResult(kind=kind, status="failed", error=outcome)

    try:
        frame = signal_frame(outcome, SIGNAL_SOURCES[kind].columns)
        if kind == "mood":
            frame = _validate_mood_scores(frame)
    except (ValueError, TypeError) as e:
        return SignalFetchResult(kind=kind, status="failed", error=e)

    return SignalFetchResult(kind=kind, status="empty" if frame.empty else "ok", frame=frame)


async def fetch_patient_signals(
    supabase: Client,
    patient_id: str,
    window_days: int = SIGNAL_WINDOW_DAYS,
    now: Optional[datetime] = None,
    timeout_seconds: float = SIGNAL_FETCH_TIMEOUT_SECONDS,
) -> SignalBundle:
    """
    Fan out the four signal reads and join them.

    Raises:
        SignalFetchError: if any read fails, returns a malformed payload,
            or the reads do not complete within ``timeout_seconds``
    """
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=window_days)
    user_hash = hash_user_id_for_logging(patient_id)

    loop = asyncio.get_running_loop()
    reads = [
        loop.run_in_executor(None, fetch_signal_rows, supabase, kind, patient_id, since)
        for kind in SIGNAL_KINDS
    ]

    try:
        outcomes = await asyncio.wait_for(
            asyncio.gather(*reads, return_exceptions=True),
            timeout=timeout_seconds
        )
    except asyncio.TimeoutError:
        logger.error("Signal fetch timeout after %ss user_hash=%s", timeout_seconds, user_hash)
        raise SignalFetchError(
            f"Timeout ao buscar sinais do paciente após {timeout_seconds}s",
            failed_kinds=list(SIGNAL_KINDS),
            timed_out=True
        )

    results = {kind: _to_result(kind, outcome) for kind, outcome in zip(SIGNAL_KINDS, outcomes)}

    failed = [kind for kind, result in results.items() if result.status == "failed"]
    for kind in failed:
        logger.error(
            "Signal fetch failed: kind=%s table=%s user_hash=%s error=%s",
            kind, SIGNAL_SOURCES[kind].table, user_hash, results[kind].error
        )
    if failed:
        raise SignalFetchError(
            f"Falha ao buscar sinais do paciente: {', '.join(failed)}",
            failed_kinds=failed
        )

    bundle = SignalBundle(
        mood_records=results["mood"].frame,
        diary_entries=results["journal"].frame,
        chat_messages=results["messages"].frame,
        tasks=results["tasks"].frame,
        since=since,
        results=results,
    )
    logger.debug("Signals fetched user_hash=%s counts=%s", user_hash, bundle.counts())
    return bundle
