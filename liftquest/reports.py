from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Sequence

import pandas as pd

from .catalog import find_category
from .models import WorkoutEntry, ensure_utc
from .quests import week_key

HISTORY_COLUMNS = [
    "id",
    "timestamp",
    "date",
    "week",
    "week_start",
    "category",
    "focus",
    "reps",
    "weight_kg",
    "duration_min",
    "distance_km",
    "performance",
    "exp_gained",
    "stat_total",
    "est_1rm",
    "is_pr",
    "prev_level",
    "new_level",
]

SUMMARY_COLUMNS = ["week", "week_start", "sessions", "xp", "stat_total", "prs", "levels_gained", "top_focus"]


def _is_pr(entry: WorkoutEntry) -> bool:
    if entry.est_1rm is None:
        return False
    return entry.prev_best_1rm is None or entry.est_1rm > entry.prev_best_1rm


def history_to_dataframe(history: Sequence[WorkoutEntry | Mapping[str, Any]]) -> pd.DataFrame:
    """Flatten workout entries into one row per session, oldest first."""
    records: list[dict[str, object]] = []
    for item in history:
        if isinstance(item, WorkoutEntry):
            entry = item
        elif isinstance(item, Mapping):
            entry = WorkoutEntry.from_dict(item)
        else:
            raise TypeError(f"Unsupported history item: {type(item)!r}")

        moment = ensure_utc(entry.timestamp)
        day = moment.date()
        category = find_category(entry.category)
        records.append(
            {
                "id": entry.id,
                "timestamp": pd.Timestamp(moment),
                "date": day,
                "week": week_key(moment),
                "week_start": day - timedelta(days=day.weekday()),
                "category": entry.category,
                "focus": category.focus if category else "",
                "reps": entry.reps if entry.reps is not None else pd.NA,
                "weight_kg": entry.weight_kg if entry.weight_kg is not None else pd.NA,
                "duration_min": entry.duration_min if entry.duration_min is not None else pd.NA,
                "distance_km": entry.distance_km if entry.distance_km is not None else pd.NA,
                "performance": entry.performance,
                "exp_gained": entry.exp_gained,
                "stat_total": entry.stat_gains.total,
                "est_1rm": entry.est_1rm if entry.est_1rm is not None else pd.NA,
                "is_pr": _is_pr(entry),
                "prev_level": entry.prev_level,
                "new_level": entry.new_level,
            }
        )

    if not records:
        return pd.DataFrame(columns=HISTORY_COLUMNS)
    df = pd.DataFrame(records, columns=HISTORY_COLUMNS)
    df.sort_values("timestamp", inplace=True, kind="stable")
    df.reset_index(drop=True, inplace=True)
    return df


def weekly_summary(df_history: pd.DataFrame) -> pd.DataFrame:
    """Aggregate sessions, XP, stat growth, PRs and level-ups per ISO week."""
    if df_history.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    df = df_history.copy()
    df["levels_gained"] = df["new_level"] - df["prev_level"]
    grouped = df.groupby(["week", "week_start"], sort=True)
    summary = grouped.agg(
        sessions=("id", "count"),
        xp=("exp_gained", "sum"),
        stat_total=("stat_total", "sum"),
        prs=("is_pr", "sum"),
        levels_gained=("levels_gained", "sum"),
        top_focus=("focus", lambda values: values.value_counts().idxmax() if len(values) else ""),
    ).reset_index()
    summary["xp"] = summary["xp"].round(1)
    summary["stat_total"] = summary["stat_total"].round(2)
    summary["prs"] = summary["prs"].astype(int)
    summary["levels_gained"] = summary["levels_gained"].astype(int)
    return summary[SUMMARY_COLUMNS]


def render_summary_table(summary: pd.DataFrame) -> str:
    """Render a fixed-width table for weekly summary rows."""
    headers = ("week", "start", "sessions", "xp", "stats", "prs", "levels", "focus")
    rows = [
        {
            "week": str(row.week),
            "start": row.week_start.isoformat(),
            "sessions": str(int(row.sessions)),
            "xp": f"{float(row.xp):.1f}",
            "stats": f"{float(row.stat_total):.2f}",
            "prs": str(int(row.prs)),
            "levels": f"+{int(row.levels_gained)}" if int(row.levels_gained) else "0",
            "focus": str(row.top_focus or ""),
        }
        for row in summary.itertuples(index=False)
    ]
    widths = {key: len(key) for key in headers}
    for row in rows:
        for key in headers:
            widths[key] = max(widths[key], len(row[key]))

    def _format_line(values: Mapping[str, str]) -> str:
        return "  ".join(values[key].rjust(widths[key]) for key in headers)

    header_line = "  ".join(key.upper().rjust(widths[key]) for key in headers)
    body = "\n".join(_format_line(row) for row in rows)
    return "\n".join(filter(None, [header_line, body]))


def export_history_csv(history: Sequence[WorkoutEntry | Mapping[str, Any]], path: Path | str) -> Path:
    df = history_to_dataframe(history)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if not df.empty:
        df = df.copy()
        df["timestamp"] = df["timestamp"].map(lambda value: value.isoformat())
        df["exp_gained"] = df["exp_gained"].round(1)
        df["stat_total"] = df["stat_total"].round(3)
    df.to_csv(target, index=False)
    return target
