"""Backtest result persistence.

Saves BacktestResults to JSON files for dashboards and historical analysis.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from backtest_engine.models.results import BacktestResults


def save_results(
    results: BacktestResults,
    output_path: str | Path,
    metadata: dict[str, Any] | None = None,
) -> Path:
    """Save a backtest result to JSON.

    Args:
        results: Completed backtest results.
        output_path: Target file; parent directories are created.
        metadata: Extra top-level fields (strategy name, data files, ...).

    Returns:
        Path to the saved JSON file.
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    report: dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        **(metadata or {}),
        "results": results.to_dict(),
    }

    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, allow_nan=False)

    return path


def load_results(input_path: str | Path) -> dict[str, Any]:
    """Load a saved report as plain JSON data.

    Raises:
        FileNotFoundError: If the report doesn't exist
    """
    path = Path(input_path)
    if not path.exists():
        raise FileNotFoundError(f"Results file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        report: dict[str, Any] = json.load(f)
    return report
