"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from steprunner.models.report import ReportData


def generate_json_report(data: ReportData, output_path: Path) -> None:
    """Write a machine-readable JSON report."""
    report = data.model_dump(mode="json")
    report["success_rate"] = round(data.success_rate, 4)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, default=str)
