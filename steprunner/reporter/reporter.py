"""Report generation orchestration."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from steprunner.models.config import RunnerConfig
from steprunner.models.report import ReportData

from .html_report import format_duration, generate_html_report
from .json_report import generate_json_report

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "_", Path(name).stem).strip("_").lower()
    return slug or "test"


class Reporter:
    """Writes finalized report data to disk. Never feeds anything back to the engine."""

    def __init__(self, config: RunnerConfig):
        self.config = config

    def generate_reports(
        self, data: ReportData, output_dir: Path | None = None,
    ) -> dict[str, str]:
        """Generate all configured report formats. Returns format -> file path."""
        out_dir = output_dir or Path(self.config.reporting.output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Report output directory: %s", out_dir)

        stem = f"report_{slugify(data.test_name)}_{data.start_time.strftime('%Y%m%d_%H%M%S')}"
        formats = self.config.reporting.formats
        generated = {}

        if "html" in formats:
            path = out_dir / f"{stem}.html"
            logger.debug("Generating HTML report...")
            generate_html_report(data, path, self.config.reporting.screenshots_dir)
            generated["html"] = str(path)
            logger.info("HTML report: %s", path)

        if "json" in formats:
            path = out_dir / f"{stem}.json"
            logger.debug("Generating JSON report...")
            generate_json_report(data, path)
            generated["json"] = str(path)
            logger.info("JSON report: %s", path)

        unknown = [f for f in formats if f not in ("html", "json")]
        if unknown:
            logger.warning("Ignoring unsupported report format(s): %s", ", ".join(unknown))

        logger.info(
            "Test '%s': %s | passed %d | failed %d | success rate %.1f%% | duration %s",
            data.test_name, data.test_result.value.upper(), data.passed_actions,
            data.failed_actions, data.success_rate * 100, format_duration(data.duration_ms),
        )
        return generated
