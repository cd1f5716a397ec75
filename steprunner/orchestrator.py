"""Suite orchestrator: runs test files one at a time, each in its own engine."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable

from steprunner.ai.client import AIClient, set_debug_dir
from steprunner.errors import StepRunnerError
from steprunner.executor.engine import TestRunEngine
from steprunner.models.config import RunnerConfig
from steprunner.models.provider import ToolDescriptor
from steprunner.models.report import ReportData, SuiteResult, TestRunSummary
from steprunner.models.test_definition import TestDefinition
from steprunner.planner.planner import Planner
from steprunner.providers.base import ToolProvider
from steprunner.providers.factory import create_provider
from steprunner.reporter.reporter import Reporter
from steprunner.test_loader import discover_test_files, load_test_definition

logger = logging.getLogger(__name__)


class Orchestrator:
    """Coordinates discovery, execution and reporting for a suite of test files.

    No mutable state is shared between test runs: every file gets a fresh
    provider from ``provider_factory`` and a fresh engine.
    """

    def __init__(
        self,
        config: RunnerConfig,
        ai_client: AIClient | None = None,
        provider_factory: Callable[[RunnerConfig], ToolProvider] = create_provider,
    ):
        self.config = config
        self.provider_factory = provider_factory
        self.reporter = Reporter(config)
        self._ai_client = ai_client
        set_debug_dir(Path(config.debug_dir))

    @property
    def ai_client(self) -> AIClient:
        # Created on first use so commands that never plan don't need an API key.
        if self._ai_client is None:
            self._ai_client = AIClient(
                model=self.config.llm.model,
                max_tokens=self.config.llm.max_tokens,
            )
        return self._ai_client

    def run_suite(self, path: str | Path) -> SuiteResult:
        """Run every test file under ``path``. Raises for a missing or invalid path."""
        files = discover_test_files(path, self.config.test_file_extensions)
        if not files:
            logger.warning("No test files found in %s", path)
            return SuiteResult()
        planner = Planner(self.config, self.ai_client)
        return asyncio.run(self._run_suite(files, planner))

    async def _run_suite(self, files: list[Path], planner: Planner) -> SuiteResult:
        start = time.time()
        logger.info("=== Running %d test file(s) ===", len(files))
        result = SuiteResult()

        for i, file in enumerate(files, 1):
            logger.info("--- Test %d/%d: %s ---", i, len(files), file.name)
            result.test_runs.append(await self._run_file(file, planner))

        result.duration_seconds = round(time.time() - start, 2)
        logger.info("=== Suite complete: %d passed, %d failed, %d aborted in %.1fs ===",
                    result.passed, result.failed, result.aborted, result.duration_seconds)
        return result

    async def _run_file(self, file: Path, planner: Planner) -> TestRunSummary:
        try:
            definition = load_test_definition(file)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Could not read %s: %s", file, e)
            return TestRunSummary(test_name=file.name, path=str(file), status="ABORTED", error=str(e))

        engine = TestRunEngine(self.provider_factory(self.config), planner, self.config)
        try:
            data = await engine.run(definition)
        except StepRunnerError as e:
            return self._aborted(definition, e)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if engine.report_data is not None:
                self._write_reports(engine.report_data)
            raise
        except Exception as e:
            logger.exception("Unexpected error while running %s", definition.name)
            if engine.report_data is None:
                return self._aborted(definition, e)
            data = engine.report_data

        reports = self._write_reports(data)
        return TestRunSummary(
            test_name=data.test_name,
            path=definition.path,
            status="PASSED" if data.passed else "FAILED",
            passed_actions=data.passed_actions,
            failed_actions=data.failed_actions,
            total_actions=data.total_actions,
            duration_ms=data.duration_ms,
            reports=reports,
        )

    @staticmethod
    def _aborted(definition: TestDefinition, error: Exception) -> TestRunSummary:
        logger.error("Test '%s' aborted: %s", definition.name, error)
        return TestRunSummary(
            test_name=definition.name,
            path=definition.path,
            status="ABORTED",
            error=str(error),
        )

    def _write_reports(self, data: ReportData) -> dict[str, str]:
        try:
            return self.reporter.generate_reports(data)
        except OSError as e:
            logger.error("Failed to write reports for '%s': %s", data.test_name, e)
            return {}

    def list_tools(self) -> list[ToolDescriptor]:
        """Connect to the configured provider once and return its tool catalog."""
        return asyncio.run(self._list_tools())

    async def _list_tools(self) -> list[ToolDescriptor]:
        async with self.provider_factory(self.config) as provider:
            return await provider.discover_tools()
