"""Configuration models for the step runner."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_FILE = "step-runner.json"


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720

    @property
    def size(self) -> str:
        return f"{self.width}x{self.height}"


class LLMConfig(BaseModel):
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 16000
    temperature: float = 0.2


class BrowserConfig(BaseModel):
    browser: str = "chromium"
    headless: bool = False
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    ignore_https_errors: bool = True


class ProviderConfig(BaseModel):
    kind: str = "mcp"  # mcp, playwright
    command: str = "npx"
    package: str = "@playwright/mcp@latest"
    extra_args: list[str] = Field(default_factory=list)
    workspace_dir: str = "mcp-workspace"
    env: dict[str, str] = Field(default_factory=dict)
    # Handed to the provider as its per-request deadline; None waits indefinitely.
    step_timeout_seconds: Optional[float] = None

    @field_validator("kind")
    @classmethod
    def check_kind(cls, v: str) -> str:
        if v not in ("mcp", "playwright"):
            raise ValueError(f"Unsupported provider kind '{v}' (expected 'mcp' or 'playwright')")
        return v

    @field_validator("env", mode="before")
    @classmethod
    def resolve_env_values(cls, v: dict) -> dict:
        if not isinstance(v, dict):
            return v
        resolved = {}
        for key, value in v.items():
            if isinstance(value, str) and value.startswith("env:"):
                env_var = value[4:]
                actual = os.environ.get(env_var)
                if actual is None:
                    raise ValueError(f"Environment variable '{env_var}' not set")
                value = actual
            resolved[key] = value
        return resolved

    @field_validator("step_timeout_seconds")
    @classmethod
    def check_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("step_timeout_seconds must be positive")
        return v


class ReportingConfig(BaseModel):
    screenshots_dir: str = "mcp-workspace/test-screenshots"
    output_dir: str = "test-reports"
    formats: list[str] = Field(default_factory=lambda: ["html", "json"])
    error_excerpt_chars: int = 500


class RunnerConfig(BaseModel):
    llm: LLMConfig = Field(default_factory=LLMConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
    test_file_extensions: list[str] = Field(default_factory=lambda: [".yml", ".yaml"])
    debug_dir: str = ".step-runner/debug"

    @classmethod
    def load(cls, path: str | Path) -> "RunnerConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    @classmethod
    def load_or_default(cls, path: str | Path | None) -> "RunnerConfig":
        """Load config from ``path`` when it exists, otherwise use defaults."""
        if path and Path(path).exists():
            return cls.load(path)
        return cls()

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
