"""Configuration models for the smoke runner."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ReadinessSignal, StoreConfig


class Viewport(BaseModel):
    width: int = Field(default=1280, gt=0)
    height: int = Field(default=720, gt=0)


class BrowserConfig(BaseModel):
    """Settings for the browser backend."""

    engine: str = Field(default="chromium", description="chromium, firefox or webkit")
    headless: bool = True
    viewport: Viewport = Field(default_factory=Viewport)
    launch_args: list[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-dev-shm-usage"],
    )
    capture_console: bool = Field(
        default=False,
        description="Record page console output and uncaught page errors in the report.",
    )
    virtual_display: bool = Field(
        default=False,
        description="Start an Xvfb display for headed runs on hosts without one.",
    )


class RunnerConfig(BaseSettings):
    """Top-level configuration for running scenarios."""

    model_config = SettingsConfigDict(
        env_prefix="SMOKE_RUNNER_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    url: str = Field(default="http://localhost:5173")
    readiness: ReadinessSignal = Field(default_factory=ReadinessSignal)
    store: Optional[StoreConfig] = None
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    timeout_ms: int = Field(default=30_000, gt=0, description="Navigation and readiness timeout.")
    step_timeout_ms: int = Field(default=5_000, gt=0, description="Default timeout for step waits.")
    screenshot_dir: Path = Field(default=Path("artifacts"))
    capture_on_failure: bool = True
    report_path: Optional[Path] = None
    event_log: Optional[Path] = Field(default=None, description="Append runner events as JSON lines here.")
    tags: list[str] = Field(default_factory=list)


def load_config(
    path: Path | None = None,
    *,
    env_file: Path | None = None,
    **overrides: object,
) -> RunnerConfig:
    """Load configuration from an optional file and overrides."""

    data: dict[str, Any] = {}
    if path:
        import yaml

        data = yaml.safe_load(path.read_text()) or {}
    if overrides:
        _deep_update(data, overrides)
    settings_kwargs: dict[str, object] = {}
    if env_file is not None:
        settings_kwargs["_env_file"] = env_file
    config = RunnerConfig(**data, **settings_kwargs)
    if not data:
        return config

    merged = config.model_dump(mode="python")
    _deep_update(merged, data)
    return RunnerConfig.model_validate(merged)


def _deep_update(target: dict[str, Any], updates: Mapping[str, Any]) -> None:
    """Recursively merge ``updates`` into ``target`` in-place."""

    for key, value in updates.items():
        if (
            isinstance(value, Mapping)
            and isinstance(existing := target.get(key), Mapping)
        ):
            nested: dict[str, Any]
            if isinstance(existing, dict):
                nested = existing
            else:
                nested = dict(existing)
            _deep_update(nested, value)
            target[key] = nested
        else:
            target[key] = value
