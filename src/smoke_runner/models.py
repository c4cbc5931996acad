"""Shared models used across the smoke runner."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StepKind(str, enum.Enum):
    """Enumerated actions and observations a scenario can contain."""

    NAVIGATE = "navigate"
    WAIT_FOR_SELECTOR = "wait_for_selector"
    WAIT_FOR_CONDITION = "wait_for_condition"
    CLICK = "click"
    TYPE = "type"
    KEY_PRESS = "key_press"
    HOVER = "hover"
    DRAG = "drag"
    SCROLL = "scroll"
    EVALUATE = "evaluate"
    STORE_ACTION = "store_action"
    SCREENSHOT = "screenshot"
    SLEEP = "sleep"
    ASSERT = "assert"


class EvaluationSource(str, enum.Enum):
    """Where a script runs: against the page or the bound application store."""

    PAGE = "page"
    STORE = "store"


class ReadinessSignal(BaseModel):
    """Condition confirming that the target application finished loading."""

    selector: Optional[str] = "canvas"
    condition: Optional[str] = Field(
        default=None,
        description="JavaScript predicate evaluated in the page, e.g. '() => !!window.useMindmapStore'.",
    )
    wait_until: Literal["commit", "domcontentloaded", "load", "networkidle"] = "domcontentloaded"

    @model_validator(mode="after")
    def _require_signal(self) -> "ReadinessSignal":
        if not self.selector and not self.condition:
            raise ValueError("readiness signal needs a selector or a condition")
        return self


class StoreConfig(BaseModel):
    """Accessors for the application's exposed state container."""

    get_state: str = Field(
        description="JavaScript function returning the current state, e.g. '() => window.store.getState()'.",
    )
    get_action: str = Field(
        description="JavaScript function returning a mutator by name, e.g. 'name => window.store.getState()[name]'.",
    )


_TARGETED = {StepKind.CLICK, StepKind.HOVER}
_SCRIPTED = {StepKind.WAIT_FOR_CONDITION, StepKind.EVALUATE, StepKind.ASSERT}


class Step(BaseModel):
    """One scripted UI action or observation."""

    model_config = ConfigDict(extra="forbid")

    kind: StepKind
    name: Optional[str] = None
    selector: Optional[str] = None
    index: Optional[int] = Field(default=None, ge=0, description="Pick the n-th match of the selector.")
    x: Optional[float] = None
    y: Optional[float] = None
    to_x: Optional[float] = None
    to_y: Optional[float] = None
    steps: int = Field(default=10, ge=1, description="Intermediate mouse moves for drags.")
    url: Optional[str] = None
    text: Optional[str] = None
    keys: Optional[str] = None
    state: Literal["attached", "detached", "visible", "hidden"] = Field(
        default="visible", description="Element state for wait_for_selector."
    )
    click_count: int = Field(default=1, ge=1)
    button: Literal["left", "middle", "right"] = "left"
    modifiers: list[str] = Field(default_factory=list)
    delta_x: float = 0
    delta_y: float = 0
    script: Optional[str] = None
    source: EvaluationSource = EvaluationSource.PAGE
    action: Optional[str] = None
    args: list[Any] = Field(default_factory=list)
    expected: Any = None
    save_as: Optional[str] = None
    path: Optional[Path] = None
    full_page: bool = True
    duration_ms: Optional[int] = Field(default=None, ge=0)
    timeout_ms: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_payload(self) -> "Step":
        kind = self.kind
        if kind in _TARGETED and not self.selector and (self.x is None or self.y is None):
            raise ValueError(f"{kind.value} step requires a selector or x/y coordinates")
        if kind == StepKind.NAVIGATE and not self.url:
            raise ValueError("navigate step requires a url")
        if kind == StepKind.WAIT_FOR_SELECTOR and not self.selector:
            raise ValueError("wait_for_selector step requires a selector")
        if kind == StepKind.TYPE and self.text is None:
            raise ValueError("type step requires text")
        if kind == StepKind.KEY_PRESS and not self.keys:
            raise ValueError("key_press step requires keys")
        if kind == StepKind.DRAG and None in (self.x, self.y, self.to_x, self.to_y):
            raise ValueError("drag step requires x, y, to_x and to_y")
        if kind in _SCRIPTED and not self.script:
            raise ValueError(f"{kind.value} step requires a script")
        if kind == StepKind.STORE_ACTION and not self.action:
            raise ValueError("store_action step requires an action")
        if kind == StepKind.SCREENSHOT and self.path is None:
            raise ValueError("screenshot step requires a path")
        if kind == StepKind.SLEEP and self.duration_ms is None:
            raise ValueError("sleep step requires duration_ms")
        return self

    @property
    def has_expectation(self) -> bool:
        return "expected" in self.model_fields_set

    def describe(self) -> str:
        if self.name:
            return self.name
        target = self.selector or self.action or self.url or self.keys
        if target is None and self.x is not None and self.y is not None:
            target = f"({self.x:g}, {self.y:g})"
        return f"{self.kind.value} {target}" if target else self.kind.value


class Scenario(BaseModel):
    """A named, declarative list of steps run in one session."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    path: str = Field(default="", description="URL path resolved against the configured base URL.")
    readiness: Optional[ReadinessSignal] = None
    store: Optional[StoreConfig] = None
    steps: list[Step] = Field(default_factory=list)
    source_file: Optional[Path] = Field(default=None, exclude=True)


class ObservationKind(str, enum.Enum):
    """What a recorded observation carries."""

    LOG = "log"
    VALUE = "value"
    ASSERTION = "assertion"
    ARTIFACT = "artifact"


class Observation(BaseModel):
    """Immutable record of a single executed step."""

    model_config = ConfigDict(frozen=True)

    step_index: int
    step_kind: StepKind
    kind: ObservationKind
    message: str
    passed: bool = True
    value: Any = None
    artifact: Optional[Path] = None
    duration_ms: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ConsoleMessage(BaseModel):
    """Message emitted by the page console or an uncaught page error."""

    model_config = ConfigDict(frozen=True)

    type: str
    text: str


class ScenarioStatus(str, enum.Enum):
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


class FailureDetail(BaseModel):
    """The first failing step of a scenario and its diagnostic."""

    step_index: Optional[int] = None
    step: Optional[str] = None
    error_type: str
    message: str
    screenshot: Optional[Path] = None


class ScenarioReport(BaseModel):
    """Outcome of running one scenario."""

    name: str
    url: str
    status: ScenarioStatus = ScenarioStatus.PASSED
    observations: list[Observation] = Field(default_factory=list)
    failure: Optional[FailureDetail] = None
    console: list[ConsoleMessage] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def record(self, observation: Observation) -> None:
        self.observations.append(observation)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds() * 1000


class SuiteReport(BaseModel):
    """Outcome of a run over several scenarios."""

    scenarios: list[ScenarioReport] = Field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for report in self.scenarios if report.status == ScenarioStatus.PASSED)

    @property
    def first_failure(self) -> Optional[ScenarioReport]:
        for report in self.scenarios:
            if report.status != ScenarioStatus.PASSED:
                return report
        return None

    @property
    def exit_code(self) -> int:
        """0 when everything passed, 2 if any harness error occurred, 1 otherwise."""

        statuses = {report.status for report in self.scenarios}
        if ScenarioStatus.ERROR in statuses:
            return 2
        if ScenarioStatus.FAILED in statuses:
            return 1
        return 0

    def write_json(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path


class EventLevel(str, enum.Enum):
    """Severity of reporter events."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class RunEvent(BaseModel):
    """Event emitted to reporters while scenarios run."""

    type: str
    message: str
    level: EventLevel = EventLevel.INFO
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
