from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator
from uuid_extensions import uuid7str

from webact.browser.views import BrowserUseState
from webact.config import CONFIG
from webact.exceptions import AgentStateError
from webact.tools.views import TcEvaluate, ToolCall

logger = logging.getLogger(__name__)


class AgentConfig(BaseModel):
	"""Configuration of the control loop. Invalid values fail at construction."""

	model_config = ConfigDict(frozen=True)

	max_steps: int = Field(default=100, ge=1)
	max_results_to_try: int = Field(default=3, ge=1)
	act_timeout_ms: int = Field(default=180_000, gt=0)
	llm_inference_timeout_ms: int = Field(default=60_000, gt=0)
	max_history_size: int = Field(default=100, ge=1)
	max_inference_retries: int = Field(default=2, ge=0)
	retry_base_delay_ms: int = Field(default=1000, gt=0)
	retry_max_delay_ms: int = Field(default=10_000, gt=0)
	snapshot_timeout_ms: int = Field(default=30_000, gt=0)
	draw_overlay: bool = True
	keep_act_detail: bool = False  # Attach DetailedActResult to every ActResult

	@model_validator(mode='after')
	def _check_delays(self) -> AgentConfig:
		if self.retry_max_delay_ms < self.retry_base_delay_ms:
			raise ValueError('retry_max_delay_ms must be >= retry_base_delay_ms')
		return self

	@classmethod
	def from_env(cls, **overrides: Any) -> AgentConfig:
		values: dict[str, Any] = {
			'max_steps': CONFIG.WEBACT_MAX_STEPS,
			'max_results_to_try': CONFIG.WEBACT_MAX_RESULTS_TO_TRY,
			'act_timeout_ms': CONFIG.WEBACT_ACT_TIMEOUT_MS,
			'llm_inference_timeout_ms': CONFIG.WEBACT_LLM_INFERENCE_TIMEOUT_MS,
			'max_history_size': CONFIG.WEBACT_MAX_HISTORY_SIZE,
		}
		values.update(overrides)
		return cls(**values)


class ActionOptions(BaseModel):
	"""A user instruction for one act() call"""

	action: str
	multi_act: bool = False
	from_resolve: bool = False

	@model_validator(mode='after')
	def _check_flags(self) -> ActionOptions:
		if self.multi_act and self.from_resolve:
			raise ValueError('multi_act and from_resolve cannot both be set')
		return self


class ObserveOptions(BaseModel):
	instruction: str | None = None
	draw_overlay: bool | None = None
	from_resolve: bool = False


class ExtractOptions(BaseModel):
	instruction: str
	output_schema: dict[str, Any] | None = None
	selector: str | None = None


class ToolCallResult(BaseModel):
	"""Result of dispatching one tool call"""

	success: bool
	evaluate: TcEvaluate | None = None
	message: str | None = None
	expression: str | None = None

	@classmethod
	def from_evaluate(cls, evaluate: TcEvaluate) -> ToolCallResult:
		return cls(
			success=evaluate.success,
			evaluate=evaluate,
			message=evaluate.render(),
			expression=evaluate.expression,
		)


class ObserveElement(BaseModel):
	"""One candidate action proposed by the model"""

	locator: str | None = None
	description: str | None = None
	tool_call: ToolCall | None = None
	screenshot_content_summary: str | None = None
	current_page_content_summary: str | None = None
	evaluation_previous_goal: str | None = None
	next_goal: str | None = None
	thinking: str | None = None
	memory: str | None = None

	@property
	def domain(self) -> str | None:
		return self.tool_call.domain if self.tool_call else None

	@property
	def method(self) -> str | None:
		return self.tool_call.method if self.tool_call else None

	@property
	def pseudo_expression(self) -> str | None:
		return self.tool_call.pseudo_expression if self.tool_call else None


class ActionDescription(BaseModel):
	"""The model's answer for one step: ranked candidates, or a completion"""

	instruction: str = ''
	observe_elements: list[ObserveElement] = Field(default_factory=list)
	is_complete: bool = False
	success: bool | None = None
	error_cause: str | None = None
	summary: str | None = None
	key_findings: list[str] = Field(default_factory=list)
	next_suggestions: list[str] = Field(default_factory=list)
	model_response: str | None = None
	parse_error: str | None = None

	@property
	def observe_element(self) -> ObserveElement | None:
		return self.observe_elements[0] if self.observe_elements else None

	@property
	def tool_call(self) -> ToolCall | None:
		element = self.observe_element
		return element.tool_call if element else None

	def with_element(self, element: ObserveElement) -> ActionDescription:
		"""The same answer narrowed to a single candidate."""
		return self.model_copy(update={'observe_elements': [element]})

	def to_observe_results(self, agent_state: AgentState) -> list[ObserveResult]:
		return [
			ObserveResult(agent_state=agent_state, observe_element=element, action_description=self.with_element(element))
			for element in self.observe_elements
		]


class ObserveResult(BaseModel):
	"""A candidate bound to the step state it was observed in"""

	model_config = ConfigDict(arbitrary_types_allowed=True)

	agent_state: AgentState
	observe_element: ObserveElement
	action_description: ActionDescription

	@property
	def locator(self) -> str | None:
		return self.observe_element.locator

	@property
	def domain(self) -> str | None:
		return self.observe_element.domain

	@property
	def method(self) -> str | None:
		return self.observe_element.method

	@property
	def description(self) -> str | None:
		return self.observe_element.description


class AgentState(BaseModel):
	"""The agent's view of one step.

	Mutable while the step runs; sealed once appended to the history, after which any
	assignment raises AgentStateError.
	"""

	model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=False)

	step: int
	instruction: str
	id: str = Field(default_factory=uuid7str)
	prev_step: int | None = None
	domain: str | None = None
	method: str | None = None
	description: str | None = None
	tool_call_result: ToolCallResult | None = None
	exception: str | None = None
	is_complete: bool = False
	summary: str | None = None
	screenshot_content_summary: str | None = None
	current_page_content_summary: str | None = None
	evaluation_previous_goal: str | None = None
	next_goal: str | None = None
	thinking: str | None = None
	memory: str | None = None
	browser_use_state: BrowserUseState | None = None
	timestamp: float = Field(default_factory=time.time)

	_sealed: bool = PrivateAttr(default=False)

	def __setattr__(self, name: str, value: Any) -> None:
		if not name.startswith('_') and getattr(self, '_sealed', False):
			raise AgentStateError(f'AgentState #{self.step} is part of the history and cannot be modified (field {name!r})')
		super().__setattr__(name, value)

	def seal(self) -> None:
		self._sealed = True

	@property
	def sealed(self) -> bool:
		return self._sealed

	def __str__(self) -> str:
		action = f'{self.domain}.{self.method}' if self.method else '-'
		outcome = 'complete' if self.is_complete else ('error' if self.exception else 'ok')
		return f'#{self.step} {action} [{outcome}] {self.description or self.instruction}'


class AgentHistory(BaseModel):
	"""Completed step states, oldest first"""

	model_config = ConfigDict(arbitrary_types_allowed=True)

	states: list[AgentState] = Field(default_factory=list)

	def __len__(self) -> int:
		return len(self.states)

	def __iter__(self):  # type: ignore[override]
		return iter(self.states)

	def __getitem__(self, index: int) -> AgentState:
		return self.states[index]

	def last(self) -> AgentState | None:
		return self.states[-1] if self.states else None

	def state_at(self, step: int | None) -> AgentState | None:
		if step is None:
			return None
		for state in reversed(self.states):
			if state.step == step:
				return state
		return None

	def previous_of(self, state: AgentState) -> AgentState | None:
		return self.state_at(state.prev_step)

	def is_done(self) -> bool:
		last = self.last()
		return last is not None and last.is_complete

	def steps(self) -> list[int]:
		return [state.step for state in self.states]

	def final_summary(self) -> str | None:
		last = self.last()
		return last.summary if last is not None and last.is_complete else None

	def errors(self) -> list[str | None]:
		return [state.exception for state in self.states]


class ProcessTrace(BaseModel):
	"""One entry of the diagnostic trace"""

	step: int
	event: str
	method: str | None = None
	is_complete: bool = False
	agent_state: str | None = None
	expression: str | None = None
	tc_eval_result: str | None = None
	items: dict[str, Any] = Field(default_factory=dict)
	message: str | None = None
	timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

	def __str__(self) -> str:
		return f'{self.timestamp.isoformat()} #{self.step} {self.event} {self.message or ""}'.rstrip()


class DetailedActResult(BaseModel):
	"""Everything known about one executed action. Retained only when keep_act_detail is set."""

	action_description: ActionDescription
	tool_call_result: ToolCallResult | None = None
	success: bool
	description: str | None = None

	def to_act_result(self, keep_detail: bool = False) -> ActResult:
		element = self.action_description.observe_element
		return ActResult(
			success=self.success,
			message=self.description or '',
			action=self.action_description.instruction,
			expression=element.pseudo_expression if element else None,
			tc_eval_value=self.tool_call_result.message if self.tool_call_result else None,
			detail=self if keep_detail else None,
		)


class ActResult(BaseModel):
	"""Outcome of one act() call"""

	success: bool
	message: str = ''
	action: str | None = None
	is_complete: bool = False
	expression: str | None = None
	tc_eval_value: str | None = None
	detail: DetailedActResult | None = None

	@classmethod
	def failed(cls, message: str, action: str | None = None) -> ActResult:
		return cls(success=False, message=message, action=action)

	@classmethod
	def complete(cls, action_description: ActionDescription, keep_detail: bool = False) -> ActResult:
		detail = None
		if keep_detail:
			detail = DetailedActResult(action_description=action_description, success=True, description=action_description.summary)
		return cls(
			success=True,
			message=action_description.summary or 'completed',
			action=action_description.instruction,
			is_complete=True,
			detail=detail,
		)

	def __str__(self) -> str:
		status = 'success' if self.success else 'failed'
		return f'[{status}] {self.message}'


class ExtractResult(BaseModel):
	success: bool
	message: str = ''
	data: dict[str, Any] = Field(default_factory=dict)
	metadata: dict[str, Any] = Field(default_factory=dict)

	@property
	def is_complete(self) -> bool:
		return bool(self.metadata.get('completed'))


@dataclass
class ObserveParams:
	"""Everything the inference collaborator needs to propose candidates"""

	context: ExecutionContext
	instruction: str
	screenshot_b64: str | None = None
	browser_use_state: BrowserUseState | None = None
	from_resolve: bool = False
	history: list[str] = field(default_factory=list)


@dataclass
class ExtractParams:
	instruction: str
	output_schema: dict[str, Any] | None = None
	text_content: str | None = None
	browser_use_state: BrowserUseState | None = None
	screenshot_b64: str | None = None


@dataclass
class ExecutionContext:
	"""Per-step working context. The agent state is owned by the context until it is sealed into history."""

	step: int
	event: str
	instruction: str
	agent_state: AgentState
	config: AgentConfig
	session_id: str
	prev_step: int | None = None
	uuid: str = field(default_factory=uuid7str)
	screenshot_b64: str | None = None
	step_start_time: float = field(default_factory=time.time)
	target_url: str | None = None
	state_history: AgentHistory | None = field(default=None, repr=False)

	def __post_init__(self) -> None:
		if self.agent_state.step != self.step:
			raise AgentStateError(f'Context step {self.step} does not match agent state step {self.agent_state.step}')

	@property
	def sid(self) -> str:
		return self.session_id[-8:]

	def create_observe_params(self, instruction: str, from_resolve: bool = False, history: list[str] | None = None) -> ObserveParams:
		return ObserveParams(
			context=self,
			instruction=instruction,
			screenshot_b64=self.screenshot_b64,
			browser_use_state=self.agent_state.browser_use_state,
			from_resolve=from_resolve,
			history=history or [],
		)

	def create_extract_params(self, options: ExtractOptions, text_content: str | None = None) -> ExtractParams:
		return ExtractParams(
			instruction=options.instruction,
			output_schema=options.output_schema,
			text_content=text_content,
			browser_use_state=self.agent_state.browser_use_state,
			screenshot_b64=self.screenshot_b64,
		)


ObserveResult.model_rebuild()
