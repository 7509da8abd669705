from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

from uuid_extensions import uuid7str

from webact.agent.retry import classify_error
from webact.agent.views import (
	ActionDescription,
	ActionOptions,
	AgentConfig,
	AgentHistory,
	AgentState,
	ExecutionContext,
	ObserveElement,
	ObserveOptions,
	ProcessTrace,
	ToolCallResult,
)
from webact.browser.driver import BrowserDriver
from webact.browser.views import BrowserUseState
from webact.exceptions import AgentStateError, TimeoutAgentError

logger = logging.getLogger(__name__)

MAX_CONTEXTS = 100
CONTEXTS_TO_KEEP = 50
MAX_TRACE_SIZE = 200
TRACE_TO_KEEP = 100


class AgentStateManager:
	"""Owns the execution contexts, the step history and the process trace of one agent.

	Step numbers are assigned here: the first context is step 1 and every multi-act step
	chains a new context at `last.step + 1`. List mutations happen under a re-entrant lock.
	"""

	def __init__(self, driver: BrowserDriver, config: AgentConfig, session_id: str | None = None):
		self.driver = driver
		self.config = config
		self.session_id = session_id or uuid7str()

		self._lock = threading.RLock()
		self._contexts: list[ExecutionContext] = []
		self._active_context: ExecutionContext | None = None
		self._history = AgentHistory()
		self._process_trace: list[ProcessTrace] = []

	@property
	def state_history(self) -> AgentHistory:
		return self._history

	@property
	def process_trace(self) -> list[ProcessTrace]:
		with self._lock:
			return list(self._process_trace)

	@property
	def contexts(self) -> list[ExecutionContext]:
		with self._lock:
			return list(self._contexts)

	# --- contexts ---

	async def get_or_create_active_context(self, action: ActionOptions, event: str = 'act') -> ExecutionContext:
		if action.multi_act and action.from_resolve:
			raise AgentStateError('multi_act and from_resolve cannot both be set')
		if not self._contexts:
			context = await self.build_base_execution_context(action.action, event)
			self.set_active_context(context)
			return context

		active = self.get_active_context()
		# A committed step is never reused, the next action gets its own step
		if action.multi_act or active.agent_state.sealed:
			return await self._chain_context(action.action, event)
		return active

	async def get_or_create_observe_context(self, options: ObserveOptions, event: str = 'observe') -> ExecutionContext:
		if not self._contexts:
			context = await self.build_base_execution_context(options.instruction or '', event)
			self.set_active_context(context)
			return context
		active = self.get_active_context()
		if active.agent_state.sealed:
			return await self._chain_context(options.instruction or active.instruction, event)
		return active

	async def _chain_context(self, instruction: str, event: str) -> ExecutionContext:
		last = self._contexts[-1]
		context = await self.build_execution_context(instruction, f'{event}-{last.step + 1}', base_context=last)
		self.set_active_context(context)
		return context

	def get_active_context(self) -> ExecutionContext:
		with self._lock:
			if not self._contexts or self._active_context is None:
				raise AgentStateError('Agent not initialized, call act(action) first!')
			if self._active_context is not self._contexts[-1]:
				raise AgentStateError('The active context must be the last context in the context list')
			return self._active_context

	def set_active_context(self, context: ExecutionContext) -> None:
		with self._lock:
			if any(c is context for c in self._contexts):
				logger.warning(f'Context #{context.step} ({context.event}) is already added, re-activating it')
			else:
				self._contexts.append(context)
			self._active_context = context
			self._trim_contexts()

	async def build_base_execution_context(self, instruction: str, event: str) -> ExecutionContext:
		return await self.build_execution_context(instruction, event)

	async def build_execution_context(
		self,
		instruction: str,
		event: str,
		base_context: ExecutionContext | None = None,
	) -> ExecutionContext:
		"""New context at step 1, or chained after `base_context` inheriting its session and config."""
		browser_use_state = await self.get_browser_use_state()
		if base_context is None:
			step, prev_step, session_id, config = 1, None, self.session_id, self.config
		else:
			step, prev_step, session_id, config = base_context.step + 1, base_context.step, base_context.session_id, base_context.config

		agent_state = AgentState(step=step, instruction=instruction, prev_step=prev_step, browser_use_state=browser_use_state)
		return ExecutionContext(
			step=step,
			event=event,
			instruction=instruction,
			agent_state=agent_state,
			config=config,
			session_id=session_id,
			prev_step=prev_step,
			target_url=browser_use_state.url or None,
			state_history=self.state_history,
		)

	async def build_independent_execution_context(self, instruction: str, event: str) -> ExecutionContext:
		"""A step-1 context that is never added to the context list, used by extract()."""
		return await self.build_execution_context(instruction, event)

	# --- agent state ---

	async def get_browser_use_state(self) -> BrowserUseState:
		try:
			return await asyncio.wait_for(self.driver.get_browser_use_state(), timeout=self.config.snapshot_timeout_ms / 1000)
		except TimeoutError as e:
			raise TimeoutAgentError(f'Browser state snapshot timed out after {self.config.snapshot_timeout_ms}ms', e) from e

	async def sync_browser_use_state(self, context: ExecutionContext) -> BrowserUseState:
		browser_use_state = await self.get_browser_use_state()
		context.agent_state.browser_use_state = browser_use_state
		context.target_url = browser_use_state.url or context.target_url
		return browser_use_state

	def update_agent_state(
		self,
		context: ExecutionContext,
		observe_element: ObserveElement | None = None,
		tool_call_result: ToolCallResult | None = None,
		description: str | None = None,
		exception: BaseException | str | None = None,
		action_description: ActionDescription | None = None,
	) -> AgentState:
		"""Record what happened in the current step on its (unsealed) agent state."""
		with self._lock:
			state = context.agent_state
			if state.step != context.step:
				raise AgentStateError(f'Agent state step {state.step} does not match context step {context.step}')

			if observe_element is not None:
				state.domain = observe_element.domain
				state.method = observe_element.method
				state.screenshot_content_summary = observe_element.screenshot_content_summary
				state.current_page_content_summary = observe_element.current_page_content_summary
				state.evaluation_previous_goal = observe_element.evaluation_previous_goal
				state.next_goal = observe_element.next_goal
				state.thinking = observe_element.thinking
				state.memory = observe_element.memory
			if action_description is not None and action_description.is_complete:
				state.is_complete = True
				state.summary = action_description.summary
			if description is not None:
				state.description = description
			state.tool_call_result = tool_call_result
			if exception is None or isinstance(exception, str):
				state.exception = exception
			else:
				state.exception = _describe_error(exception)
			return state

	# --- history ---

	def add_to_history(self, state: AgentState) -> None:
		with self._lock:
			if state.sealed:
				raise AgentStateError(f'AgentState #{state.step} is already in the history')
			state.seal()
			self._history.states.append(state)
			max_size = self.config.max_history_size
			if len(self._history.states) > 2 * max_size:
				del self._history.states[:-max_size]

	def clear_history(self) -> None:
		with self._lock:
			self._history.states.clear()

	def remove_last_if_step(self, step: int) -> AgentState | None:
		"""Drop the newest history entry when it belongs to `step` or later. Used to roll back a timed out step."""
		with self._lock:
			last = self._history.last()
			if last is not None and last.step >= step:
				return self._history.states.pop()
			return None

	def clear_up_history(self, to_remove: int) -> None:
		"""Drop the `to_remove` oldest history entries and trim contexts and trace to their bounds."""
		with self._lock:
			if to_remove > 0:
				del self._history.states[: min(to_remove, len(self._history.states))]
			self._trim_contexts()
			self._trim_trace()

	def _trim_contexts(self) -> None:
		if len(self._contexts) > MAX_CONTEXTS:
			del self._contexts[: len(self._contexts) - CONTEXTS_TO_KEEP]
			if self._active_context is not None and not any(c is self._active_context for c in self._contexts):
				self._active_context = self._contexts[-1] if self._contexts else None

	def _trim_trace(self) -> None:
		if len(self._process_trace) > MAX_TRACE_SIZE:
			del self._process_trace[: len(self._process_trace) - TRACE_TO_KEEP]

	# --- trace ---

	def add_trace(
		self,
		state: AgentState | None,
		event: str,
		items: dict[str, Any] | None = None,
		message: str | None = None,
		expression: str | None = None,
		tc_eval_result: str | None = None,
	) -> ProcessTrace:
		with self._lock:
			trace = ProcessTrace(
				step=state.step if state is not None else 0,
				event=event,
				method=state.method if state is not None else None,
				is_complete=state.is_complete if state is not None else False,
				agent_state=str(state) if state is not None else None,
				expression=expression,
				tc_eval_result=tc_eval_result,
				items=items or {},
				message=message,
			)
			self._process_trace.append(trace)
			self._trim_trace()
			logger.debug(f'📝 trace #{trace.step} {event} {message or ""}'.rstrip())
			return trace


def _describe_error(error: BaseException) -> str:
	classified = classify_error(error)
	return f'{type(classified).__name__}: {classified}'
