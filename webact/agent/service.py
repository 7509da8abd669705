from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any

from dotenv import load_dotenv
from uuid_extensions import uuid7str

from webact.agent.inference import InferenceEngine
from webact.agent.retry import RetryStrategy, classify_error
from webact.agent.state_manager import AgentStateManager
from webact.agent.views import (
	ActionDescription,
	ActionOptions,
	ActResult,
	AgentConfig,
	AgentHistory,
	AgentState,
	DetailedActResult,
	ExecutionContext,
	ExtractOptions,
	ExtractResult,
	ObserveOptions,
	ObserveResult,
	ProcessTrace,
	ToolCallResult,
)
from webact.browser.driver import BrowserDriver, TabSwitcher
from webact.events.service import BubusEventNotifier, EventNotifier, notify
from webact.exceptions import AgentStateError
from webact.filesystem.file_system import AgentFileSystem
from webact.mcp.service import MCPServerRegistry
from webact.shell.service import AgentShell
from webact.skills.service import SkillRegistry
from webact.skills.tools import SkillToolTarget
from webact.skills.views import SkillContext
from webact.tools.registry import CustomToolRegistry
from webact.tools.service import AgentToolManager
from webact.utils import brief_error, compact_inline, time_execution_async

load_dotenv()

logger = logging.getLogger(__name__)

SCREENSHOT_ATTEMPTS = 2
SCREENSHOT_RETRY_DELAY = 0.2
HISTORY_IN_PROMPT = 10
NO_TEXT_CONTENT = '(no text content)'


class BasicBrowserAgent:
	"""Observe -> act -> extract control loop over a browser driver and an inference engine.

	Each step observes the page, asks the model for ranked candidate tool calls and executes
	them in order until one succeeds. Operational failures come back as failed results;
	only internal state invariant violations (AgentStateError) are raised.
	"""

	def __init__(
		self,
		driver: BrowserDriver,
		inference: InferenceEngine,
		config: AgentConfig | None = None,
		browser: TabSwitcher | None = None,
		file_system: AgentFileSystem | None = None,
		shell: AgentShell | None = None,
		skill_registry: SkillRegistry | None = None,
		mcp_registry: MCPServerRegistry | None = None,
		custom_tool_registry: CustomToolRegistry | None = None,
		event_notifier: EventNotifier | None = None,
		tool_manager: AgentToolManager | None = None,
		session_id: str | None = None,
	):
		self.id = uuid7str()
		config = config or AgentConfig.from_env()
		self.driver = driver
		self.inference = inference
		self.event_notifier = event_notifier if event_notifier is not None else BubusEventNotifier(self.id)
		self.state_manager = AgentStateManager(driver, config, session_id=session_id)

		if tool_manager is None:
			skill_target = None
			if skill_registry is not None:
				skill_context = SkillContext(session_id=self.state_manager.session_id)
				skill_target = SkillToolTarget(skill_context, skill_registry, self.event_notifier)
			tool_manager = AgentToolManager(
				driver=driver,
				browser=browser,
				file_system=file_system,
				shell=shell,
				skill_target=skill_target,
				mcp_registry=mcp_registry,
				custom_registry=custom_tool_registry,
				event_notifier=self.event_notifier,
			)
		self.tool_manager = tool_manager

		self.retry_strategy = RetryStrategy(
			max_retries=config.max_inference_retries,
			base_delay_ms=config.retry_base_delay_ms,
			max_delay_ms=config.retry_max_delay_ms,
		)

	@property
	def config(self) -> AgentConfig:
		return self.state_manager.config

	@property
	def logger(self) -> logging.Logger:
		return logging.getLogger(f'webact.agent.{self.id[-4:]}')

	@property
	def session_id(self) -> str:
		return self.state_manager.session_id

	@property
	def state_history(self) -> AgentHistory:
		return self.state_manager.state_history

	@property
	def process_trace(self) -> list[ProcessTrace]:
		return self.state_manager.process_trace

	def _emit(self, event_type: str, **payload: Any) -> None:
		notify(self.event_notifier, event_type, agentId=self.id, **payload)

	# --- run ---

	async def run(self, action: str | ActionOptions) -> AgentHistory:
		"""Act step by step until the model reports completion or max_steps is reached."""
		if isinstance(action, str):
			options = ActionOptions(action=action, multi_act=True)
		else:
			options = action.model_copy(update={'multi_act': True, 'from_resolve': False})

		self._emit('agent.onWillRun', action=options.action, maxSteps=self.config.max_steps)
		self.logger.info(f'🚀 Task: {compact_inline(options.action, 120)}')
		result: ActResult | None = None
		try:
			for step in range(1, self.config.max_steps + 1):
				result = await self.act(options)
				self.state_manager.clear_up_history(0)
				if result.is_complete:
					self.logger.info(f'✅ Task completed after {step} step(s): {compact_inline(result.message, 200)}')
					break
			else:
				self.logger.info(f'❌ Stopped after reaching max_steps={self.config.max_steps} without completion')
		finally:
			self._emit(
				'agent.onDidRun',
				action=options.action,
				steps=len(self.state_history),
				complete=bool(result and result.is_complete),
			)
		return self.state_history

	# --- act ---

	async def act(self, action: str | ActionOptions) -> ActResult:
		options = ActionOptions(action=action) if isinstance(action, str) else action
		self._emit('agent.onWillAct', action=options.action)

		try:
			context = await self.state_manager.get_or_create_active_context(options)
		except AgentStateError:
			raise
		except Exception as e:
			self.logger.error(f'❌ Failed to prepare step for {compact_inline(options.action, 80)}: {brief_error(e)}')
			result = ActResult.failed(f'Failed to prepare step: {brief_error(e)}', options.action)
			self._emit('agent.onDidAct', action=options.action, success=False)
			return result

		timeout_ms = self.config.act_timeout_ms
		try:
			result = await asyncio.wait_for(self._observe_act(options, context), timeout=timeout_ms / 1000)
		except TimeoutError:
			message = f'⏳ Action timed out after {timeout_ms}ms: {options.action}'
			self.logger.warning(message)
			self.state_manager.add_trace(
				context.agent_state,
				'actTimeout',
				items={'timeoutMs': timeout_ms, 'instruction': compact_inline(options.action, 200)},
				message=message,
			)
			self.state_manager.remove_last_if_step(context.step)
			result = ActResult.failed(message, options.action)
		except AgentStateError:
			raise
		except Exception as e:
			classified = classify_error(e)
			message = f'💥 Action failed: {type(classified).__name__}: {classified}'
			self.logger.error(f'{message} (sid={context.sid}, step={context.step})')
			self.state_manager.add_trace(context.agent_state, 'actError', message=message)
			result = ActResult.failed(message, options.action)

		self._emit('agent.onDidAct', action=options.action, success=result.success, complete=result.is_complete)
		return result

	async def _observe_act(self, options: ActionOptions, context: ExecutionContext) -> ActResult:
		try:
			action_description = await self._observe(options.action, context, draw_overlay=None, from_resolve=options.from_resolve)
		except TimeoutError:
			message = f'⏳ LLM inference timed out after {self.config.llm_inference_timeout_ms}ms'
			self.logger.warning(f'{message} (sid={context.sid}, step={context.step})')
			self.state_manager.add_trace(context.agent_state, 'inferenceTimeout', message=message)
			return ActResult.failed(message, options.action)

		if action_description.is_complete:
			return self._complete(context, action_description)

		observe_results = action_description.to_observe_results(context.agent_state)
		if not observe_results:
			message = f'⚠️ No actionable candidate for: {options.action}'
			if action_description.parse_error:
				message += f' ({action_description.parse_error})'
			self.state_manager.add_trace(context.agent_state, 'observeActNoAction', message=message)
			return ActResult.failed(message, options.action)

		results_to_try = observe_results[: self.config.max_results_to_try]
		total = len(results_to_try)
		last_error: str | None = None
		for index, chosen in enumerate(results_to_try, start=1):
			if not (chosen.method or '').strip():
				last_error = f'LLM returned no method for candidate {index}'
				self.logger.debug(last_error)
				continue

			try:
				result = await self.act_on_observation(chosen)
			except AgentStateError:
				raise
			except Exception as e:
				last_error = f'Execution failed for candidate {index}: {brief_error(e)}'
				self.logger.warning(f'⚠️ {last_error}')
				continue

			if not result.success:
				last_error = f'Candidate {index} failed: {result.message}'
				self.logger.info(f'↪️ {last_error}')
				continue

			self.state_manager.add_trace(
				context.agent_state,
				'actSuccess',
				items={'candidateIndex': index, 'candidateTotal': total},
				message=result.message,
			)
			return result

		message = f'❌ All {total} candidates failed. Last error: {last_error}'
		self.logger.warning(f'{message} (sid={context.sid}, step={context.step})')
		self.state_manager.add_trace(context.agent_state, 'actAllFailed', items={'candidateTotal': total}, message=message)
		return ActResult.failed(message, options.action)

	def _complete(self, context: ExecutionContext, action_description: ActionDescription) -> ActResult:
		self.state_manager.update_agent_state(context, description=action_description.summary, action_description=action_description)
		self.state_manager.add_trace(
			context.agent_state,
			'complete',
			items={'success': action_description.success, 'keyFindings': action_description.key_findings},
			message=action_description.summary,
		)
		self.state_manager.add_to_history(context.agent_state)
		return ActResult.complete(action_description, keep_detail=self.config.keep_act_detail)

	async def act_on_observation(self, observe: ObserveResult) -> ActResult:
		"""Execute one observed candidate in the active step. A success commits the step to the history."""
		context = self.state_manager.get_active_context()
		self._check_step_invariants(context, observe.agent_state)

		element = observe.observe_element
		tool_call = element.tool_call
		instruction = observe.action_description.instruction or context.instruction
		if tool_call is None or not tool_call.method.strip():
			return ActResult.failed('No tool call in the observed candidate', instruction)

		try:
			evaluate = await self.tool_manager.execute(tool_call)
			tool_call_result = ToolCallResult.from_evaluate(evaluate)
			exception = evaluate.exception
			if exception is None:
				description = f'✅ {tool_call.pseudo_expression} | {compact_inline(tool_call_result.message, 200)}'
				error = None
			else:
				description = f'❌ {tool_call.pseudo_expression} | {compact_inline(exception.message, 200)}'
				error = f'{exception.category.value}: {exception.error_type}: {exception.message}'

			self.state_manager.update_agent_state(context, element, tool_call_result, description, exception=error)
			self.state_manager.add_trace(
				context.agent_state,
				'toolExecOk' if evaluate.success else 'toolExecError',
				items={'domain': tool_call.domain, 'method': tool_call.method},
				message=description,
				expression=tool_call.pseudo_expression,
				tc_eval_result=tool_call_result.message,
			)
			if evaluate.success:
				self.state_manager.add_to_history(context.agent_state)
				self.logger.info(f'🦾 step {context.step}: {description}')

			detail = DetailedActResult(
				action_description=observe.action_description,
				tool_call_result=tool_call_result,
				success=evaluate.success,
				description=description,
			)
			return detail.to_act_result(keep_detail=self.config.keep_act_detail)
		except AgentStateError:
			raise
		except Exception as e:
			self.logger.warning(f'❌ {tool_call.pseudo_expression} raised {brief_error(e)}')
			self.state_manager.update_agent_state(context, element, description=f'❌ {tool_call.pseudo_expression}', exception=e)
			return ActResult.failed(f'Tool execution failed: {brief_error(e)}', instruction)

	def _check_step_invariants(self, context: ExecutionContext, agent_state: AgentState) -> None:
		if context.step != agent_state.step:
			raise AgentStateError(f'Step mismatch: context is at step {context.step}, observed state is at step {agent_state.step}')
		if context.prev_step != agent_state.prev_step:
			raise AgentStateError(
				f'Previous step mismatch at step {context.step}: context={context.prev_step}, state={agent_state.prev_step}'
			)

	# --- observe ---

	async def observe(self, options: str | ObserveOptions | None = None) -> list[ObserveResult]:
		if options is None or isinstance(options, str):
			options = ObserveOptions(instruction=options)

		try:
			context = await self.state_manager.get_or_create_observe_context(options)
			instruction = options.instruction or context.instruction
			action_description = await self._observe(instruction, context, options.draw_overlay, options.from_resolve)
		except AgentStateError:
			raise
		except Exception as e:
			self.logger.warning(f'⚠️ observe failed: {brief_error(e)}')
			return []
		return action_description.to_observe_results(context.agent_state)

	@time_execution_async('--observe')
	async def _observe(
		self,
		instruction: str,
		context: ExecutionContext,
		draw_overlay: bool | None,
		from_resolve: bool,
	) -> ActionDescription:
		self._emit('agent.onWillObserve', instruction=instruction, step=context.step)
		browser_use_state = await self.state_manager.sync_browser_use_state(context)
		draw = self.config.draw_overlay if draw_overlay is None else draw_overlay

		highlighted = False
		try:
			if draw and browser_use_state.interactive_elements:
				highlighted = True
				await self.driver.add_highlights(browser_use_state.interactive_elements)
			context.screenshot_b64 = await self._capture_screenshot(context)
			state_history = context.state_history if context.state_history is not None else self.state_history
			history = [str(state) for state in state_history.states[-HISTORY_IN_PROMPT:]]
			params = context.create_observe_params(instruction, from_resolve=from_resolve, history=history)
			action_description = await self._infer(params, context)
		finally:
			if highlighted:
				try:
					await self.driver.remove_highlights()
				except Exception as e:
					self.logger.debug(f'Failed to remove highlights: {brief_error(e)}')

		self._emit(
			'agent.onDidObserve',
			step=context.step,
			candidates=len(action_description.observe_elements),
			complete=action_description.is_complete,
		)
		return action_description

	async def _infer(self, params: Any, context: ExecutionContext) -> ActionDescription:
		timeout = self.config.llm_inference_timeout_ms / 1000

		async def attempt() -> ActionDescription:
			return await asyncio.wait_for(self.inference.observe(params, context), timeout=timeout)

		def on_retry(attempt_number: int, delay_ms: int) -> None:
			self.state_manager.add_trace(
				context.agent_state, 'inferenceRetry', items={'attempt': attempt_number, 'delayMs': delay_ms}
			)

		return await self.retry_strategy.execute(attempt, on_retry=on_retry, context='LLM inference')

	async def _capture_screenshot(self, context: ExecutionContext) -> str | None:
		for attempt in range(1, SCREENSHOT_ATTEMPTS + 1):
			try:
				return await self.driver.capture_screenshot()
			except Exception as e:
				self.logger.debug(f'📸 Screenshot attempt {attempt}/{SCREENSHOT_ATTEMPTS} failed: {brief_error(e)}')
				if attempt < SCREENSHOT_ATTEMPTS:
					await asyncio.sleep(SCREENSHOT_RETRY_DELAY)
		self.logger.warning(f'📸 No screenshot for step {context.step}, continuing without one')
		return None

	# --- extract / summarize ---

	async def extract(self, options: str | ExtractOptions, output_schema: dict[str, Any] | None = None) -> ExtractResult:
		"""Two-stage extraction: pull the data, then assess completion. Never raises for model or page errors."""
		if isinstance(options, str):
			options = ExtractOptions(instruction=options, output_schema=output_schema)
		self._emit('agent.onWillExtract', instruction=options.instruction)
		timeout = self.config.llm_inference_timeout_ms / 1000

		try:
			context = await self.state_manager.build_independent_execution_context(options.instruction, 'extract')
			text_content = await self.driver.text_content(options.selector)
			params = context.create_extract_params(options, text_content)
			extracted = await asyncio.wait_for(self.inference.extract(params), timeout=timeout)
		except AgentStateError:
			raise
		except Exception as e:
			self.logger.warning(f'⚠️ Extraction failed: {brief_error(e)}')
			result = ExtractResult(success=False, message=f'Extraction failed: {brief_error(e)}', data={})
			self._emit('agent.onDidExtract', instruction=options.instruction, success=False)
			return result

		try:
			metadata = await asyncio.wait_for(self.inference.assess_extraction(params, extracted), timeout=timeout)
		except Exception as e:
			self.logger.warning(f'⚠️ Extraction assessment failed: {brief_error(e)}')
			result = ExtractResult(success=False, message=f'Extraction assessment failed: {brief_error(e)}', data=extracted)
			self._emit('agent.onDidExtract', instruction=options.instruction, success=False)
			return result

		result = ExtractResult(success=True, message='OK', data=extracted, metadata=metadata or {})
		self._emit('agent.onDidExtract', instruction=options.instruction, success=True)
		return result

	async def summarize(self, instruction: str | None = None, selector: str | None = None) -> str:
		instruction = instruction or 'Summarize the content of the page'
		self._emit('agent.onWillSummarize', instruction=instruction, selector=selector)
		text_content = await self.driver.text_content(selector)
		if not text_content or not text_content.strip():
			text_content = NO_TEXT_CONTENT
		summary = await self.retry_strategy.execute(
			lambda: asyncio.wait_for(
				self.inference.summarize(instruction, text_content), timeout=self.config.llm_inference_timeout_ms / 1000
			),
			context='summarize',
		)
		self._emit('agent.onDidSummarize', instruction=instruction, length=len(summary))
		return summary

	# --- housekeeping ---

	def clear_history(self) -> None:
		self.state_manager.clear_history()

	async def close(self) -> None:
		stop = getattr(self.event_notifier, 'stop', None)
		if stop is None:
			return
		result = stop()
		if inspect.isawaitable(result):
			await result
