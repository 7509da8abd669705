"""
Shared fakes for the CI tests: a recording browser driver, a scripted inference engine
and recording event notifiers. No real browser or model is involved.
"""

import asyncio
from typing import Any

import pytest

from webact.agent.service import BasicBrowserAgent
from webact.agent.views import ActionDescription, AgentConfig, ExecutionContext, ExtractParams, ObserveElement, ObserveParams
from webact.browser.views import BrowserUseState, InteractiveElement, TabState
from webact.tools.views import ToolCall


class MockDriver:
	"""Records every page action and highlight call"""

	def __init__(self, url: str = 'https://example.com/', text: str | None = 'Example Domain\nThis domain is for examples.'):
		self.url = url
		self.text = text
		self.calls: list[tuple[str, dict[str, Any]]] = []
		self.highlights_added = 0
		self.highlights_removed = 0
		self.screenshot_failures = 0
		self.elements = [
			InteractiveElement(locator='0,1', tag_name='input', attributes={'name': 'q'}),
			InteractiveElement(locator='0,2', tag_name='button', text='Search'),
		]

	async def get_browser_use_state(self) -> BrowserUseState:
		return BrowserUseState(
			url=self.url,
			title='Example',
			tabs=[TabState(tab_id='1', url=self.url, active=True)],
			interactive_elements=self.elements,
		)

	async def capture_screenshot(self) -> str | None:
		if self.screenshot_failures > 0:
			self.screenshot_failures -= 1
			raise RuntimeError('screenshot failed')
		return 'iVBORw0KGgo='

	async def text_content(self, selector: str | None = None) -> str | None:
		self.calls.append(('text_content', {'selector': selector}))
		return self.text

	async def add_highlights(self, elements: list[InteractiveElement]) -> None:
		self.highlights_added += 1

	async def remove_highlights(self) -> None:
		self.highlights_removed += 1

	async def navigate_to(self, url: str) -> None:
		self.calls.append(('navigate_to', {'url': url}))
		self.url = url

	async def click(self, selector: str, count: int = 1) -> None:
		self.calls.append(('click', {'selector': selector, 'count': count}))
		if selector.startswith('missing'):
			raise ValueError(f'No element matches selector {selector}')

	async def fill(self, selector: str, text: str) -> None:
		self.calls.append(('fill', {'selector': selector, 'text': text}))

	async def press(self, selector: str, key: str) -> None:
		self.calls.append(('press', {'selector': selector, 'key': key}))

	async def wait_for_selector(self, selector: str, timeout_millis: int = 3000) -> int:
		self.calls.append(('wait_for_selector', {'selector': selector, 'timeout_millis': timeout_millis}))
		await asyncio.sleep(3600)
		return 0

	def current_url(self) -> str:
		return self.url

	def method_names(self) -> list[str]:
		return [name for name, _ in self.calls if name != 'text_content']


class ScriptedInference:
	"""Returns queued ActionDescriptions from observe(); extract/summarize are configurable"""

	def __init__(self, responses: list[ActionDescription | BaseException] | None = None):
		self.responses = list(responses or [])
		self.observe_calls: list[ObserveParams] = []
		self.extract_result: dict[str, Any] | BaseException = {'title': 'Example Domain'}
		self.assessment: dict[str, Any] | BaseException = {'completed': True, 'progress': 'done'}
		self.summaries: list[tuple[str, str]] = []
		self.observe_delay = 0.0

	async def observe(self, params: ObserveParams, context: ExecutionContext) -> ActionDescription:
		self.observe_calls.append(params)
		if self.observe_delay:
			await asyncio.sleep(self.observe_delay)
		if not self.responses:
			return complete_description(params.instruction, 'nothing left to do')
		response = self.responses.pop(0)
		if isinstance(response, BaseException):
			raise response
		return response

	async def extract(self, params: ExtractParams) -> dict[str, Any]:
		if isinstance(self.extract_result, BaseException):
			raise self.extract_result
		return self.extract_result

	async def assess_extraction(self, params: ExtractParams, extracted: dict[str, Any]) -> dict[str, Any]:
		if isinstance(self.assessment, BaseException):
			raise self.assessment
		return self.assessment

	async def summarize(self, instruction: str, text_content: str) -> str:
		self.summaries.append((instruction, text_content))
		return f'summary of {len(text_content)} chars'


class RecordingNotifier:
	def __init__(self):
		self.events: list[tuple[str, dict[str, Any]]] = []

	def emit(self, event_type: str, payload: dict[str, Any] | None = None) -> None:
		self.events.append((event_type, payload or {}))

	def names(self, prefix: str = '') -> list[str]:
		return [name for name, _ in self.events if name.startswith(prefix)]


class RaisingNotifier:
	def emit(self, event_type: str, payload: dict[str, Any] | None = None) -> None:
		raise RuntimeError('listener exploded')


def element(method: str, domain: str | None = 'driver', locator: str | None = '0,1', **arguments: Any) -> ObserveElement:
	tool_call = ToolCall(domain=domain, method=method, arguments=arguments) if method else None
	return ObserveElement(locator=locator, description=f'{method} on {locator}', tool_call=tool_call)


def candidates(instruction: str, *elements: ObserveElement) -> ActionDescription:
	return ActionDescription(instruction=instruction, observe_elements=list(elements))


def complete_description(instruction: str, summary: str = 'done') -> ActionDescription:
	return ActionDescription(instruction=instruction, is_complete=True, success=True, summary=summary)


def fast_config(**overrides: Any) -> AgentConfig:
	values: dict[str, Any] = {
		'max_steps': 10,
		'act_timeout_ms': 5_000,
		'llm_inference_timeout_ms': 2_000,
		'max_inference_retries': 0,
		'retry_base_delay_ms': 1,
		'retry_max_delay_ms': 5,
		'snapshot_timeout_ms': 1_000,
	}
	values.update(overrides)
	return AgentConfig(**values)


@pytest.fixture
def driver():
	return MockDriver()


@pytest.fixture
def notifier():
	return RecordingNotifier()


@pytest.fixture
def make_agent(driver, notifier):
	"""Build an agent over the mock driver with scripted inference responses."""

	def _make(responses=None, **kwargs):
		config = kwargs.pop('config', None) or fast_config()
		inference = kwargs.pop('inference', None) or ScriptedInference(responses)
		return BasicBrowserAgent(
			driver=kwargs.pop('driver', driver),
			inference=inference,
			config=config,
			event_notifier=kwargs.pop('event_notifier', notifier),
			**kwargs,
		)

	return _make
