"""Turn raw model output into an ActionDescription.

Models wrap JSON in code fences, prepend prose, send arguments as a list of
name/value pairs or as a plain object, and sometimes forget the domain. The parser
accepts all of that and never raises: unusable output becomes an ActionDescription
with no candidates and `parse_error` set, which the control loop reports as a step
without actions.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from webact.agent.views import ActionDescription, ObserveElement
from webact.tools.views import ToolCall

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = 'driver'

_FENCE = re.compile(r'```(?:json|JSON)?\s*(.*?)```', re.DOTALL)


class _ResponseModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


class ObserveResponseElement(_ResponseModel):
	locator: str | None = None
	description: str | None = None
	domain: str | None = None
	method: str | None = None
	arguments: dict[str, Any] = Field(default_factory=dict)
	screenshot_content_summary: str | None = None
	current_page_content_summary: str | None = None
	evaluation_previous_goal: str | None = None
	next_goal: str | None = None
	memory: str | None = None
	thinking: str | None = None

	@field_validator('arguments', mode='before')
	@classmethod
	def _normalize_arguments(cls, value: Any) -> dict[str, Any]:
		if value is None:
			return {}
		if isinstance(value, dict):
			return value
		if isinstance(value, list):
			# [{"name": "selector", "value": "#q"}, ...]
			return {item['name']: item.get('value') for item in value if isinstance(item, dict) and item.get('name')}
		raise ValueError(f'arguments must be an object or a list of name/value pairs, got {type(value).__name__}')

	@field_validator('locator', mode='before')
	@classmethod
	def _unwrap_locator(cls, value: Any) -> Any:
		if isinstance(value, str):
			stripped = value.strip()
			if stripped.startswith('[') and stripped.endswith(']'):
				return stripped[1:-1].strip()
			return stripped
		return value

	def to_observe_element(self) -> ObserveElement:
		tool_call = None
		method = (self.method or '').strip()
		if method:
			domain = (self.domain or '').strip() or DEFAULT_DOMAIN
			# "driver.click" style method names carry their own domain
			if '.' in method and not self.domain:
				domain, method = method.rsplit('.', 1)
			tool_call = ToolCall(domain=domain, method=method, arguments=self.arguments)
		return ObserveElement(
			locator=self.locator,
			description=self.description,
			tool_call=tool_call,
			screenshot_content_summary=self.screenshot_content_summary,
			current_page_content_summary=self.current_page_content_summary,
			evaluation_previous_goal=self.evaluation_previous_goal,
			next_goal=self.next_goal,
			thinking=self.thinking,
			memory=self.memory,
		)


class ObserveResponseElements(_ResponseModel):
	elements: list[ObserveResponseElement] = Field(default_factory=list)


class ObserveResponseComplete(_ResponseModel):
	task_complete: bool
	success: bool | None = None
	error_cause: str | None = None
	summary: str | None = None
	key_findings: list[str] = Field(default_factory=list)
	next_suggestions: list[str] = Field(default_factory=list)


def extract_json_text(text: str) -> str | None:
	"""Best-effort JSON payload from model text: fenced block first, then the outermost braces."""
	match = _FENCE.search(text)
	if match:
		return match.group(1).strip()
	stripped = text.strip()
	if stripped.startswith(('{', '[')):
		return stripped
	start, end = stripped.find('{'), stripped.rfind('}')
	if start != -1 and end > start:
		return stripped[start : end + 1]
	return None


def parse_model_response(instruction: str, text: str | None) -> ActionDescription:
	if not text or not text.strip():
		return ActionDescription(instruction=instruction, model_response=text, parse_error='empty model response')

	payload_text = extract_json_text(text)
	if payload_text is None:
		return ActionDescription(instruction=instruction, model_response=text, parse_error='no JSON object in model response')

	try:
		payload = json.loads(payload_text)
	except json.JSONDecodeError as e:
		logger.debug(f'Unparseable model response: {e}')
		return ActionDescription(instruction=instruction, model_response=text, parse_error=f'invalid JSON: {e}')

	try:
		return _to_action_description(instruction, payload, text)
	except (ValidationError, ValueError, TypeError) as e:
		logger.debug(f'Model response does not match any known shape: {e}')
		return ActionDescription(instruction=instruction, model_response=text, parse_error=f'unexpected response shape: {e}')


def _to_action_description(instruction: str, payload: Any, raw: str) -> ActionDescription:
	if isinstance(payload, list):
		payload = {'elements': payload}
	if not isinstance(payload, dict):
		raise ValueError(f'expected a JSON object, got {type(payload).__name__}')

	if payload.get('taskComplete') is True or payload.get('task_complete') is True:
		complete = ObserveResponseComplete.model_validate(payload)
		return ActionDescription(
			instruction=instruction,
			is_complete=True,
			success=complete.success,
			error_cause=complete.error_cause,
			summary=complete.summary,
			key_findings=complete.key_findings,
			next_suggestions=complete.next_suggestions,
			model_response=raw,
		)

	if 'elements' not in payload and 'toolCalls' in payload:
		payload = {**payload, 'elements': payload['toolCalls']}
	if 'elements' not in payload and ('method' in payload or 'locator' in payload):
		payload = {'elements': [payload]}

	elements = ObserveResponseElements.model_validate(payload).elements
	return ActionDescription(
		instruction=instruction,
		observe_elements=[element.to_observe_element() for element in elements],
		model_response=raw,
	)
