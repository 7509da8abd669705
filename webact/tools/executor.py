from __future__ import annotations

import inspect
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from webact.tools.views import TcEvaluate, ToolCall, ToolSpec
from webact.utils import brief_error, to_snake_case

logger = logging.getLogger(__name__)


class ToolExecutor(ABC):
	"""Executes tool calls of one domain against a bound target"""

	domain: str

	@property
	@abstractmethod
	def specs(self) -> list[ToolSpec]:
		pass

	@abstractmethod
	async def call_function_on(self, tool_call: ToolCall, target: Any) -> TcEvaluate:
		"""Execute the call. Must not raise: failures come back as TcEvaluate.exception."""
		pass

	def help(self, method: str | None = None) -> str:
		if method is None:
			return '\n'.join(f'{spec.expression}\n\t{spec.description}' for spec in self.specs)
		spec = next((spec for spec in self.specs if spec.method == method), None)
		if spec is None:
			return f'No method {method!r} in domain {self.domain!r}. Available: {", ".join(s.method for s in self.specs)}'
		return f'{spec.description}\n{spec.expression}'


class AbstractToolExecutor(ToolExecutor):
	"""Table-driven executor: validates arguments against ToolSpecs, coerces them, then calls
	the matching snake_case attribute on the target."""

	def __init__(self, domain: str | None = None, specs: list[ToolSpec] | None = None):
		if domain is not None:
			self.domain = domain
		self._specs: dict[str, ToolSpec] = {}
		for spec in specs or self.default_specs():
			self._specs[spec.method] = spec

	def default_specs(self) -> list[ToolSpec]:
		return []

	@property
	def specs(self) -> list[ToolSpec]:
		return list(self._specs.values())

	def get_spec(self, method: str) -> ToolSpec:
		spec = self._specs.get(method)
		if spec is None:
			raise ValueError(f"Unknown method '{method}' for domain '{self.domain}'. Available: {', '.join(self._specs)}")
		return spec

	async def call_function_on(self, tool_call: ToolCall, target: Any) -> TcEvaluate:
		expression = tool_call.pseudo_expression
		try:
			value = await self.execute(tool_call, target)
			return TcEvaluate.of(value, expression)
		except Exception as e:
			logger.warning(f'🔧 {expression} failed: {brief_error(e)}')
			return TcEvaluate.failure(expression, e, help=self.help(tool_call.method))

	async def execute(self, tool_call: ToolCall, target: Any) -> Any:
		spec = self.get_spec(tool_call.method)
		arguments = self.validate_args(spec, tool_call.arguments)
		return await self.invoke(spec, arguments, target)

	async def invoke(self, spec: ToolSpec, arguments: dict[str, Any], target: Any) -> Any:
		if target is None:
			raise ValueError(f'No target bound for domain {self.domain!r}')
		fn = getattr(target, spec.target_attribute, None)
		if fn is None or not callable(fn):
			raise ValueError(f'{type(target).__name__} does not support {spec.domain}.{spec.method}')
		result = fn(**{to_snake_case(name): value for name, value in arguments.items()})
		if inspect.isawaitable(result):
			result = await result
		return result

	def validate_args(self, spec: ToolSpec, arguments: dict[str, Any]) -> dict[str, Any]:
		"""Reject missing and extraneous names, fill defaults, coerce declared types."""
		function_name = f'{spec.domain}.{spec.method}'
		for name in spec.required_arguments:
			if name not in arguments or arguments[name] is None:
				raise ValueError(f"Missing required parameter '{name}' for {function_name}")
		allowed = spec.allowed_arguments
		for name in arguments:
			if name not in allowed:
				raise ValueError(f"Extraneous parameter '{name}' for {function_name}. Allowed={allowed}")

		validated: dict[str, Any] = {}
		for arg in spec.arguments:
			if arg.name in arguments and arguments[arg.name] is not None:
				validated[arg.name] = self.coerce(arg.type, arguments[arg.name], arg.name)
			else:
				validated[arg.name] = arg.default
		return validated

	def coerce(self, type_name: str, value: Any, name: str) -> Any:
		match type_name:
			case 'str':
				return param_string(value, name)
			case 'int':
				return param_int(value, name)
			case 'float':
				return param_float(value, name)
			case 'bool':
				return param_bool(value, name)
			case 'list[str]':
				return param_string_list(value, name)
			case 'dict':
				return param_dict(value, name)
			case _:
				return value


def param_string(value: Any, name: str) -> str:
	if isinstance(value, str):
		return value
	if isinstance(value, dict | list):
		return json.dumps(value)
	return str(value)


def param_int(value: Any, name: str) -> int:
	if isinstance(value, bool):
		raise TypeError(f"Parameter '{name}' must be an integer, got bool")
	if isinstance(value, int):
		return value
	if isinstance(value, float) and value.is_integer():
		return int(value)
	if isinstance(value, str):
		try:
			return int(value.strip())
		except ValueError:
			pass
	raise TypeError(f"Parameter '{name}' must be an integer, got {value!r}")


def param_float(value: Any, name: str) -> float:
	if isinstance(value, bool):
		raise TypeError(f"Parameter '{name}' must be a number, got bool")
	if isinstance(value, int | float):
		return float(value)
	if isinstance(value, str):
		try:
			return float(value.strip())
		except ValueError:
			pass
	raise TypeError(f"Parameter '{name}' must be a number, got {value!r}")


def param_bool(value: Any, name: str) -> bool:
	if isinstance(value, bool):
		return value
	if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
		return value.strip().lower() == 'true'
	if isinstance(value, int) and value in (0, 1):
		return bool(value)
	raise TypeError(f"Parameter '{name}' must be a boolean, got {value!r}")


def param_string_list(value: Any, name: str) -> list[str]:
	if isinstance(value, str):
		stripped = value.strip()
		if stripped.startswith('['):
			try:
				value = json.loads(stripped)
			except json.JSONDecodeError as e:
				raise TypeError(f"Parameter '{name}' is not a valid JSON list: {e}") from e
		else:
			return [part.strip() for part in stripped.split(',') if part.strip()]
	if isinstance(value, list | tuple):
		return [str(item) for item in value]
	raise TypeError(f"Parameter '{name}' must be a list of strings, got {value!r}")


def param_dict(value: Any, name: str) -> dict[str, Any]:
	if isinstance(value, dict):
		return value
	if isinstance(value, str):
		try:
			parsed = json.loads(value) if value.strip() else {}
		except json.JSONDecodeError as e:
			raise TypeError(f"Parameter '{name}' is not a valid JSON object: {e}") from e
		if isinstance(parsed, dict):
			return parsed
	raise TypeError(f"Parameter '{name}' must be an object, got {value!r}")
