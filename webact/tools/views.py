from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from webact.agent.retry import classify_error
from webact.exceptions import AgentError, ErrorCategory
from webact.utils import to_snake_case


class ToolArg(BaseModel):
	"""A single named argument of a tool method"""

	model_config = ConfigDict(frozen=True)

	name: str
	type: str = 'str'
	required: bool = True
	default: Any = None

	def render(self) -> str:
		if self.required:
			return f'{self.name}: {self.type}'
		return f'{self.name}: {self.type} = {json.dumps(self.default)}'


class ToolSpec(BaseModel):
	"""Description of one method exposed by a tool domain"""

	model_config = ConfigDict(frozen=True)

	domain: str
	method: str
	arguments: list[ToolArg] = Field(default_factory=list)
	return_type: str = 'str'
	description: str = ''
	# Attribute name on the bound target, when it differs from the method name
	attribute: str | None = None

	@property
	def target_attribute(self) -> str:
		return self.attribute or to_snake_case(self.method)

	@property
	def required_arguments(self) -> list[str]:
		return [arg.name for arg in self.arguments if arg.required]

	@property
	def allowed_arguments(self) -> list[str]:
		return [arg.name for arg in self.arguments]

	@property
	def expression(self) -> str:
		args = ', '.join(arg.render() for arg in self.arguments)
		return f'{self.domain}.{self.method}({args}) -> {self.return_type}'


class ToolCall(BaseModel):
	"""A structured call proposed by the model: domain + method + named arguments"""

	domain: str
	method: str
	arguments: dict[str, Any] = Field(default_factory=dict)

	@property
	def pseudo_expression(self) -> str:
		args = ', '.join(f'{name}={json.dumps(value, default=str)}' for name, value in self.arguments.items())
		return f'{self.domain}.{self.method}({args})'

	def __str__(self) -> str:
		return self.pseudo_expression


class TcException(BaseModel):
	"""Serialisable, classified error captured during a tool call"""

	expression: str
	category: ErrorCategory
	error_type: str
	message: str
	help: str | None = None

	@classmethod
	def from_exception(cls, expression: str, error: BaseException, help: str | None = None) -> TcException:
		classified = classify_error(error)
		error_type = type(error).__name__
		if isinstance(error, AgentError) and error.cause is not None:
			error_type = type(error.cause).__name__
		return cls(
			expression=expression,
			category=classified.category,
			error_type=error_type,
			message=str(error) or error_type,
			help=help,
		)


class TcEvaluate(BaseModel):
	"""Outcome of a tool call: a value, or a classified exception. Never both."""

	model_config = ConfigDict(arbitrary_types_allowed=True)

	value: Any = None
	class_name: str | None = None
	expression: str | None = None
	exception: TcException | None = None
	description: str | None = None

	@property
	def success(self) -> bool:
		return self.exception is None

	@classmethod
	def of(cls, value: Any, expression: str | None = None) -> TcEvaluate:
		class_name = type(value).__name__ if value is not None else None
		return cls(value=value, class_name=class_name, expression=expression)

	@classmethod
	def failure(cls, expression: str, error: BaseException, help: str | None = None) -> TcEvaluate:
		return cls(expression=expression, exception=TcException.from_exception(expression, error, help))

	def render(self) -> str:
		if self.exception is not None:
			return f'{self.exception.error_type}: {self.exception.message}'
		if self.value is None:
			return 'null'
		if isinstance(self.value, BaseModel):
			return self.value.model_dump_json()
		if isinstance(self.value, dict | list):
			return json.dumps(self.value, default=str)
		return str(self.value)
