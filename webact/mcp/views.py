from typing import Any

from pydantic import BaseModel, Field

_JSON_TYPE_NAMES = {
	'string': 'str',
	'integer': 'int',
	'number': 'float',
	'boolean': 'bool',
	'object': 'dict',
	'array': 'list',
}


class MCPTool(BaseModel):
	"""A tool advertised by an MCP server"""

	name: str
	description: str = ''
	input_schema: dict[str, Any] = Field(default_factory=dict)

	def argument_types(self) -> dict[str, str]:
		properties = self.input_schema.get('properties') or {}
		return {name: _JSON_TYPE_NAMES.get((prop or {}).get('type', ''), 'any') for name, prop in properties.items()}

	@property
	def required_arguments(self) -> list[str]:
		return list(self.input_schema.get('required') or [])


class MCPContent(BaseModel):
	type: str = 'text'
	text: str | None = None
	data: str | None = None
	mime_type: str | None = None


class MCPCallResult(BaseModel):
	"""Result of tools/call"""

	content: list[MCPContent] = Field(default_factory=list)
	is_error: bool = False

	def text(self) -> str | None:
		texts = [item.text for item in self.content if item.type == 'text' and item.text is not None]
		if not texts:
			return None
		return '\n'.join(texts)
