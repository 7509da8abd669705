from __future__ import annotations

import json
import logging
import time
from typing import Any, Protocol, runtime_checkable

from webact.events.service import EventNotifier, notify
from webact.mcp.views import MCPCallResult, MCPTool
from webact.tools.executor import ToolExecutor
from webact.tools.views import TcEvaluate, ToolArg, ToolCall, ToolSpec
from webact.utils import brief_error

logger = logging.getLogger(__name__)


@runtime_checkable
class MCPClient(Protocol):
	"""Connection to a single MCP server"""

	server_name: str

	def is_connected(self) -> bool: ...

	@property
	def available_tools(self) -> list[MCPTool]: ...

	async def call_tool(self, name: str, arguments: dict[str, Any]) -> MCPCallResult: ...


class MCPServerRegistry:
	"""MCP clients of one agent, keyed by server name"""

	def __init__(self, clients: list[MCPClient] | None = None):
		self._clients: dict[str, MCPClient] = {}
		for client in clients or []:
			self.register(client)

	def register(self, client: MCPClient) -> None:
		if client.server_name in self._clients:
			raise ValueError(f"MCP server '{client.server_name}' is already registered")
		self._clients[client.server_name] = client

	def unregister(self, server_name: str) -> MCPClient | None:
		return self._clients.pop(server_name, None)

	def get(self, server_name: str) -> MCPClient | None:
		return self._clients.get(server_name)

	@property
	def server_names(self) -> list[str]:
		return list(self._clients)

	def domains(self) -> list[str]:
		return [f'mcp.{name}' for name in self._clients]


class MCPToolExecutor(ToolExecutor):
	"""Executes `mcp.<server>` tool calls by forwarding them to the server"""

	def __init__(self, client: MCPClient, event_notifier: EventNotifier | None = None):
		self.client = client
		self.event_notifier = event_notifier
		self.domain = f'mcp.{client.server_name}'

	@property
	def specs(self) -> list[ToolSpec]:
		return [self._to_spec(tool) for tool in self.client.available_tools]

	def _to_spec(self, tool: MCPTool) -> ToolSpec:
		required = set(tool.required_arguments)
		arguments = [
			ToolArg(name=name, type=type_name, required=name in required) for name, type_name in tool.argument_types().items()
		]
		return ToolSpec(domain=self.domain, method=tool.name, arguments=arguments, return_type='any', description=tool.description)

	async def call_function_on(self, tool_call: ToolCall, target: Any = None) -> TcEvaluate:
		expression = tool_call.pseudo_expression
		server_name = self.client.server_name
		tool_name = tool_call.method

		if not self.client.is_connected():
			error = f"MCP client for server '{server_name}' is not connected"
			logger.warning(error)
			notify(self.event_notifier, 'mcp.onMCPError', serverName=server_name, toolName=tool_name, duration=0, error='not_connected')
			return TcEvaluate.failure(expression, RuntimeError(error))

		notify(self.event_notifier, 'mcp.onWillCallMCP', serverName=server_name, toolName=tool_name, argsKeys=list(tool_call.arguments))
		start = time.monotonic()
		try:
			result = await self.client.call_tool(tool_name, self._convert_arguments(tool_call.arguments))
			if result.is_error:
				raise RuntimeError(result.text() or f"MCP tool '{tool_name}' reported an error")
			value = result.text()
		except Exception as e:
			duration_ms = int((time.monotonic() - start) * 1000)
			logger.warning(f"Error executing MCP tool '{tool_name}': {brief_error(e)}")
			notify(self.event_notifier, 'mcp.onMCPError', serverName=server_name, toolName=tool_name, duration=duration_ms, error=str(e))
			return TcEvaluate.failure(expression, e, help=self.help(tool_name))

		duration_ms = int((time.monotonic() - start) * 1000)
		notify(self.event_notifier, 'mcp.onDidCallMCP', serverName=server_name, toolName=tool_name, duration=duration_ms, success=True)
		return TcEvaluate.of(value, expression)

	@staticmethod
	def _convert_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
		"""JSON-serialisable copy of the arguments. Non-JSON values are stringified."""
		return json.loads(json.dumps(arguments, default=str))

	def help(self, method: str | None = None) -> str:
		if method is not None and not any(tool.name == method for tool in self.client.available_tools):
			return f"Tool '{method}' not found in MCP server '{self.client.server_name}'"
		return super().help(method)
