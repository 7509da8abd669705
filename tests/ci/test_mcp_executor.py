"""
Tests for `mcp.<server>` routing and the MCP tool executor.
"""

from typing import Any

import pytest

from tests.ci.conftest import RecordingNotifier
from webact.mcp.service import MCPServerRegistry, MCPToolExecutor
from webact.mcp.views import MCPCallResult, MCPContent, MCPTool
from webact.tools.service import AgentToolManager
from webact.tools.views import ToolCall


class FakeMCPClient:
	def __init__(self, server_name: str = 'weather', connected: bool = True):
		self.server_name = server_name
		self.connected = connected
		self.calls: list[tuple[str, dict[str, Any]]] = []

	def is_connected(self) -> bool:
		return self.connected

	@property
	def available_tools(self) -> list[MCPTool]:
		return [
			MCPTool(
				name='forecast',
				description='Weather forecast for a city',
				input_schema={
					'type': 'object',
					'properties': {'city': {'type': 'string'}, 'days': {'type': 'integer'}},
					'required': ['city'],
				},
			)
		]

	async def call_tool(self, name: str, arguments: dict[str, Any]) -> MCPCallResult:
		self.calls.append((name, arguments))
		if arguments.get('city') == 'Atlantis':
			return MCPCallResult(content=[MCPContent(text='unknown city')], is_error=True)
		if arguments.get('city') == 'Nowhere':
			raise ConnectionError('server closed the connection')
		return MCPCallResult(content=[MCPContent(text=f'Sunny in {arguments["city"]}'), MCPContent(type='image', data='...')])


@pytest.fixture
def client():
	return FakeMCPClient()


@pytest.fixture
def notifier():
	return RecordingNotifier()


@pytest.fixture
def tools(client, notifier):
	return AgentToolManager(mcp_registry=MCPServerRegistry([client]), event_notifier=notifier)


class TestMCPRouting:
	async def test_call_is_forwarded(self, tools, client, notifier):
		evaluate = await tools.execute(ToolCall(domain='mcp.weather', method='forecast', arguments={'city': 'Oslo', 'days': 2}))

		assert evaluate.success
		assert evaluate.value == 'Sunny in Oslo'
		assert client.calls == [('forecast', {'city': 'Oslo', 'days': 2})]
		assert notifier.names('mcp.') == ['mcp.onWillCallMCP', 'mcp.onDidCallMCP']

	async def test_server_error_result(self, tools, notifier):
		evaluate = await tools.execute(ToolCall(domain='mcp.weather', method='forecast', arguments={'city': 'Atlantis'}))

		assert not evaluate.success
		assert evaluate.exception.message == 'unknown city'
		assert 'mcp.onMCPError' in notifier.names()

	async def test_transport_error_is_classified(self, tools):
		evaluate = await tools.execute(ToolCall(domain='mcp.weather', method='forecast', arguments={'city': 'Nowhere'}))

		assert not evaluate.success
		assert evaluate.exception.category.value == 'transient'

	async def test_disconnected_client(self, tools, client, notifier):
		client.connected = False

		evaluate = await tools.execute(ToolCall(domain='mcp.weather', method='forecast', arguments={'city': 'Oslo'}))

		assert not evaluate.success
		assert "MCP client for server 'weather' is not connected" in evaluate.exception.message
		assert client.calls == []
		_, payload = [event for event in notifier.events if event[0] == 'mcp.onMCPError'][0]
		assert payload['error'] == 'not_connected'

	async def test_unknown_server(self, tools):
		evaluate = await tools.execute(ToolCall(domain='mcp.stocks', method='quote'))

		assert not evaluate.success
		assert 'Unsupported domain' in evaluate.exception.message
		assert 'mcp.weather' in evaluate.exception.message

	def test_executor_is_cached_per_client(self, tools, client):
		first, _ = tools.resolve('mcp.weather')
		second, _ = tools.resolve('mcp.weather')

		assert first is second
		assert first.domain == 'mcp.weather'


class TestMCPToolExecutor:
	def test_specs_from_input_schema(self, client):
		spec = MCPToolExecutor(client).specs[0]

		assert spec.expression == 'mcp.weather.forecast(city: str, days: int = null) -> any'
		assert spec.required_arguments == ['city']

	def test_help_for_unknown_tool(self, client):
		assert MCPToolExecutor(client).help('radar') == "Tool 'radar' not found in MCP server 'weather'"

	def test_registry(self, client):
		registry = MCPServerRegistry([client])

		with pytest.raises(ValueError, match='already registered'):
			registry.register(FakeMCPClient())

		assert registry.server_names == ['weather']
		assert registry.unregister('weather') is client
		assert registry.domains() == []
