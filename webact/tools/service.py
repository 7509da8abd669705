from __future__ import annotations

import logging
import time
from typing import Any

from webact.browser.driver import TabSwitcher
from webact.events.service import EventNotifier, notify
from webact.exceptions import UnsupportedDomainError
from webact.mcp.service import MCPServerRegistry, MCPToolExecutor
from webact.skills.tools import SkillToolExecutor
from webact.tools.builtin import (
	BrowserToolExecutor,
	DriverToolExecutor,
	FileSystemToolExecutor,
	ShellToolExecutor,
	SystemToolExecutor,
)
from webact.tools.executor import ToolExecutor
from webact.tools.registry import CustomToolRegistry
from webact.tools.views import TcEvaluate, ToolCall, ToolSpec
from webact.utils import brief_error

logger = logging.getLogger(__name__)

MCP_DOMAIN_PREFIX = 'mcp.'


class AgentToolManager:
	"""Routes tool calls to the executor registered for their domain.

	Lookup order: built-in domains, then custom domains, then `mcp.<server>`.
	`execute` never raises; routing and execution failures come back as TcEvaluate.
	"""

	def __init__(
		self,
		driver: Any = None,
		browser: TabSwitcher | None = None,
		file_system: Any = None,
		shell: Any = None,
		skill_target: Any = None,
		mcp_registry: MCPServerRegistry | None = None,
		custom_registry: CustomToolRegistry | None = None,
		event_notifier: EventNotifier | None = None,
	):
		self.event_notifier = event_notifier
		self.mcp_registry = mcp_registry
		self.custom_registry = custom_registry
		self._executors: dict[str, ToolExecutor] = {}
		self._targets: dict[str, Any] = {}
		self._mcp_executors: dict[str, MCPToolExecutor] = {}

		self.register(DriverToolExecutor(), driver)
		self.register(BrowserToolExecutor(), browser)
		self.register(SystemToolExecutor(), self)
		if file_system is not None:
			self.register(FileSystemToolExecutor(), file_system)
		if shell is not None:
			self.register(ShellToolExecutor(), shell)
		if skill_target is not None:
			self.register(SkillToolExecutor(), skill_target)

	def register(self, executor: ToolExecutor, target: Any) -> None:
		self._executors[executor.domain] = executor
		self._targets[executor.domain] = target

	@property
	def supported_domains(self) -> list[str]:
		domains = list(self._executors)
		if self.custom_registry is not None:
			domains += [d for d in self.custom_registry.domains if d not in domains]
		if self.mcp_registry is not None:
			domains += self.mcp_registry.domains()
		return domains

	def resolve(self, domain: str) -> tuple[ToolExecutor, Any]:
		"""Find the executor and target for a domain, or raise UnsupportedDomainError."""
		executor = self._executors.get(domain)
		if executor is not None:
			return executor, self._targets.get(domain)

		if self.custom_registry is not None:
			executor = self.custom_registry.get_executor(domain)
			if executor is not None:
				return executor, self.custom_registry.get_target(domain)

		if domain.startswith(MCP_DOMAIN_PREFIX) and self.mcp_registry is not None:
			server_name = domain[len(MCP_DOMAIN_PREFIX) :]
			client = self.mcp_registry.get(server_name)
			if client is not None:
				mcp_executor = self._mcp_executors.get(server_name)
				if mcp_executor is None or mcp_executor.client is not client:
					mcp_executor = MCPToolExecutor(client, self.event_notifier)
					self._mcp_executors[server_name] = mcp_executor
				return mcp_executor, client

		raise UnsupportedDomainError(domain, self.supported_domains)

	async def execute(self, tool_call: ToolCall) -> TcEvaluate:
		expression = tool_call.pseudo_expression
		notify(self.event_notifier, 'tool.onWillExecuteTool', domain=tool_call.domain, method=tool_call.method)
		start = time.monotonic()

		try:
			executor, target = self.resolve(tool_call.domain)
			evaluate = await executor.call_function_on(tool_call, target)
		except Exception as e:
			# Routing failures, and executors that break the no-raise contract
			logger.warning(f'🔧 {expression} could not be dispatched: {brief_error(e)}')
			evaluate = TcEvaluate.failure(expression, e)

		duration_ms = int((time.monotonic() - start) * 1000)
		if evaluate.exception is not None:
			notify(
				self.event_notifier,
				'tool.onToolError',
				domain=tool_call.domain,
				method=tool_call.method,
				error=evaluate.exception.message,
				duration=duration_ms,
			)
		else:
			notify(self.event_notifier, 'tool.onDidExecuteTool', domain=tool_call.domain, method=tool_call.method, duration=duration_ms)
		return evaluate

	def help(self, domain: str, method: str | None = None) -> str:
		try:
			executor, _ = self.resolve(domain)
		except UnsupportedDomainError as e:
			return str(e)
		return executor.help(method)

	def tool_specs(self) -> list[ToolSpec]:
		specs: list[ToolSpec] = []
		for domain in self.supported_domains:
			executor, _ = self.resolve(domain)
			specs.extend(executor.specs)
		return specs
