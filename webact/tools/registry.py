import logging
from typing import Any

from webact.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


class CustomToolRegistry:
	"""User-supplied tool executors and their targets, keyed by domain"""

	def __init__(self):
		self._executors: dict[str, ToolExecutor] = {}
		self._targets: dict[str, Any] = {}

	def register(self, executor: ToolExecutor, target: Any = None) -> None:
		domain = executor.domain
		if domain in self._executors:
			raise ValueError(f"A custom tool executor is already registered for domain '{domain}'")
		self._executors[domain] = executor
		self._targets[domain] = target
		logger.debug(f'🔧 Registered custom tool domain {domain} ({len(executor.specs)} methods)')

	def unregister(self, domain: str) -> bool:
		self._targets.pop(domain, None)
		return self._executors.pop(domain, None) is not None

	def get_executor(self, domain: str) -> ToolExecutor | None:
		return self._executors.get(domain)

	def get_target(self, domain: str) -> Any:
		return self._targets.get(domain)

	@property
	def domains(self) -> list[str]:
		return list(self._executors)
