from enum import Enum


class ErrorCategory(str, Enum):
	TRANSIENT = 'transient'
	TIMEOUT = 'timeout'
	RESOURCE_EXHAUSTED = 'resource_exhausted'
	VALIDATION = 'validation'
	PERMANENT = 'permanent'


class AgentError(Exception):
	"""Base class for classified agent errors"""

	category: ErrorCategory = ErrorCategory.PERMANENT

	def __init__(self, message: str, cause: BaseException | None = None):
		super().__init__(message)
		self.message = message
		self.cause = cause

	@property
	def retryable(self) -> bool:
		return self.category in (ErrorCategory.TRANSIENT, ErrorCategory.TIMEOUT)


class TransientAgentError(AgentError):
	"""Temporary failure, e.g. a refused connection or a DNS hiccup"""

	category = ErrorCategory.TRANSIENT


class TimeoutAgentError(AgentError):
	category = ErrorCategory.TIMEOUT


class ResourceExhaustedAgentError(AgentError):
	"""Out of memory, rate limited, quota exceeded"""

	category = ErrorCategory.RESOURCE_EXHAUSTED


class ValidationAgentError(AgentError):
	category = ErrorCategory.VALIDATION


class PermanentAgentError(AgentError):
	category = ErrorCategory.PERMANENT


class AgentStateError(RuntimeError):
	"""Internal state invariant violated. Not an operational failure, so it is never swallowed."""

	pass


class UnsupportedDomainError(ValueError):
	"""No tool executor is registered for a domain"""

	def __init__(self, domain: str, supported: list[str]):
		self.domain = domain
		self.supported = sorted(supported)
		super().__init__(f'Unsupported domain: {domain!r}. Supported domains: {", ".join(self.supported)}')
