from webact.config import CONFIG
from webact.logging_config import setup_logging

if CONFIG.WEBACT_SETUP_LOGGING:
	setup_logging()

from webact.agent.retry import RetryStrategy, classify_error  # noqa: E402
from webact.agent.service import BasicBrowserAgent  # noqa: E402
from webact.agent.views import (  # noqa: E402
	ActionOptions,
	ActResult,
	AgentConfig,
	AgentHistory,
	AgentState,
	ExecutionContext,
	ExtractOptions,
	ExtractResult,
	ObserveOptions,
	ObserveResult,
)
from webact.events.service import BubusEventNotifier, EventNotifier  # noqa: E402
from webact.exceptions import AgentError, AgentStateError, ErrorCategory, UnsupportedDomainError  # noqa: E402
from webact.tools.registry import CustomToolRegistry  # noqa: E402
from webact.tools.service import AgentToolManager  # noqa: E402
from webact.tools.views import TcEvaluate, ToolCall  # noqa: E402

__all__ = [
	'ActResult',
	'ActionOptions',
	'AgentConfig',
	'AgentError',
	'AgentHistory',
	'AgentState',
	'AgentStateError',
	'AgentToolManager',
	'BasicBrowserAgent',
	'BubusEventNotifier',
	'CustomToolRegistry',
	'ErrorCategory',
	'EventNotifier',
	'ExecutionContext',
	'ExtractOptions',
	'ExtractResult',
	'ObserveOptions',
	'ObserveResult',
	'RetryStrategy',
	'TcEvaluate',
	'ToolCall',
	'UnsupportedDomainError',
	'classify_error',
]
