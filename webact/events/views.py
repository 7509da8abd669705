from typing import Any

from bubus import BaseEvent
from pydantic import Field
from uuid_extensions import uuid7str


class WebactEvent(BaseEvent):
	"""Base for every event the agent publishes"""

	id: str = Field(default_factory=uuid7str)
	name: str
	agent_id: str = ''
	payload: dict[str, Any] = Field(default_factory=dict)


class AgentLifecycleEvent(WebactEvent):
	"""agent.onWillRun, agent.onDidAct, ..."""

	pass


class ToolExecutionEvent(WebactEvent):
	pass


class MCPEvent(WebactEvent):
	pass


class SkillEvent(WebactEvent):
	pass


_EVENT_CLASSES: dict[str, type[WebactEvent]] = {
	'agent': AgentLifecycleEvent,
	'tool': ToolExecutionEvent,
	'mcp': MCPEvent,
	'skill': SkillEvent,
}


def event_class_for(name: str) -> type[WebactEvent]:
	"""Pick the event class from the name prefix, e.g. 'tool.onToolError' -> ToolExecutionEvent."""
	return _EVENT_CLASSES.get(name.split('.', 1)[0], AgentLifecycleEvent)
