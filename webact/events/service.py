from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from bubus import EventBus

from webact.config import get_timeout
from webact.events.views import WebactEvent, event_class_for

logger = logging.getLogger(__name__)


@runtime_checkable
class EventNotifier(Protocol):
	"""Fire-and-forget sink for lifecycle events"""

	def emit(self, event_type: str, payload: dict[str, Any] | None = None) -> None: ...


def notify(notifier: EventNotifier | None, event_type: str, **payload: Any) -> None:
	"""Emit an event without ever failing the caller."""
	if notifier is None:
		return
	try:
		notifier.emit(event_type, payload)
	except Exception as e:
		logger.debug(f'Event {event_type} could not be delivered: {type(e).__name__}: {e}')


class BubusEventNotifier:
	"""Publishes events on a bubus EventBus owned by one agent"""

	def __init__(self, agent_id: str, event_bus: EventBus | None = None):
		self.agent_id = agent_id
		self.event_bus = event_bus or EventBus(name=f'Agent_{agent_id[-4:]}')

	def emit(self, event_type: str, payload: dict[str, Any] | None = None) -> None:
		event_class = event_class_for(event_type)
		event = event_class(name=event_type, agent_id=self.agent_id, payload=payload or {})
		self.event_bus.dispatch(event)

	def on(self, event_class: type[WebactEvent] | str, handler: Callable[[Any], Any]) -> None:
		self.event_bus.on(event_class, handler)

	async def wait_until_idle(self, timeout: float | None = None) -> None:
		await self.event_bus.wait_until_idle(timeout=timeout)

	async def stop(self) -> None:
		await self.event_bus.stop(clear=True, timeout=get_timeout('TIMEOUT_AgentEventBusStop', 3.0))
