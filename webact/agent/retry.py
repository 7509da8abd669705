from __future__ import annotations

import asyncio
import inspect
import logging
import random
import socket
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from webact.exceptions import (
	AgentError,
	PermanentAgentError,
	ResourceExhaustedAgentError,
	TimeoutAgentError,
	TransientAgentError,
	ValidationAgentError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

RETRYABLE_STATUS_CODES = {502, 503, 504}
RESOURCE_EXHAUSTED_STATUS_CODES = {429}

_TIMEOUT_MARKERS = ('timeout', 'timed out')
_CONNECTION_MARKERS = ('connection refused', 'connection reset', 'connection aborted', 'network is unreachable', 'broken pipe')


def classify_error(error: BaseException, context: str = '') -> AgentError:
	"""Map any exception onto the agent error taxonomy. Already classified errors pass through."""
	if isinstance(error, AgentError):
		return error

	prefix = f'{context}: ' if context else ''
	message = f'{prefix}{error}' if str(error) else f'{prefix}{type(error).__name__}'

	# Order matters: httpx.TimeoutException is a TransportError, socket.timeout is an OSError
	if isinstance(error, TimeoutError | httpx.TimeoutException):
		return TimeoutAgentError(message, error)
	if isinstance(error, httpx.HTTPStatusError):
		status = error.response.status_code
		if status in RESOURCE_EXHAUSTED_STATUS_CODES:
			return ResourceExhaustedAgentError(message, error)
		if status in RETRYABLE_STATUS_CODES:
			return TransientAgentError(message, error)
		return PermanentAgentError(message, error)
	if isinstance(error, ConnectionError | socket.gaierror | httpx.ConnectError | httpx.NetworkError):
		return TransientAgentError(message, error)
	if isinstance(error, MemoryError):
		return ResourceExhaustedAgentError(message, error)
	if isinstance(error, OSError):
		lowered = str(error).lower()
		if any(marker in lowered for marker in _TIMEOUT_MARKERS):
			return TimeoutAgentError(message, error)
		if any(marker in lowered for marker in _CONNECTION_MARKERS):
			return TransientAgentError(message, error)
		return PermanentAgentError(message, error)
	if isinstance(error, ValueError | TypeError | KeyError | ValidationError):
		return ValidationAgentError(message, error)
	return PermanentAgentError(message, error)


class RetryStrategy:
	"""Exponential backoff with jitter for retryable failures.

	Only transient and timeout errors are retried. After the last attempt the original
	exception is re-raised unchanged.
	"""

	def __init__(
		self,
		max_retries: int = 3,
		base_delay_ms: int = 1000,
		max_delay_ms: int = 30_000,
		jitter_ratio: float = 0.1,
	):
		if max_retries < 0:
			raise ValueError(f'max_retries must be >= 0, got {max_retries}')
		if base_delay_ms <= 0 or max_delay_ms < base_delay_ms:
			raise ValueError(f'invalid delay bounds: base={base_delay_ms}ms max={max_delay_ms}ms')
		if not 0 <= jitter_ratio < 1:
			raise ValueError(f'jitter_ratio must be in [0, 1), got {jitter_ratio}')
		self.max_retries = max_retries
		self.base_delay_ms = base_delay_ms
		self.max_delay_ms = max_delay_ms
		self.jitter_ratio = jitter_ratio

	def should_retry(self, error: BaseException) -> bool:
		return classify_error(error).retryable

	def classify_error(self, error: BaseException, context: str = '') -> AgentError:
		return classify_error(error, context)

	def calculate_delay(self, attempt: int) -> int:
		"""Delay in ms before retrying after `attempt` (0-based). Strictly increasing until clamped at max_delay_ms."""
		exponential = self.base_delay_ms * (2 ** min(attempt, 62))
		if exponential >= self.max_delay_ms:
			return self.max_delay_ms
		# Jitter below the doubling step keeps consecutive delays strictly ordered
		jitter = random.uniform(0, exponential * self.jitter_ratio)
		return int(min(exponential + jitter, self.max_delay_ms))

	async def execute(
		self,
		action: Callable[[], Awaitable[T] | T],
		on_retry: Callable[[int, int], Any] | None = None,
		on_error: Callable[[int, BaseException], Any] | None = None,
		context: str = '',
	) -> T:
		"""Run `action` with up to `max_retries` retries.

		Args:
			action: Zero-argument callable, sync or async.
			on_retry: Called with (attempt, delay_ms) after each backoff sleep, before the next attempt.
			on_error: Called with (attempt, error) for every failed attempt.
			context: Label used in log lines.
		"""
		attempt = 0
		while True:
			try:
				result = action()
				if inspect.isawaitable(result):
					result = await result
				return result
			except Exception as e:
				if on_error is not None:
					on_error(attempt, e)
				if attempt >= self.max_retries or not self.should_retry(e):
					raise
				delay_ms = self.calculate_delay(attempt)
				logger.warning(
					f'⚠️ {context or "operation"} failed ({type(e).__name__}: {e}), '
					f'retrying in {delay_ms}ms... (attempt {attempt + 1}/{self.max_retries})'
				)
				await asyncio.sleep(delay_ms / 1000)
				if on_retry is not None:
					on_retry(attempt + 1, delay_ms)
				attempt += 1
