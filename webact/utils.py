import logging
import re
import time
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec('P')
R = TypeVar('R')

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')


def to_snake_case(name: str) -> str:
	"""writeString -> write_string, timeoutSeconds -> timeout_seconds"""
	return _CAMEL_BOUNDARY.sub('_', name).lower()


def compact_inline(text: str | None, max_length: int = 200) -> str:
	"""Collapse whitespace and cut to max_length, for log lines and trace messages."""
	if not text:
		return ''
	collapsed = ' '.join(text.split())
	if len(collapsed) <= max_length:
		return collapsed
	return collapsed[: max_length - 3] + '...'


def brief_error(error: BaseException) -> str:
	message = str(error).strip().splitlines()
	return f'{type(error).__name__}: {message[0]}' if message else type(error).__name__


def time_execution_async(
	additional_text: str = '',
) -> Callable[[Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]]:
	def decorator(func: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, Coroutine[Any, Any, R]]:
		@wraps(func)
		async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
			start_time = time.time()
			result = await func(*args, **kwargs)
			execution_time = time.time() - start_time
			# Only log slow calls
			if execution_time > 0.25:
				logger.debug(f'⏳ {additional_text.strip("-")}() took {execution_time:.2f}s')
			return result

		return wrapper

	return decorator
