"""Environment-backed settings for webact."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
	value = os.getenv(name)
	if value is None or value == '':
		return default
	return value.strip().lower()[:1] in 'ty1'


def _env_int(name: str, default: int) -> int:
	value = os.getenv(name)
	if not value:
		return default
	try:
		return int(value)
	except ValueError:
		logger.warning(f'{name}={value!r} is not a valid integer, using default {default}')
		return default


def get_timeout(env_var: str, default: float) -> float:
	"""Read a timeout in seconds from the environment, falling back to default on bad input."""
	env_value = os.getenv(env_var)
	if env_value:
		try:
			parsed = float(env_value)
			if parsed < 0:
				logger.warning(f'{env_var}={env_value} is negative, using default {default}')
				return default
			return parsed
		except (ValueError, TypeError):
			logger.warning(f'{env_var}={env_value} is not a valid number, using default {default}')
	return default


class Config:
	"""Lazily evaluated environment settings. Every access reads the current environment."""

	@property
	def WEBACT_LOGGING_LEVEL(self) -> str:
		return os.getenv('WEBACT_LOGGING_LEVEL', 'info').lower()

	@property
	def WEBACT_SETUP_LOGGING(self) -> bool:
		return _env_bool('WEBACT_SETUP_LOGGING', True)

	@property
	def WEBACT_MAX_STEPS(self) -> int:
		return _env_int('WEBACT_MAX_STEPS', 100)

	@property
	def WEBACT_MAX_RESULTS_TO_TRY(self) -> int:
		return _env_int('WEBACT_MAX_RESULTS_TO_TRY', 3)

	@property
	def WEBACT_ACT_TIMEOUT_MS(self) -> int:
		return _env_int('WEBACT_ACT_TIMEOUT_MS', 180_000)

	@property
	def WEBACT_LLM_INFERENCE_TIMEOUT_MS(self) -> int:
		return _env_int('WEBACT_LLM_INFERENCE_TIMEOUT_MS', 60_000)

	@property
	def WEBACT_MAX_HISTORY_SIZE(self) -> int:
		return _env_int('WEBACT_MAX_HISTORY_SIZE', 100)

	@property
	def WEBACT_AGENT_DATA_DIR(self) -> Path:
		return Path(os.getenv('WEBACT_AGENT_DATA_DIR', str(Path.home() / '.webact'))).expanduser().resolve()


CONFIG = Config()
