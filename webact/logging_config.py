import logging
import sys

from webact.config import CONFIG

_LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(level: str | None = None, force: bool = False) -> logging.Logger:
	"""Configure the webact logger hierarchy once.

	Args:
		level: Log level name, defaults to WEBACT_LOGGING_LEVEL.
		force: Replace handlers that were installed by an earlier call.
	"""
	log_level_name = (level or CONFIG.WEBACT_LOGGING_LEVEL).upper()
	log_level = getattr(logging, log_level_name, logging.INFO)

	webact_logger = logging.getLogger('webact')
	if webact_logger.handlers and not force:
		return webact_logger

	for handler in list(webact_logger.handlers):
		webact_logger.removeHandler(handler)

	handler = logging.StreamHandler(sys.stdout)
	handler.setFormatter(logging.Formatter(_LOG_FORMAT))
	webact_logger.addHandler(handler)
	webact_logger.setLevel(log_level)
	webact_logger.propagate = False

	# Third-party loggers that are chatty at INFO
	for name in ('bubus', 'httpx', 'httpcore'):
		logging.getLogger(name).setLevel(logging.WARNING)

	return webact_logger
