import logging
import sys

from desk_agent.config import CONFIG


def setup_logging(stream=None, log_level=None, force_setup=False, debug_log_file=None, info_log_file=None):
	"""Setup logging configuration for desk-agent.

	Args:
		stream: Output stream for logs (default: sys.stdout)
		log_level: Override log level (default: uses CONFIG.DESK_AGENT_LOGGING_LEVEL)
		force_setup: Force reconfiguration even if handlers already exist
		debug_log_file: Path to log file for debug level logs only
		info_log_file: Path to log file for info level logs only
	"""
	log_type = log_level or CONFIG.DESK_AGENT_LOGGING_LEVEL

	# Check if handlers are already set up
	if logging.getLogger().hasHandlers() and not force_setup:
		return logging.getLogger('desk_agent')

	# Clear existing handlers
	root = logging.getLogger()
	root.handlers = []

	class DeskAgentFormatter(logging.Formatter):
		def __init__(self, fmt, log_level):
			super().__init__(fmt)
			self.log_level = log_level

		def format(self, record):
			# Only clean up names in INFO mode, keep everything in DEBUG mode
			if self.log_level > logging.DEBUG and isinstance(record.name, str) and record.name.startswith('desk_agent.'):
				parts = record.name.split('.')
				if len(parts) >= 2:
					record.name = parts[-1]
			return super().format(record)

	console = logging.StreamHandler(stream or sys.stdout)

	if log_type == 'debug':
		log_level = logging.DEBUG
	elif log_type == 'warning':
		log_level = logging.WARNING
	else:
		log_level = logging.INFO

	console.setLevel(log_level)
	console.setFormatter(DeskAgentFormatter('%(levelname)-8s [%(name)s] %(message)s', log_level))
	root.addHandler(console)

	file_handlers = []

	if debug_log_file:
		debug_handler = logging.FileHandler(debug_log_file, encoding='utf-8')
		debug_handler.setLevel(logging.DEBUG)
		debug_handler.setFormatter(DeskAgentFormatter('%(asctime)s - %(levelname)-8s [%(name)s] %(message)s', logging.DEBUG))
		file_handlers.append(debug_handler)
		root.addHandler(debug_handler)

	if info_log_file:
		info_handler = logging.FileHandler(info_log_file, encoding='utf-8')
		info_handler.setLevel(logging.INFO)
		info_handler.setFormatter(DeskAgentFormatter('%(asctime)s - %(levelname)-8s [%(name)s] %(message)s', logging.INFO))
		file_handlers.append(info_handler)
		root.addHandler(info_handler)

	# Configure root logger - use DEBUG if debug file logging is enabled
	effective_log_level = logging.DEBUG if debug_log_file else log_level
	root.setLevel(effective_log_level)

	desk_agent_logger = logging.getLogger('desk_agent')
	desk_agent_logger.handlers = []
	desk_agent_logger.propagate = False  # Don't propagate to root logger
	desk_agent_logger.addHandler(console)
	for handler in file_handlers:
		desk_agent_logger.addHandler(handler)
	desk_agent_logger.setLevel(effective_log_level)

	# Lifecycle events are dispatched on a bubus EventBus, keep its logs at INFO at most
	bubus_logger = logging.getLogger('bubus')
	bubus_logger.handlers = []
	bubus_logger.propagate = False
	bubus_logger.addHandler(console)
	for handler in file_handlers:
		bubus_logger.addHandler(handler)
	bubus_logger.setLevel(max(effective_log_level, logging.INFO))

	# CDP traffic gets its own level, it is extremely chatty at DEBUG
	cdp_level = getattr(logging, CONFIG.CDP_LOGGING_LEVEL.upper(), logging.WARNING)
	for logger_name in ['websockets.client', 'cdp_use', 'cdp_use.client', 'cdp_use.cdp', 'cdp_use.cdp.registry']:
		cdp_logger = logging.getLogger(logger_name)
		cdp_logger.handlers = []
		cdp_logger.setLevel(cdp_level)
		cdp_logger.addHandler(console)
		cdp_logger.propagate = False

	logger = logging.getLogger('desk_agent')

	# Silence third-party loggers (but not CDP ones which we configured above)
	third_party_loggers = [
		'httpx',
		'httpcore',
		'docker',
		'urllib3',
		'asyncio',
		'charset_normalizer',
		'websockets',  # General websockets (but not websockets.client which we need)
	]
	for logger_name in third_party_loggers:
		third_party = logging.getLogger(logger_name)
		third_party.setLevel(logging.ERROR)
		third_party.propagate = False

	return logger
