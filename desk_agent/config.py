"""Environment-backed configuration for desk-agent."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
	value = os.getenv(name)
	if value is None:
		return default
	return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name: str) -> list[str]:
	return [item.strip() for item in os.getenv(name, '').split(',') if item.strip()]


class Config:
	"""Configuration read lazily from the environment.

	Every property re-reads os.environ on access, so values changed after import
	(tests, .env files loaded late) are always picked up.
	"""

	# Logging
	@property
	def DESK_AGENT_LOGGING_LEVEL(self) -> str:
		return os.getenv('DESK_AGENT_LOGGING_LEVEL', 'info').lower()

	@property
	def CDP_LOGGING_LEVEL(self) -> str:
		return os.getenv('CDP_LOGGING_LEVEL', 'WARNING')

	# Automation endpoint
	@property
	def DESK_CDP_HOST(self) -> str:
		return os.getenv('DESK_CDP_HOST', '127.0.0.1')

	@property
	def DESK_CDP_PORT(self) -> int:
		return int(os.getenv('DESK_CDP_PORT', '9222'))

	@property
	def DESK_PROFILE_DIR(self) -> Path:
		return Path(os.getenv('DESK_PROFILE_DIR', '/tmp/desk-automation-profile'))

	@property
	def DESK_PROCESS_LABEL(self) -> str:
		return os.getenv('DESK_PROCESS_LABEL', 'desk-automation')

	# Browser launch
	@property
	def DESK_LAUNCH_LOG(self) -> Path:
		return Path(os.getenv('DESK_LAUNCH_LOG', '/tmp/desk-automation-browser.log'))

	@property
	def DESK_LAUNCH_TIMEOUT(self) -> float:
		return float(os.getenv('DESK_LAUNCH_TIMEOUT', '20'))

	@property
	def DESK_HEADLESS(self) -> bool:
		return _env_bool('DESK_HEADLESS')

	@property
	def DESK_STATE_DIR(self) -> Path:
		return Path(os.getenv('DESK_STATE_DIR', '~/.config/desk-agent')).expanduser()

	# Sandbox bridge
	@property
	def DESK_EXECUTOR(self) -> str:
		return os.getenv('DESK_EXECUTOR', 'docker').lower()

	@property
	def DESK_CONTAINER_SERVICE(self) -> str:
		return os.getenv('DESK_CONTAINER_SERVICE', 'desk')

	# HTTP boundary
	@property
	def AGENT_HOST(self) -> str:
		return os.getenv('AGENT_HOST', '0.0.0.0')

	@property
	def AGENT_PORT(self) -> int:
		return int(os.getenv('AGENT_PORT', '3000'))

	@property
	def AGENT_STRICT_CORS(self) -> bool:
		return _env_bool('AGENT_STRICT_CORS')

	@property
	def AGENT_ALLOWED_ORIGINS(self) -> list[str]:
		return _env_list('AGENT_ALLOWED_ORIGINS')


CONFIG = Config()
