from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from desk_agent.config import CONFIG


class AutomationEndpoint(BaseModel):
	"""Where the debuggable browser lives and how its process is recognised. Set once at startup."""

	model_config = ConfigDict(frozen=True, extra='forbid')

	host: str = '127.0.0.1'
	port: int = 9222
	profile_directory: str = '/tmp/desk-automation-profile'
	process_label: str = 'desk-automation'

	@classmethod
	def from_env(cls) -> 'AutomationEndpoint':
		return cls(
			host=CONFIG.DESK_CDP_HOST,
			port=CONFIG.DESK_CDP_PORT,
			profile_directory=str(CONFIG.DESK_PROFILE_DIR),
			process_label=CONFIG.DESK_PROCESS_LABEL,
		)

	@property
	def cdp_http_url(self) -> str:
		return f'http://{self.host}:{self.port}'


class LaunchState(str, Enum):
	UNSTARTED = 'unstarted'
	LAUNCHING = 'launching'
	READY = 'ready'
	FAILED = 'failed'


class AutomationError(Exception):
	"""Base error of the automation subsystem, carrying a human-readable message and optional details."""

	message: str
	details: dict[str, Any] | None = None

	def __init__(self, message: str, details: dict[str, Any] | None = None):
		self.message = message
		self.details = details
		super().__init__(message)

	def __str__(self) -> str:
		return self.message


class LaunchFailure(AutomationError):
	"""No usable browser executable was found, or the debug port never became reachable."""

	def __init__(self, message: str, log_tail: str = '', details: dict[str, Any] | None = None):
		self.log_tail = log_tail
		super().__init__(f'{message}\n--- recent launch log ---\n{log_tail}', details=details)


class ConnectFailure(AutomationError):
	"""Opening the CDP connection, creating the target or attaching to it failed on every attempt."""


class OperationFailure(AutomationError):
	"""Failure raised by the work done inside an acquired session. Never retried by the acquirer.

	`target_lost` marks failures caused by the protocol connection or target rather than the page,
	so the cached target gets recreated on the next call.
	"""

	def __init__(self, message: str, target_lost: bool = False, details: dict[str, Any] | None = None):
		self.target_lost = target_lost
		super().__init__(message, details=details)


class EvaluationFailure(OperationFailure):
	"""An in-page script threw, timed out, or the connection dropped mid-call."""


class NavigationFailure(OperationFailure):
	"""The browser refused or failed a navigation (e.g. DNS or TLS error)."""


class NavigationTimeout(AutomationError):
	"""The load event was not observed before the deadline. Treated as best-effort completion."""
