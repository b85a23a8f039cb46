"""Lifecycle events dispatched on the shared automation EventBus."""

from typing import Any

from bubus import BaseEvent
from pydantic import Field

# ============================================================================
# Browser process lifecycle
# ============================================================================


class BrowserLaunchStartedEvent(BaseEvent[None]):
	"""A launch attempt started running in the sandbox."""

	host: str
	port: int


class BrowserReadyEvent(BaseEvent[None]):
	"""The debug port accepted a connection."""

	host: str
	port: int


class BrowserLaunchFailedEvent(BaseEvent[None]):
	"""A launch attempt failed, log_tail holds the end of the browser launch log."""

	message: str
	log_tail: str = ''


class BrowserStoppedEvent(BaseEvent[None]):
	"""The labelled browser process was terminated."""

	process_label: str


# ============================================================================
# Target / session lifecycle
# ============================================================================


class TargetCreatedEvent(BaseEvent[None]):
	"""A new shared automation target was created and cached."""

	target_id: str


class TargetInvalidatedEvent(BaseEvent[None]):
	"""The cached target was dropped and will be recreated on the next attempt."""

	target_id: str | None = None
	reason: str


class NavigationCompleteEvent(BaseEvent[None]):
	"""Navigation of the shared target finished (load observed or deadline reached)."""

	target_id: str
	url: str
	loaded: bool = True
	error_message: str | None = None


class ElementActionEvent(BaseEvent[None]):
	"""An element action was executed in the page."""

	selector: str
	action: str
	ok: bool
	error: str | None = None


class AutomationErrorEvent(BaseEvent[None]):
	"""A failure surfaced to a caller of the automation subsystem."""

	error_type: str
	message: str
	details: dict[str, Any] = Field(default_factory=dict)
