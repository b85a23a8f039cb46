"""DeskAutomation wires the launcher, acquirer, snapshotter and actuator around one event bus."""

import logging
from typing import Any

from bubus import BaseEvent, EventBus

from desk_agent.browser.events import AutomationErrorEvent, NavigationCompleteEvent
from desk_agent.browser.launcher import BrowserLauncher
from desk_agent.browser.port_waiter import DebugPortWaiter
from desk_agent.browser.session import AutomationSession, SessionAcquirer
from desk_agent.browser.target_store import TargetStore
from desk_agent.browser.views import AutomationEndpoint, AutomationError
from desk_agent.dom.actuator import DomActuator
from desk_agent.dom.service import DomSnapshotter
from desk_agent.dom.views import ActionResult, DomNode
from desk_agent.sandbox import SandboxError, ShellExecutor, create_executor

logger = logging.getLogger('desk_agent.DeskAutomation')

# Opens a URL in whichever browser the desktop has, URL passed through $DESK_OPEN_URL.
OPEN_URL_SCRIPT = r"""
set -u
if [ -z "${DISPLAY:-}" ]; then
  sock="$(ls /tmp/.X11-unix/X* 2>/dev/null | head -n 1 || true)"
  if [ -n "$sock" ]; then
    export DISPLAY=":${sock##*/X}"
  else
    export DISPLAY=":0"
  fi
fi

for candidate in firefox chromium-browser google-chrome chromium google-chrome-stable brave-browser xdg-open x-www-browser sensible-browser; do
  if command -v "$candidate" >/dev/null 2>&1; then
    nohup "$candidate" "$DESK_OPEN_URL" >/tmp/desk-open-url.log 2>&1 &
    echo "opened with $candidate on DISPLAY=$DISPLAY"
    exit 0
  fi
done

echo "no browser launcher found"
exit 127
"""

RECENT_EVENT_LIMIT = 10


class DeskAutomation:
	"""Entry point for everything the HTTP layer and the CLI do with the sandbox browser."""

	def __init__(
		self,
		endpoint: AutomationEndpoint | None = None,
		executor: ShellExecutor | None = None,
		event_bus: EventBus | None = None,
		launcher: BrowserLauncher | None = None,
		acquirer: SessionAcquirer | None = None,
	):
		self.endpoint = endpoint or AutomationEndpoint.from_env()
		self.executor = executor or create_executor()
		self.event_bus = event_bus or EventBus(name='DeskAutomation')
		self.launcher = launcher or BrowserLauncher(
			self.endpoint, self.executor, event_bus=self.event_bus, port_waiter=DebugPortWaiter()
		)
		self.acquirer = acquirer or SessionAcquirer(
			self.launcher, event_bus=self.event_bus, target_store=TargetStore(self.endpoint)
		)
		self.snapshotter = DomSnapshotter(self.acquirer)
		self.actuator = DomActuator(self.acquirer, event_bus=self.event_bus)

	def _record_error(self, error: Exception) -> None:
		message = error.message if isinstance(error, (AutomationError, SandboxError)) else str(error)
		details = getattr(error, 'details', None) or {}
		self.event_bus.dispatch(
			AutomationErrorEvent(error_type=type(error).__name__, message=message, details=details)
		)

	async def navigate(self, url: str, mirror_desktop: bool = True) -> bool:
		"""Load `url` in the shared target. Returns False when the load event was not seen in time."""

		async def _navigate(session: AutomationSession) -> bool:
			if mirror_desktop:
				await session.activate()
			loaded = await session.navigate(url)
			self.event_bus.dispatch(NavigationCompleteEvent(target_id=session.target_id, url=url, loaded=loaded))
			return loaded

		try:
			return await self.acquirer.with_session(_navigate)
		except (AutomationError, SandboxError) as e:
			self._record_error(e)
			raise

	async def get_dom_snapshot(self) -> list[DomNode]:
		try:
			return await self.snapshotter.snapshot()
		except (AutomationError, SandboxError) as e:
			self._record_error(e)
			raise

	async def perform_action(self, selector: str, action: str, text: str | None = None) -> ActionResult:
		try:
			return await self.actuator.act(selector, action, text)
		except (AutomationError, SandboxError) as e:
			self._record_error(e)
			raise

	async def open_url(self, url: str) -> str:
		"""Open `url` in the desktop's own browser, outside of the automation target."""
		try:
			result = await self.executor.execute(OPEN_URL_SCRIPT, env={'DESK_OPEN_URL': url})
		except SandboxError as e:
			self._record_error(e)
			raise
		logger.info(f'🌐 Opened {url} on the desktop: {result.output.strip()}')
		return result.output.strip()

	def status(self) -> dict[str, Any]:
		recent = sorted(self.event_bus.event_history.values(), key=lambda e: e.event_created_at.timestamp(), reverse=True)
		return {
			'state': self.launcher.state.value,
			'endpoint': self.endpoint.model_dump(),
			'targetId': self.acquirer.target_id,
			'recentEvents': [
				{
					'type': event.event_type,
					'at': event.event_created_at.isoformat(),
					**event.model_dump(include=set(type(event).model_fields) - set(BaseEvent.model_fields), mode='json'),
				}
				for event in recent[:RECENT_EVENT_LIMIT]
			],
		}

	async def stop(self) -> None:
		await self.launcher.stop()
