"""Starts and tracks the single long-lived debuggable browser inside the sandbox desktop."""

import asyncio
import logging

from bubus import EventBus

from desk_agent.browser.events import (
	BrowserLaunchFailedEvent,
	BrowserLaunchStartedEvent,
	BrowserReadyEvent,
	BrowserStoppedEvent,
)
from desk_agent.browser.port_waiter import DebugPortWaiter
from desk_agent.browser.views import AutomationEndpoint, LaunchFailure, LaunchState
from desk_agent.config import CONFIG
from desk_agent.sandbox import SandboxError, ShellCommandError, ShellExecutor

logger = logging.getLogger('desk_agent.BrowserLauncher')

# All parameters arrive through the environment, the script text never changes.
LAUNCH_SCRIPT = r"""
set -u
if [ -z "${DISPLAY:-}" ]; then
  sock="$(ls /tmp/.X11-unix/X* 2>/dev/null | head -n 1 || true)"
  if [ -n "$sock" ]; then
    export DISPLAY=":${sock##*/X}"
  else
    export DISPLAY=":0"
  fi
fi

if pgrep -f -- "--class=${DESK_PROCESS_LABEL}" >/dev/null 2>&1; then
  echo "browser with label ${DESK_PROCESS_LABEL} already running"
  exit 0
fi

mkdir -p "$DESK_PROFILE_DIR"
for candidate in chromium chromium-browser google-chrome google-chrome-stable brave-browser; do
  if command -v "$candidate" >/dev/null 2>&1; then
    extra=""
    if [ "${DESK_HEADLESS:-0}" = "1" ]; then
      extra="--headless=new"
    fi
    nohup "$candidate" \
      --remote-debugging-port="$DESK_CDP_PORT" \
      --remote-debugging-address=0.0.0.0 \
      --user-data-dir="$DESK_PROFILE_DIR" \
      --no-sandbox \
      --disable-gpu \
      --no-first-run \
      --no-default-browser-check \
      --class="$DESK_PROCESS_LABEL" \
      $extra \
      about:blank >"$DESK_LAUNCH_LOG" 2>&1 &
    echo "launched $candidate on DISPLAY=$DISPLAY"
    exit 0
  fi
done

echo "no chromium-based browser found (tried chromium, chromium-browser, google-chrome, google-chrome-stable, brave-browser)"
exit 127
"""

LOG_TAIL_SCRIPT = 'tail -n 40 "$DESK_LAUNCH_LOG" 2>/dev/null || true'

STOP_SCRIPT = r"""
pkill -f -- "--class=${DESK_PROCESS_LABEL}" >/dev/null 2>&1 || exit 0
for _ in $(seq 1 50); do
  pgrep -f -- "--class=${DESK_PROCESS_LABEL}" >/dev/null 2>&1 || exit 0
  sleep 0.1
done
pkill -9 -f -- "--class=${DESK_PROCESS_LABEL}" >/dev/null 2>&1 || true
"""


class BrowserLauncher:
	"""Guarantees that a debuggable browser is reachable on the configured endpoint.

	Concurrent `ensure_running()` calls share one in-flight launch attempt and its outcome.
	A failed attempt is forgotten once it completes, so the next call tries again.
	"""

	def __init__(
		self,
		endpoint: AutomationEndpoint,
		executor: ShellExecutor,
		event_bus: EventBus | None = None,
		port_waiter: DebugPortWaiter | None = None,
		launch_timeout: float | None = None,
		headless: bool | None = None,
		log_path: str | None = None,
	):
		self.endpoint = endpoint
		self.executor = executor
		self.event_bus = event_bus
		self.port_waiter = port_waiter or DebugPortWaiter()
		self.launch_timeout = launch_timeout if launch_timeout is not None else CONFIG.DESK_LAUNCH_TIMEOUT
		self.headless = headless if headless is not None else CONFIG.DESK_HEADLESS
		self.log_path = log_path or str(CONFIG.DESK_LAUNCH_LOG)

		self._state = LaunchState.UNSTARTED
		self._inflight: asyncio.Task[None] | None = None

	@property
	def state(self) -> LaunchState:
		return self._state

	def _dispatch(self, event) -> None:
		if self.event_bus is not None:
			self.event_bus.dispatch(event)

	def _script_env(self) -> dict[str, str]:
		return {
			'DESK_CDP_PORT': str(self.endpoint.port),
			'DESK_PROFILE_DIR': self.endpoint.profile_directory,
			'DESK_PROCESS_LABEL': self.endpoint.process_label,
			'DESK_LAUNCH_LOG': self.log_path,
			'DESK_HEADLESS': '1' if self.headless else '0',
		}

	async def ensure_running(self) -> None:
		"""Return once the debug port is reachable, or raise LaunchFailure."""
		task = self._inflight
		if task is None:
			task = asyncio.create_task(self._run_launch(), name='desk_agent.launch')
			self._inflight = task
		# shield so one cancelled caller does not abort the attempt the others are waiting on
		await asyncio.shield(task)

	async def _run_launch(self) -> None:
		try:
			if self._state == LaunchState.READY and await self.port_waiter.probe(self.endpoint.host, self.endpoint.port):
				return
			await self._launch()
		finally:
			self._inflight = None

	async def _launch(self) -> None:
		host, port = self.endpoint.host, self.endpoint.port
		self._state = LaunchState.LAUNCHING
		self._dispatch(BrowserLaunchStartedEvent(host=host, port=port))
		logger.info(f'🚀 Ensuring browser {self.endpoint.process_label!r} is running with debug port {port}')

		script_output = ''
		script_error: SandboxError | None = None
		try:
			result = await self.executor.execute(LAUNCH_SCRIPT, env=self._script_env())
			script_output = result.output.strip()
			logger.debug(f'🚀 launch script: {script_output}')
		except ShellCommandError as e:
			script_error = e
			script_output = e.output.strip()
		except SandboxError as e:
			script_error = e
			script_output = e.message

		reachable = False
		if script_error is None:
			reachable = await self.port_waiter.wait(host, port, timeout=self.launch_timeout)

		if reachable:
			self._state = LaunchState.READY
			self._dispatch(BrowserReadyEvent(host=host, port=port))
			logger.info(f'✅ Browser debug port {host}:{port} is reachable')
			return

		self._state = LaunchState.FAILED
		if script_error is not None:
			message = f'Browser launch script failed: {script_output or script_error.message}'
		else:
			message = f'Browser debug port {host}:{port} not reachable after {self.launch_timeout}s'
		log_tail = await self._read_log_tail()
		self._dispatch(BrowserLaunchFailedEvent(message=message, log_tail=log_tail))
		logger.error(f'❌ {message}')
		raise LaunchFailure(message, log_tail=log_tail, details={'script_output': script_output}) from script_error

	async def _read_log_tail(self) -> str:
		try:
			result = await self.executor.execute(LOG_TAIL_SCRIPT, env={'DESK_LAUNCH_LOG': self.log_path}, timeout=10.0)
		except SandboxError as e:
			logger.debug(f'Could not read launch log {self.log_path}: {e}')
			return ''
		return result.output.strip()

	async def stop(self) -> None:
		"""Terminate the labelled browser process and forget the launch state."""
		if self._inflight is not None:
			# let a running attempt finish first so it cannot mark a killed browser as ready
			await asyncio.gather(asyncio.shield(self._inflight), return_exceptions=True)
		await self.executor.execute(STOP_SCRIPT, env={'DESK_PROCESS_LABEL': self.endpoint.process_label})
		self._state = LaunchState.UNSTARTED
		self._dispatch(BrowserStoppedEvent(process_label=self.endpoint.process_label))
		logger.info(f'🛑 Stopped browser {self.endpoint.process_label!r}')
