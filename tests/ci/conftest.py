"""Shared fakes for the sandbox shell and the CDP connection."""

import asyncio
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest
from bubus import EventBus

from desk_agent.browser.launcher import LAUNCH_SCRIPT, BrowserLauncher
from desk_agent.browser.session import SessionAcquirer
from desk_agent.browser.views import AutomationEndpoint
from desk_agent.sandbox import ShellResult


class FakeExecutor:
	"""Records every command; `responder` decides the outcome (return a ShellResult or raise)."""

	def __init__(self, responder: Callable[[str, dict[str, str]], ShellResult] | None = None, delay: float = 0.01):
		self.calls: list[tuple[str, dict[str, str]]] = []
		self.responder = responder
		self.delay = delay

	@property
	def launch_calls(self) -> list[dict[str, str]]:
		return [env for command, env in self.calls if command == LAUNCH_SCRIPT]

	async def execute(self, command: str, env: dict[str, str] | None = None, timeout: float | None = 60.0) -> ShellResult:
		self.calls.append((command, dict(env or {})))
		await asyncio.sleep(self.delay)
		if self.responder is not None:
			return self.responder(command, env or {})
		return ShellResult(output='', exit_code=0)


class FakePortWaiter:
	def __init__(self, reachable: bool = True):
		self.reachable = reachable
		self.wait_calls = 0
		self.probe_calls = 0

	async def probe(self, host: str, port: int) -> bool:
		self.probe_calls += 1
		return self.reachable

	async def wait(self, host: str, port: int, timeout: float = 20.0, interval: float = 0.5) -> bool:
		self.wait_calls += 1
		await asyncio.sleep(0.01)
		return self.reachable


class FakeBrowser:
	"""State shared by every FakeCDPClient connected to it."""

	def __init__(self):
		self.alive_targets: set[str] = set()
		self.created_targets: list[str] = []
		self.clients: list['FakeCDPClient'] = []
		self.connect_failures = 0
		self.fail_attach = False
		self.fire_load = True
		self.navigate_error_text: str | None = None
		self.same_document = False
		self.evaluate: Callable[[str], dict[str, Any]] = lambda expression: {'result': {'type': 'undefined'}}

	async def connect(self, endpoint: AutomationEndpoint) -> 'FakeCDPClient':
		if self.connect_failures > 0:
			self.connect_failures -= 1
			raise OSError('connection refused')
		client = FakeCDPClient(self)
		self.clients.append(client)
		return client

	def kill_target(self, target_id: str) -> None:
		self.alive_targets.discard(target_id)


class FakeCDPClient:
	def __init__(self, browser: FakeBrowser):
		self.browser = browser
		self.stopped = False
		self.load_handler: Callable[..., Any] | None = None
		self.navigations: list[str] = []
		self.activated: list[str] = []
		self.detached: list[str] = []
		self.send = SimpleNamespace(
			Target=SimpleNamespace(
				createTarget=self._create_target,
				getTargets=self._get_targets,
				attachToTarget=self._attach_to_target,
				activateTarget=self._activate_target,
				detachFromTarget=self._detach_from_target,
			),
			Page=SimpleNamespace(enable=self._enable, navigate=self._navigate),
			Runtime=SimpleNamespace(enable=self._enable, evaluate=self._evaluate),
		)
		self.register = SimpleNamespace(Page=SimpleNamespace(loadEventFired=self._register_load))

	async def stop(self) -> None:
		self.stopped = True

	def _register_load(self, handler: Callable[..., Any]) -> None:
		self.load_handler = handler

	async def _create_target(self, params: dict[str, Any], session_id: str | None = None) -> dict[str, Any]:
		target_id = f'TARGET-{len(self.browser.created_targets) + 1:04d}'
		self.browser.created_targets.append(target_id)
		self.browser.alive_targets.add(target_id)
		return {'targetId': target_id}

	async def _get_targets(self, params: dict[str, Any] | None = None, session_id: str | None = None) -> dict[str, Any]:
		return {
			'targetInfos': [
				{'targetId': target_id, 'type': 'page', 'url': 'about:blank'} for target_id in sorted(self.browser.alive_targets)
			]
		}

	async def _attach_to_target(self, params: dict[str, Any], session_id: str | None = None) -> dict[str, Any]:
		if self.browser.fail_attach or params['targetId'] not in self.browser.alive_targets:
			raise RuntimeError(f'No target with given id found: {params["targetId"]}')
		return {'sessionId': f'SESSION-{params["targetId"]}'}

	async def _activate_target(self, params: dict[str, Any], session_id: str | None = None) -> dict[str, Any]:
		self.activated.append(params['targetId'])
		return {}

	async def _detach_from_target(self, params: dict[str, Any], session_id: str | None = None) -> dict[str, Any]:
		self.detached.append(params['sessionId'])
		return {}

	async def _enable(self, params: dict[str, Any] | None = None, session_id: str | None = None) -> dict[str, Any]:
		return {}

	async def _navigate(self, params: dict[str, Any], session_id: str | None = None) -> dict[str, Any]:
		self.navigations.append(params['url'])
		if self.browser.navigate_error_text:
			return {'frameId': 'FRAME', 'errorText': self.browser.navigate_error_text}
		if self.browser.same_document:
			return {'frameId': 'FRAME'}
		if self.browser.fire_load and self.load_handler is not None:
			asyncio.get_running_loop().call_later(0.01, self.load_handler, {'timestamp': 1.0}, session_id)
		return {'frameId': 'FRAME', 'loaderId': 'LOADER'}

	async def _evaluate(self, params: dict[str, Any], session_id: str | None = None) -> dict[str, Any]:
		return self.browser.evaluate(params['expression'])


@pytest.fixture
async def event_bus():
	bus = EventBus(name='DeskAgentTest')
	yield bus
	await bus.stop(clear=True, timeout=5)


@pytest.fixture
def endpoint():
	return AutomationEndpoint(host='127.0.0.1', port=9222, profile_directory='/tmp/desk-test-profile', process_label='desk-test')


@pytest.fixture
def executor():
	return FakeExecutor()


@pytest.fixture
def port_waiter():
	return FakePortWaiter()


@pytest.fixture
def fake_browser():
	return FakeBrowser()


@pytest.fixture
def launcher(endpoint, executor, port_waiter, event_bus):
	return BrowserLauncher(
		endpoint, executor, event_bus=event_bus, port_waiter=port_waiter, launch_timeout=1.0, log_path='/tmp/desk-test.log'
	)


@pytest.fixture
def acquirer(launcher, fake_browser, event_bus):
	return SessionAcquirer(launcher, event_bus=event_bus, connect=fake_browser.connect, retry_backoff=0.01, connect_timeout=2.0)
