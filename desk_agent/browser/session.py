"""Scoped CDP sessions against the shared automation target, with bounded retry."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from bubus import EventBus
from cdp_use import CDPClient

from desk_agent.browser.events import TargetCreatedEvent, TargetInvalidatedEvent
from desk_agent.browser.launcher import BrowserLauncher
from desk_agent.browser.target_store import TargetStore
from desk_agent.browser.views import (
	AutomationEndpoint,
	ConnectFailure,
	EvaluationFailure,
	NavigationFailure,
	NavigationTimeout,
	OperationFailure,
)

logger = logging.getLogger('desk_agent.SessionAcquirer')

T = TypeVar('T')

DEFAULT_EVALUATE_TIMEOUT = 20.0
DEFAULT_LOAD_TIMEOUT = 20.0


async def open_cdp_client(endpoint: AutomationEndpoint) -> CDPClient:
	"""Resolve the browser websocket from /json/version and open a new CDP connection to it."""
	async with httpx.AsyncClient(timeout=5.0) as client:
		response = await client.get(f'{endpoint.cdp_http_url}/json/version')
		response.raise_for_status()
		ws_url = response.json()['webSocketDebuggerUrl']

	cdp_client = CDPClient(ws_url)
	try:
		await cdp_client.start()
	except BaseException:
		try:
			await cdp_client.stop()
		except Exception as e:
			logger.debug(f'Closing half-open CDP connection failed: {type(e).__name__}: {e}')
		raise
	return cdp_client


class AutomationSession:
	"""An attached session on the shared target. Only valid inside one `with_session` call."""

	def __init__(self, cdp_client: Any, target_id: str, session_id: str):
		self.cdp_client = cdp_client
		self.target_id = target_id
		self.session_id = session_id
		self.logger = logging.getLogger(f'desk_agent.AutomationSession.{target_id[-4:]}')
		self._load_waiters: set[asyncio.Future[bool]] = set()

	@classmethod
	async def attach(cls, cdp_client: Any, target_id: str) -> 'AutomationSession':
		result = await cdp_client.send.Target.attachToTarget(params={'targetId': target_id, 'flatten': True})
		session = cls(cdp_client=cdp_client, target_id=target_id, session_id=result['sessionId'])
		cdp_client.register.Page.loadEventFired(session._on_load_event_fired)

		results = await asyncio.gather(
			cdp_client.send.Page.enable(session_id=session.session_id),
			cdp_client.send.Runtime.enable(session_id=session.session_id),
			return_exceptions=True,
		)
		for enable_result in results:
			if isinstance(enable_result, Exception):
				raise RuntimeError(f'Failed to enable CDP domains on target {target_id}: {results}')
		return session

	def _on_load_event_fired(self, event: Any, session_id: str | None = None) -> None:
		if session_id is not None and session_id != self.session_id:
			return
		for waiter in list(self._load_waiters):
			if not waiter.done():
				waiter.set_result(True)

	def expect_load(self) -> asyncio.Future[bool]:
		"""Register a one-shot load waiter. Must be called before the command that triggers the load."""
		waiter: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
		self._load_waiters.add(waiter)
		return waiter

	async def wait_for_load(self, waiter: asyncio.Future[bool], timeout: float = DEFAULT_LOAD_TIMEOUT) -> None:
		try:
			await asyncio.wait_for(waiter, timeout=timeout)
		except TimeoutError as e:
			raise NavigationTimeout(f'Load event not observed within {timeout}s') from e
		finally:
			self._load_waiters.discard(waiter)

	async def evaluate(self, expression: str, timeout: float = DEFAULT_EVALUATE_TIMEOUT) -> Any:
		"""Run a script in the page and return its value (returnByValue, promises awaited)."""
		try:
			result = await asyncio.wait_for(
				self.cdp_client.send.Runtime.evaluate(
					params={'expression': expression, 'returnByValue': True, 'awaitPromise': True},
					session_id=self.session_id,
				),
				timeout=timeout,
			)
		except TimeoutError as e:
			raise EvaluationFailure(f'Script evaluation timed out after {timeout}s') from e
		except Exception as e:
			raise EvaluationFailure(f'Script evaluation failed: {type(e).__name__}: {e}', target_lost=True) from e

		exception_details = result.get('exceptionDetails')
		if exception_details:
			description = exception_details.get('exception', {}).get('description') or exception_details.get('text')
			raise EvaluationFailure(f'Script threw an exception: {description}', details={'exception': exception_details})
		return result.get('result', {}).get('value')

	async def navigate(self, url: str, timeout: float = DEFAULT_LOAD_TIMEOUT) -> bool:
		"""Navigate the target and wait for its load event.

		Returns False when the load event was not seen in time; the navigation itself still counts as done.
		"""
		waiter = self.expect_load()
		try:
			try:
				result = await asyncio.wait_for(
					self.cdp_client.send.Page.navigate(params={'url': url}, session_id=self.session_id),
					timeout=timeout,
				)
			except TimeoutError as e:
				raise NavigationFailure(f'Page.navigate to {url} got no reply within {timeout}s') from e
			except Exception as e:
				raise NavigationFailure(f'Navigation to {url} failed: {type(e).__name__}: {e}', target_lost=True) from e

			if result.get('errorText'):
				raise NavigationFailure(f'Navigation to {url} failed: {result["errorText"]}', details={'url': url})
			if not result.get('loaderId'):
				# same-document navigation (fragment, history API): no load event follows
				return True

			try:
				await self.wait_for_load(waiter, timeout=timeout)
			except NavigationTimeout as e:
				self.logger.warning(f'⏱️ {e}, treating navigation to {url} as complete')
				return False
			return True
		finally:
			self._load_waiters.discard(waiter)
			if not waiter.done():
				waiter.cancel()

	async def activate(self) -> None:
		await self.cdp_client.send.Target.activateTarget(params={'targetId': self.target_id})

	async def detach(self) -> None:
		await self.cdp_client.send.Target.detachFromTarget(params={'sessionId': self.session_id})


class SessionAcquirer:
	"""Runs operations against the one shared automation target.

	The target id is cached across calls, and in `target_store` across processes when one is given.
	A failed connect/attach, or an operation that lost its target, drops the cache and is retried
	up to `max_attempts` times. Failures the page itself reports (script exceptions, navigation
	errorText, timeouts) propagate at once.
	"""

	def __init__(
		self,
		launcher: BrowserLauncher,
		event_bus: EventBus | None = None,
		connect: Callable[[AutomationEndpoint], Awaitable[Any]] = open_cdp_client,
		max_attempts: int = 3,
		retry_backoff: float = 0.5,
		connect_timeout: float = 15.0,
		target_store: TargetStore | None = None,
	):
		self.launcher = launcher
		self.event_bus = event_bus
		self._connect = connect
		self.max_attempts = max_attempts
		self.retry_backoff = retry_backoff
		self.connect_timeout = connect_timeout
		self.target_store = target_store

		self._target_id: str | None = None
		self._target_lock = asyncio.Lock()

	@property
	def target_id(self) -> str | None:
		return self._target_id

	def _dispatch(self, event) -> None:
		if self.event_bus is not None:
			self.event_bus.dispatch(event)

	async def _find_stored_target(self, cdp_client: Any) -> str | None:
		if self.target_store is None:
			return None
		stored_id = self.target_store.load()
		if stored_id is None:
			return None
		result = await cdp_client.send.Target.getTargets()
		for target_info in result.get('targetInfos', []):
			if target_info.get('targetId') == stored_id and target_info.get('type') == 'page':
				return stored_id
		logger.debug(f'Stored target 🅣 {stored_id} is gone, creating a new one')
		self.target_store.clear(stored_id)
		return None

	async def _ensure_target(self, cdp_client: Any) -> str:
		async with self._target_lock:
			if self._target_id is None:
				stored_id = await self._find_stored_target(cdp_client)
				if stored_id is not None:
					self._target_id = stored_id
					logger.debug(f'♻️ Reusing automation target 🅣 {stored_id}')
					return stored_id

				result = await cdp_client.send.Target.createTarget(params={'url': 'about:blank'})
				self._target_id = result['targetId']
				logger.info(f'🆕 Created automation target 🅣 {self._target_id}')
				if self.target_store is not None:
					self.target_store.save(self._target_id)
				self._dispatch(TargetCreatedEvent(target_id=self._target_id))
			return self._target_id

	def _invalidate_target(self, expected: str | None, reason: str) -> None:
		# another caller may already have replaced the target, only drop the one we used
		if expected is None or self._target_id != expected:
			return
		self._target_id = None
		if self.target_store is not None:
			self.target_store.clear(expected)
		logger.debug(f'🗑️ Dropped cached target 🅣 {expected}: {reason}')
		self._dispatch(TargetInvalidatedEvent(target_id=expected, reason=reason))

	async def _release(self, cdp_client: Any, session: AutomationSession | None) -> None:
		if cdp_client is None:
			return
		if session is not None:
			try:
				await session.detach()
			except Exception as e:
				logger.debug(f'Detach from 🅣 {session.target_id} failed: {type(e).__name__}: {e}')
		try:
			await cdp_client.stop()
		except Exception as e:
			logger.debug(f'Closing CDP connection failed: {type(e).__name__}: {e}')

	async def with_session(self, operation: Callable[[AutomationSession], Awaitable[T]]) -> T:
		"""Run `operation` against a freshly attached session on the shared target and return its result."""
		await self.launcher.ensure_running()

		last_error: Exception | None = None
		for attempt in range(1, self.max_attempts + 1):
			cdp_client = None
			target_id: str | None = self._target_id
			session: AutomationSession | None = None
			try:
				cdp_client = await asyncio.wait_for(self._connect(self.launcher.endpoint), timeout=self.connect_timeout)
				target_id = await asyncio.wait_for(self._ensure_target(cdp_client), timeout=self.connect_timeout)
				session = await asyncio.wait_for(
					AutomationSession.attach(cdp_client, target_id), timeout=self.connect_timeout
				)
				return await operation(session)
			except OperationFailure as e:
				if not e.target_lost:
					raise
				last_error = e
				logger.warning(f'⚠️ Target 🅣 {target_id} lost during attempt {attempt}/{self.max_attempts}: {e.message}')
				self._invalidate_target(target_id, reason=e.message)
			except Exception as e:
				last_error = e
				error = f'{type(e).__name__}: {e}'
				logger.warning(f'⚠️ Session attempt {attempt}/{self.max_attempts} failed: {error}')
				self._invalidate_target(target_id, reason=error)
			finally:
				await self._release(cdp_client, session)

			if attempt < self.max_attempts:
				await asyncio.sleep(self.retry_backoff)

		raise ConnectFailure(
			f'Automation target unavailable after {self.max_attempts} attempts: {last_error}',
			details={'attempts': self.max_attempts},
		) from last_error
