import logging

from bubus import EventBus
from pydantic import ValidationError

from desk_agent.browser.events import ElementActionEvent
from desk_agent.browser.session import AutomationSession, SessionAcquirer
from desk_agent.browser.views import EvaluationFailure
from desk_agent.dom.scripts import build_action_script
from desk_agent.dom.views import ActionRequest, ActionResult

logger = logging.getLogger('desk_agent.DomActuator')


class DomActuator:
	"""Resolves a selector in the shared target and clicks or types into the first match."""

	def __init__(self, acquirer: SessionAcquirer, event_bus: EventBus | None = None):
		self.acquirer = acquirer
		self.event_bus = event_bus

	async def act(self, selector: str, action: str, text: str | None = None) -> ActionResult:
		request = ActionRequest(selector=selector, action=action, text=text)
		return await self.acquirer.with_session(lambda session: self.execute(session, request))

	async def execute(self, session: AutomationSession, request: ActionRequest) -> ActionResult:
		"""Run a validated request inside an already acquired session."""
		raw = await session.evaluate(build_action_script(request.selector, request.action, request.text))
		try:
			result = ActionResult.model_validate(raw)
		except ValidationError as e:
			raise EvaluationFailure(f'Element action returned malformed data: {raw!r}') from e

		if result.ok:
			logger.info(f'🖱️ {request.action} on {request.selector!r} succeeded')
		else:
			logger.info(f'🖱️ {request.action} on {request.selector!r} failed: {result.error}')
		if self.event_bus is not None:
			self.event_bus.dispatch(
				ElementActionEvent(selector=request.selector, action=request.action, ok=result.ok, error=result.error)
			)
		return result
