import logging
import time

from pydantic import TypeAdapter, ValidationError

from desk_agent.browser.session import AutomationSession, SessionAcquirer
from desk_agent.browser.views import EvaluationFailure
from desk_agent.dom.scripts import SNAPSHOT_SCRIPT
from desk_agent.dom.views import DomNode

_NODE_LIST = TypeAdapter(list[DomNode])


class DomSnapshotter:
	"""
	Produces a bounded description of the visible elements of the shared target.

	The whole snapshot is taken by one in-page evaluation, so it reflects a single
	moment of the page even while the page keeps changing.
	"""

	logger: logging.Logger

	def __init__(self, acquirer: SessionAcquirer, logger: logging.Logger | None = None):
		self.acquirer = acquirer
		self.logger = logger or logging.getLogger('desk_agent.DomSnapshotter')

	async def snapshot(self) -> list[DomNode]:
		return await self.acquirer.with_session(self.capture)

	async def capture(self, session: AutomationSession) -> list[DomNode]:
		"""Snapshot the page of an already acquired session."""
		start = time.time()
		raw = await session.evaluate(SNAPSHOT_SCRIPT)
		try:
			nodes = _NODE_LIST.validate_python(raw)
		except ValidationError as e:
			raise EvaluationFailure(
				f'DOM snapshot returned malformed data: {e.error_count()} validation error(s)',
				details={'errors': e.errors(include_url=False, include_context=False)[:5]},
			) from e
		self.logger.debug(f'📸 Captured {len(nodes)} visible elements in {time.time() - start:.2f}s')
		return nodes
