"""Remembers the automation target id between processes that drive the same browser."""

import logging
from pathlib import Path

from pydantic import BaseModel, ValidationError

from desk_agent.browser.views import AutomationEndpoint
from desk_agent.config import CONFIG

logger = logging.getLogger('desk_agent.TargetStore')


class StoredTarget(BaseModel):
	host: str
	port: int
	process_label: str
	target_id: str


class TargetStore:
	"""One JSON file per endpoint, so separate CLI invocations reuse the same tab."""

	def __init__(self, endpoint: AutomationEndpoint, state_dir: Path | None = None):
		self.endpoint = endpoint
		state_dir = Path(state_dir or CONFIG.DESK_STATE_DIR).expanduser()
		self.path = state_dir / f'target-{endpoint.process_label}-{endpoint.port}.json'

	def load(self) -> str | None:
		if not self.path.exists():
			return None
		try:
			stored = StoredTarget.model_validate_json(self.path.read_text())
		except (OSError, ValidationError) as e:
			logger.debug(f'Ignoring unreadable target file {self.path}: {type(e).__name__}: {e}')
			return None
		if (stored.host, stored.port, stored.process_label) != (
			self.endpoint.host,
			self.endpoint.port,
			self.endpoint.process_label,
		):
			return None
		return stored.target_id

	def save(self, target_id: str) -> None:
		stored = StoredTarget(
			host=self.endpoint.host,
			port=self.endpoint.port,
			process_label=self.endpoint.process_label,
			target_id=target_id,
		)
		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			self.path.write_text(stored.model_dump_json())
		except OSError as e:
			logger.warning(f'⚠️ Could not remember target 🅣 {target_id} in {self.path}: {e}')

	def clear(self, target_id: str) -> None:
		"""Forget `target_id`, leaving the file alone if it already points at another target."""
		if self.load() != target_id:
			return
		try:
			self.path.unlink()
		except FileNotFoundError:
			pass
		except OSError as e:
			logger.warning(f'⚠️ Could not remove {self.path}: {e}')
