from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

MAX_SNAPSHOT_NODES = 200
MAX_TEXT_LENGTH = 160
MAX_SELECTOR_DEPTH = 5


class DomRect(BaseModel):
	model_config = ConfigDict(frozen=True)

	x: float
	y: float
	width: float
	height: float


class DomNode(BaseModel):
	"""One visible element of a snapshot.

	`id` is only the position inside the snapshot it came from; `selector` is what callers
	pass back to address the element later.
	"""

	model_config = ConfigDict(frozen=True, extra='ignore', serialize_by_alias=True)

	id: int
	tag: str
	text: str = ''
	role: str | None = None
	aria_label: str | None = Field(
		default=None,
		validation_alias=AliasChoices('aria_label', 'ariaLabel'),
		serialization_alias='ariaLabel',
	)
	href: str | None = None
	selector: str
	rect: DomRect


class ActionType(str, Enum):
	CLICK = 'click'
	TYPE = 'type'


class ActionRequest(BaseModel):
	"""A validated request to act on the element addressed by `selector`."""

	model_config = ConfigDict(extra='forbid')

	selector: str = Field(min_length=1)
	action: str = Field(min_length=1)
	text: str | None = None

	@model_validator(mode='after')
	def _check_text(self) -> 'ActionRequest':
		if self.action == ActionType.TYPE.value and self.text is None:
			raise ValueError('text is required for the "type" action')
		if self.action == ActionType.CLICK.value:
			self.text = None
		return self


class ActionResult(BaseModel):
	"""Outcome reported by the page. ok=False is a normal result, not a transport failure."""

	model_config = ConfigDict(extra='ignore')

	ok: bool
	error: str | None = None
