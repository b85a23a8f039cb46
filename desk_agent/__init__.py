from typing import TYPE_CHECKING

from desk_agent.logging_config import setup_logging

logger = setup_logging()

if TYPE_CHECKING:
	from desk_agent.browser.launcher import BrowserLauncher
	from desk_agent.browser.session import SessionAcquirer
	from desk_agent.browser.views import AutomationEndpoint
	from desk_agent.dom.views import ActionResult, DomNode
	from desk_agent.service import DeskAutomation

_LAZY_IMPORTS = {
	'DeskAutomation': ('desk_agent.service', 'DeskAutomation'),
	'BrowserLauncher': ('desk_agent.browser.launcher', 'BrowserLauncher'),
	'SessionAcquirer': ('desk_agent.browser.session', 'SessionAcquirer'),
	'AutomationEndpoint': ('desk_agent.browser.views', 'AutomationEndpoint'),
	'ActionResult': ('desk_agent.dom.views', 'ActionResult'),
	'DomNode': ('desk_agent.dom.views', 'DomNode'),
}


def __getattr__(name: str):
	if name in _LAZY_IMPORTS:
		from importlib import import_module

		module_path, attr_name = _LAZY_IMPORTS[name]
		attr = getattr(import_module(module_path), attr_name)
		globals()[name] = attr
		return attr
	raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
	'ActionResult',
	'AutomationEndpoint',
	'BrowserLauncher',
	'DeskAutomation',
	'DomNode',
	'SessionAcquirer',
]
