"""HTTP boundary of the desk agent.

Every error response is shaped `{"ok": false, "error": "..."}`.
"""

import logging
import re
from urllib.parse import urlsplit

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from desk_agent.browser.views import AutomationError
from desk_agent.config import CONFIG
from desk_agent.sandbox import ContainerNotFoundError, SandboxError
from desk_agent.service import DeskAutomation

logger = logging.getLogger('desk_agent.server')

DEFAULT_ALLOWED_ORIGINS = ['http://localhost:5173', 'http://127.0.0.1:5173']

_SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*$')


class OpenUrlRequest(BaseModel):
	url: str | None = None


class NavigateRequest(BaseModel):
	url: str | None = None
	mirrorDesktop: bool = True


class ElementActionRequest(BaseModel):
	selector: str | None = None
	action: str | None = None
	text: str | None = None


def error_response(status_code: int, error: str) -> JSONResponse:
	return JSONResponse(status_code=status_code, content={'ok': False, 'error': error})


def validate_url(url: str | None) -> tuple[str | None, str | None]:
	"""Return (url, None) for an absolute URL, else (None, error message)."""
	if not url:
		return None, 'missing url'
	try:
		parts = urlsplit(url.strip())
	except ValueError:
		return None, 'invalid url'
	if not parts.scheme or not _SCHEME_RE.match(parts.scheme):
		return None, 'invalid url'
	if parts.scheme in ('http', 'https') and not parts.netloc:
		return None, 'invalid url'
	return url.strip(), None


def _failure_message(error: Exception) -> str:
	if isinstance(error, (AutomationError, SandboxError)):
		return error.message
	return f'{type(error).__name__}: {error}'


def _origin_allowed(request: Request, origin: str, allowed: set[str]) -> bool:
	if origin in allowed:
		return True
	# same host as the agent itself, any port
	origin_host = urlsplit(origin).hostname
	request_host = urlsplit(f'//{request.headers.get("host", "")}').hostname
	return origin_host is not None and origin_host == request_host


def get_automation(request: Request) -> DeskAutomation:
	if request.app.state.automation is None:
		request.app.state.automation = DeskAutomation()
	return request.app.state.automation


def create_app(automation: DeskAutomation | None = None) -> FastAPI:
	"""Build the FastAPI app. The DeskAutomation is created on first use when not given."""
	app = FastAPI(title='desk-agent')
	app.state.automation = automation

	strict = CONFIG.AGENT_STRICT_CORS
	allowed_origins = DEFAULT_ALLOWED_ORIGINS + CONFIG.AGENT_ALLOWED_ORIGINS
	app.add_middleware(
		CORSMiddleware,
		allow_origins=allowed_origins if strict else ['*'],
		allow_origin_regex=r'https?://.*' if strict else None,
		allow_methods=['*'],
		allow_headers=['*'],
	)

	if strict:
		allowed = set(allowed_origins)
		logger.info(f'🔒 Strict CORS enabled, allowed origins: {sorted(allowed)}')

		@app.middleware('http')
		async def reject_foreign_origins(request: Request, call_next):
			origin = request.headers.get('origin')
			if origin and not _origin_allowed(request, origin, allowed):
				logger.warning(f'Origin {origin} not allowed by CORS')
				return error_response(403, f'Origin {origin} not allowed by CORS')
			return await call_next(request)

	@app.exception_handler(RequestValidationError)
	async def on_request_validation_error(request: Request, exc: RequestValidationError):
		first = exc.errors()[0] if exc.errors() else {}
		return error_response(400, f'invalid request: {first.get("msg", "malformed body")}')

	@app.get('/health')
	async def health():
		return {'ok': True}

	@app.post('/tool/open_url')
	async def open_url(body: OpenUrlRequest | None = None, desk: DeskAutomation = Depends(get_automation)):
		url, error = validate_url(body.url if body else None)
		if error:
			return error_response(400, error)
		logger.info(f'open_url launching in desk -> {url}')
		try:
			await desk.open_url(url)
		except ContainerNotFoundError as e:
			return error_response(404, e.message)
		except SandboxError as e:
			logger.error(f'open_url error: {e.message}')
			return error_response(500, e.message)
		return {'ok': True}

	@app.post('/automation/navigate')
	async def navigate(body: NavigateRequest | None = None, desk: DeskAutomation = Depends(get_automation)):
		url, error = validate_url(body.url if body else None)
		if error:
			return error_response(400, error)
		try:
			loaded = await desk.navigate(url, mirror_desktop=body.mirrorDesktop)
		except (AutomationError, SandboxError) as e:
			logger.error(f'automation navigate failed: {_failure_message(e)}')
			return error_response(500, _failure_message(e))
		return {'ok': True, 'loaded': loaded}

	@app.get('/automation/dom')
	async def dom(desk: DeskAutomation = Depends(get_automation)):
		try:
			nodes = await desk.get_dom_snapshot()
		except (AutomationError, SandboxError) as e:
			logger.error(f'automation dom failed: {_failure_message(e)}')
			return error_response(500, _failure_message(e))
		return {'ok': True, 'nodes': [node.model_dump(mode='json', by_alias=True) for node in nodes]}

	@app.post('/automation/action')
	async def action(body: ElementActionRequest | None = None, desk: DeskAutomation = Depends(get_automation)):
		if body is None or not body.selector or not body.action:
			return error_response(400, 'missing selector or action')
		try:
			result = await desk.perform_action(body.selector, body.action, body.text)
		except ValidationError as e:
			return error_response(400, e.errors(include_url=False)[0]['msg'])
		except (AutomationError, SandboxError) as e:
			logger.error(f'automation action failed: {_failure_message(e)}')
			return error_response(500, _failure_message(e))
		if not result.ok:
			return error_response(400, result.error or 'action failed')
		return {'ok': True}

	@app.get('/automation/status')
	async def status(desk: DeskAutomation = Depends(get_automation)):
		return {'ok': True, **desk.status()}

	return app
