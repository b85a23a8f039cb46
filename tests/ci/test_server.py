import pytest
from fastapi.testclient import TestClient

from desk_agent.browser.views import ConnectFailure, LaunchFailure
from desk_agent.dom.views import ActionRequest, ActionResult, DomNode, DomRect
from desk_agent.sandbox import ContainerNotFoundError, ShellCommandError
from desk_agent.server import create_app, validate_url


class FakeAutomation:
	"""Stands in for DeskAutomation at the HTTP boundary."""

	def __init__(self):
		self.navigations: list[tuple[str, bool]] = []
		self.opened: list[str] = []
		self.actions: list[tuple[str, str, str | None]] = []
		self.failure: Exception | None = None
		self.action_result = ActionResult(ok=True)
		self.loaded = True

	async def navigate(self, url, mirror_desktop=True):
		if self.failure:
			raise self.failure
		self.navigations.append((url, mirror_desktop))
		return self.loaded

	async def get_dom_snapshot(self):
		if self.failure:
			raise self.failure
		return [
			DomNode(
				id=0,
				tag='button',
				text='Search',
				aria_label='Run search',
				selector='button#go',
				rect=DomRect(x=1, y=2, width=80, height=24),
			)
		]

	async def perform_action(self, selector, action, text=None):
		ActionRequest(selector=selector, action=action, text=text)
		if self.failure:
			raise self.failure
		self.actions.append((selector, action, text))
		return self.action_result

	async def open_url(self, url):
		if self.failure:
			raise self.failure
		self.opened.append(url)
		return 'opened with firefox on DISPLAY=:1'

	def status(self):
		return {'state': 'ready', 'targetId': 'TARGET-0001', 'recentEvents': []}


@pytest.fixture
def automation():
	return FakeAutomation()


@pytest.fixture
def client(automation):
	return TestClient(create_app(automation))


class TestHealthAndOpenUrl:
	def test_health(self, client):
		assert client.get('/health').json() == {'ok': True}

	def test_open_url(self, client, automation):
		response = client.post('/tool/open_url', json={'url': 'https://example.com/'})

		assert response.status_code == 200
		assert response.json() == {'ok': True}
		assert automation.opened == ['https://example.com/']

	@pytest.mark.parametrize(
		'body, error',
		[({}, 'missing url'), ({'url': ''}, 'missing url'), ({'url': 'not a url'}, 'invalid url')],
	)
	def test_open_url_rejects_bad_input(self, client, body, error):
		response = client.post('/tool/open_url', json=body)

		assert response.status_code == 400
		assert response.json() == {'ok': False, 'error': error}

	def test_open_url_without_container(self, client, automation):
		automation.failure = ContainerNotFoundError('desk container not found')

		response = client.post('/tool/open_url', json={'url': 'https://example.com/'})

		assert response.status_code == 404
		assert response.json() == {'ok': False, 'error': 'desk container not found'}

	def test_open_url_launcher_failure(self, client, automation):
		automation.failure = ShellCommandError(127, 'no browser launcher found', command_name='docker exec in desk')

		response = client.post('/tool/open_url', json={'url': 'https://example.com/'})

		assert response.status_code == 500
		assert 'no browser launcher found' in response.json()['error']


class TestAutomationRoutes:
	def test_navigate(self, client, automation):
		response = client.post('/automation/navigate', json={'url': 'https://example.com/', 'mirrorDesktop': False})

		assert response.status_code == 200
		assert response.json() == {'ok': True, 'loaded': True}
		assert automation.navigations == [('https://example.com/', False)]

	def test_navigate_mirrors_desktop_by_default(self, client, automation):
		client.post('/automation/navigate', json={'url': 'https://example.com/'})
		assert automation.navigations == [('https://example.com/', True)]

	def test_navigate_missing_url(self, client):
		response = client.post('/automation/navigate', json={})
		assert response.status_code == 400
		assert response.json()['error'] == 'missing url'

	def test_navigate_failure_is_500(self, client, automation):
		automation.failure = LaunchFailure('Browser launch script failed: no chromium-based browser found', log_tail='')

		response = client.post('/automation/navigate', json={'url': 'https://example.com/'})

		assert response.status_code == 500
		assert response.json()['ok'] is False
		assert 'no chromium-based browser found' in response.json()['error']

	def test_dom_uses_camel_case(self, client):
		response = client.get('/automation/dom')

		assert response.status_code == 200
		node = response.json()['nodes'][0]
		assert node['ariaLabel'] == 'Run search'
		assert node['selector'] == 'button#go'
		assert node['rect'] == {'x': 1.0, 'y': 2.0, 'width': 80.0, 'height': 24.0}

	def test_dom_failure_is_500(self, client, automation):
		automation.failure = ConnectFailure('Could not attach to the automation target after 3 attempts')

		response = client.get('/automation/dom')

		assert response.status_code == 500
		assert response.json() == {'ok': False, 'error': 'Could not attach to the automation target after 3 attempts'}

	def test_action_ok(self, client, automation):
		response = client.post('/automation/action', json={'selector': '#q', 'action': 'type', 'text': 'hello'})

		assert response.status_code == 200
		assert response.json() == {'ok': True}
		assert automation.actions == [('#q', 'type', 'hello')]

	def test_action_page_failure_is_400(self, client, automation):
		automation.action_result = ActionResult(ok=False, error='selector not found')

		response = client.post('/automation/action', json={'selector': '#missing', 'action': 'click'})

		assert response.status_code == 400
		assert response.json() == {'ok': False, 'error': 'selector not found'}

	def test_action_missing_fields(self, client):
		response = client.post('/automation/action', json={'action': 'click'})
		assert response.status_code == 400
		assert response.json()['error'] == 'missing selector or action'

	def test_action_type_without_text(self, client, automation):
		response = client.post('/automation/action', json={'selector': '#q', 'action': 'type'})

		assert response.status_code == 400
		assert 'text is required' in response.json()['error']
		assert automation.actions == []

	def test_malformed_body_is_400(self, client):
		response = client.post('/automation/navigate', json={'url': 'https://example.com/', 'mirrorDesktop': 'maybe'})
		assert response.status_code == 400
		assert response.json()['ok'] is False

	def test_status(self, client):
		response = client.get('/automation/status')
		assert response.json()['state'] == 'ready'


class TestStrictCors:
	def test_foreign_origin_rejected(self, automation, monkeypatch):
		monkeypatch.setenv('AGENT_STRICT_CORS', 'true')
		monkeypatch.setenv('AGENT_ALLOWED_ORIGINS', 'https://desk.example.com')
		client = TestClient(create_app(automation))

		assert client.get('/health', headers={'Origin': 'https://evil.example.net'}).status_code == 403
		allowed = client.get('/health', headers={'Origin': 'https://desk.example.com'})
		assert allowed.status_code == 200
		assert allowed.headers['access-control-allow-origin'] == 'https://desk.example.com'
		assert client.get('/health', headers={'Origin': 'http://localhost:5173'}).status_code == 200

	def test_permissive_by_default(self, client):
		response = client.get('/health', headers={'Origin': 'https://anywhere.example.org'})
		assert response.status_code == 200
		assert response.headers['access-control-allow-origin'] == '*'


def test_validate_url():
	assert validate_url('https://example.com/path?q=1') == ('https://example.com/path?q=1', None)
	assert validate_url('about:blank') == ('about:blank', None)
	assert validate_url(None) == (None, 'missing url')
	assert validate_url('http://') == (None, 'invalid url')
	assert validate_url('example.com') == (None, 'invalid url')
