import asyncio
import json
import os
import sys

import click
from pydantic import ValidationError

from desk_agent.browser.views import AutomationError
from desk_agent.config import CONFIG
from desk_agent.logging_config import setup_logging
from desk_agent.sandbox import SandboxError, create_executor
from desk_agent.service import DeskAutomation


def _run(coro) -> None:
	try:
		asyncio.run(coro)
	except (AutomationError, SandboxError) as e:
		click.echo(f'❌ {e.message}', err=True)
		sys.exit(1)
	except ValidationError as e:
		click.echo(f'❌ invalid request: {e.errors(include_url=False)[0]["msg"]}', err=True)
		sys.exit(2)


@click.group()
@click.option('--debug', is_flag=True, help='Enable verbose logging')
@click.option('--executor', type=click.Choice(['docker', 'local']), default=None, help='Where sandbox commands run')
@click.pass_context
def main(ctx: click.Context, debug: bool = False, executor: str | None = None):
	"""Drive the sandbox desktop browser from the command line."""
	setup_logging(log_level='debug' if debug else None)
	ctx.ensure_object(dict)
	ctx.obj['executor'] = executor


def _automation(ctx: click.Context) -> DeskAutomation:
	return DeskAutomation(executor=create_executor(ctx.obj.get('executor')))


@main.command()
@click.option('--host', default=None, help='Bind address (default AGENT_HOST)')
@click.option('--port', type=int, default=None, help='Bind port (default AGENT_PORT)')
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None):
	"""Run the HTTP agent."""
	import uvicorn

	if ctx.obj.get('executor'):
		# the app builds its own DeskAutomation from the environment
		os.environ['DESK_EXECUTOR'] = ctx.obj['executor']

	uvicorn.run(
		'desk_agent.server:create_app',
		factory=True,
		host=host or CONFIG.AGENT_HOST,
		port=port or CONFIG.AGENT_PORT,
		log_config=None,
	)


@main.command()
@click.pass_context
def launch(ctx: click.Context):
	"""Start the automation browser if it is not running yet."""
	desk = _automation(ctx)

	async def _launch():
		await desk.launcher.ensure_running()
		click.echo(f'✅ Browser reachable on {desk.endpoint.cdp_http_url}')

	_run(_launch())


@main.command()
@click.argument('url')
@click.option('--no-mirror', is_flag=True, help='Do not bring the automation tab to the front')
@click.pass_context
def navigate(ctx: click.Context, url: str, no_mirror: bool):
	"""Navigate the shared automation tab to URL."""
	desk = _automation(ctx)

	async def _navigate():
		loaded = await desk.navigate(url, mirror_desktop=not no_mirror)
		click.echo(f'{"✅ Loaded" if loaded else "⏱️ Navigated (load event not seen)"} {url}')

	_run(_navigate())


@main.command()
@click.pass_context
def snapshot(ctx: click.Context):
	"""Print the visible elements of the automation tab as JSON."""
	desk = _automation(ctx)

	async def _snapshot():
		nodes = await desk.get_dom_snapshot()
		click.echo(json.dumps([node.model_dump(mode='json', by_alias=True) for node in nodes], indent=2))

	_run(_snapshot())


@main.command()
@click.argument('action')
@click.argument('selector')
@click.option('--text', default=None, help='Text to type (required for "type")')
@click.pass_context
def act(ctx: click.Context, action: str, selector: str, text: str | None):
	"""Click or type into the element matching SELECTOR."""
	desk = _automation(ctx)

	async def _act():
		result = await desk.perform_action(selector, action, text)
		if not result.ok:
			click.echo(f'❌ {action} on {selector}: {result.error}', err=True)
			sys.exit(1)
		click.echo(f'✅ {action} on {selector}')

	_run(_act())


@main.command()
@click.pass_context
def stop(ctx: click.Context):
	"""Terminate the automation browser."""
	desk = _automation(ctx)

	async def _stop():
		await desk.stop()
		click.echo('🛑 Browser stopped')

	_run(_stop())


if __name__ == '__main__':
	main()
