"""Shell command execution inside the sandbox desktop.

Two bridges are provided: DockerExecutor runs commands in the compose-managed
`desk` container through the Docker SDK, LocalShellExecutor runs them on the
current host (used when the agent itself lives inside the sandbox, and in tests).
"""

import asyncio
import logging
import os
from typing import Any, Protocol

import docker
from docker.errors import DockerException

from desk_agent.config import CONFIG
from desk_agent.sandbox.views import ContainerNotFoundError, SandboxError, ShellCommandError, ShellResult

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 60.0


class ShellExecutor(Protocol):
	async def execute(
		self, command: str, env: dict[str, str] | None = None, timeout: float | None = DEFAULT_COMMAND_TIMEOUT
	) -> ShellResult: ...


class LocalShellExecutor:
	"""Runs `bash -lc <command>` as a local subprocess with stderr merged into stdout."""

	def __init__(self, shell: str = 'bash'):
		self.shell = shell

	async def execute(
		self, command: str, env: dict[str, str] | None = None, timeout: float | None = DEFAULT_COMMAND_TIMEOUT
	) -> ShellResult:
		process = await asyncio.create_subprocess_exec(
			self.shell,
			'-lc',
			command,
			stdout=asyncio.subprocess.PIPE,
			stderr=asyncio.subprocess.STDOUT,
			stdin=asyncio.subprocess.DEVNULL,
			env={**os.environ, **(env or {})},
		)
		try:
			stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
		except TimeoutError:
			process.kill()
			await process.wait()
			raise SandboxError(f'Local shell command timed out after {timeout}s')

		output = stdout.decode(errors='replace')
		exit_code = process.returncode if process.returncode is not None else -1
		logger.debug(f'🐚 local shell exited with {exit_code} ({len(output)} bytes of output)')
		if exit_code != 0:
			raise ShellCommandError(exit_code, output, command_name='local shell command')
		return ShellResult(output=output, exit_code=exit_code)


class DockerExecutor:
	"""Runs commands inside the first running container of a docker compose service."""

	def __init__(self, service: str | None = None, client: Any | None = None):
		self.service = service or CONFIG.DESK_CONTAINER_SERVICE
		self._client = client

	@property
	def client(self) -> Any:
		# created on first use so importing the app never requires a reachable docker daemon
		if self._client is None:
			self._client = docker.from_env()
		return self._client

	def _find_container(self) -> Any:
		containers = self.client.containers.list(filters={'label': f'com.docker.compose.service={self.service}'})
		if not containers:
			raise ContainerNotFoundError(f'{self.service} container not found')
		return containers[0]

	def _execute_sync(self, command: str, env: dict[str, str] | None) -> ShellResult:
		container = self._find_container()
		logger.debug(f'🐳 docker exec in {container.name}: {command[:80]!r}')
		exit_code, output = container.exec_run(
			['bash', '-lc', command],
			environment=env or {},
			stdout=True,
			stderr=True,
			demux=False,
		)
		text = (output or b'').decode(errors='replace')
		exit_code = exit_code if exit_code is not None else -1
		if exit_code != 0:
			raise ShellCommandError(exit_code, text, command_name=f'docker exec in {self.service}')
		return ShellResult(output=text, exit_code=exit_code)

	async def execute(
		self, command: str, env: dict[str, str] | None = None, timeout: float | None = DEFAULT_COMMAND_TIMEOUT
	) -> ShellResult:
		try:
			return await asyncio.wait_for(asyncio.to_thread(self._execute_sync, command, env), timeout=timeout)
		except TimeoutError:
			raise SandboxError(f'docker exec in {self.service} timed out after {timeout}s')
		except DockerException as e:
			raise SandboxError(f'Docker bridge unavailable: {type(e).__name__}: {e}') from e


def create_executor(kind: str | None = None) -> ShellExecutor:
	"""Build the executor selected by DESK_EXECUTOR ('docker' or 'local')."""
	kind = (kind or CONFIG.DESK_EXECUTOR).lower()
	if kind == 'local':
		return LocalShellExecutor()
	if kind == 'docker':
		return DockerExecutor()
	raise ValueError(f'Unknown DESK_EXECUTOR {kind!r}, expected "docker" or "local"')
