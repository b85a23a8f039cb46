from desk_agent.sandbox.executor import DockerExecutor, LocalShellExecutor, ShellExecutor, create_executor
from desk_agent.sandbox.views import ContainerNotFoundError, SandboxError, ShellCommandError, ShellResult

__all__ = [
	'ContainerNotFoundError',
	'DockerExecutor',
	'LocalShellExecutor',
	'SandboxError',
	'ShellCommandError',
	'ShellExecutor',
	'ShellResult',
	'create_executor',
]
