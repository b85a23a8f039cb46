from pydantic import BaseModel, ConfigDict


class ShellResult(BaseModel):
	"""Combined stdout+stderr and exit status of a command run inside the sandbox."""

	model_config = ConfigDict(frozen=True)

	output: str
	exit_code: int


class SandboxError(Exception):
	"""Base class for failures of the sandbox bridge."""

	def __init__(self, message: str):
		self.message = message
		super().__init__(message)


class ContainerNotFoundError(SandboxError):
	"""No running container matches the configured compose service."""


class ShellCommandError(SandboxError):
	"""A sandbox command exited with a non-zero status."""

	def __init__(self, exit_code: int, output: str, command_name: str = 'command'):
		self.exit_code = exit_code
		self.output = output
		super().__init__(f'{command_name} failed with exit code {exit_code}: {output.strip()[-2000:]}')
