import asyncio
import logging

logger = logging.getLogger(__name__)


class DebugPortWaiter:
	"""Polls a TCP endpoint until something accepts connections on it."""

	def __init__(self, connect_timeout: float = 1.0):
		self.connect_timeout = connect_timeout

	async def probe(self, host: str, port: int) -> bool:
		"""Single connection attempt. The connection is closed right away."""
		try:
			_, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=self.connect_timeout)
		except (OSError, TimeoutError):
			return False
		writer.close()
		try:
			await writer.wait_closed()
		except OSError:
			pass
		return True

	async def wait(self, host: str, port: int, timeout: float = 20.0, interval: float = 0.5) -> bool:
		"""Return True as soon as a connection succeeds, False once `timeout` seconds have elapsed."""
		loop = asyncio.get_running_loop()
		deadline = loop.time() + timeout
		attempts = 0
		while True:
			attempts += 1
			if await self.probe(host, port):
				logger.debug(f'🔌 {host}:{port} accepted a connection after {attempts} attempt(s)')
				return True
			if loop.time() + interval > deadline:
				logger.debug(f'🔌 {host}:{port} still closed after {timeout}s ({attempts} attempts)')
				return False
			await asyncio.sleep(interval)
