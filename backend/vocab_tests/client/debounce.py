from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Callable, Optional, Set, Tuple


class Debouncer:
	"""Trailing-edge debounce for an async callable.

	Each call replaces the pending one and restarts the delay; only the last
	arguments are ever delivered. Deliveries never overlap, so they reach
	``func`` in call order, and ``flush`` returns only once nothing is pending
	or in flight. Must be used from a running event loop.
	"""

	def __init__(self, delay: float, func: Callable[..., Awaitable[Any]]) -> None:
		self.delay = delay
		self.func = func
		self._task: Optional[asyncio.Task] = None
		self._args: Optional[Tuple[Any, ...]] = None
		self._lock = asyncio.Lock()
		self._delivering: Set[asyncio.Task] = set()

	@property
	def pending(self) -> bool:
		return self._args is not None

	def __call__(self, *args: Any) -> None:
		self._cancel_timer()
		self._args = args
		task = asyncio.get_running_loop().create_task(self._fire_later())
		task.add_done_callback(self._delivering.discard)
		self._task = task

	async def _fire_later(self) -> None:
		await asyncio.sleep(self.delay)
		# Detach before running so a call made from inside func schedules anew
		self._task = None
		self._delivering.add(asyncio.current_task())
		await self._run()

	async def _run(self) -> None:
		async with self._lock:
			args, self._args = self._args, None
			if args is not None:
				await self.func(*args)

	async def flush(self) -> None:
		"""Deliver the pending call now and wait for any delivery already running."""
		self._cancel_timer()
		await self._run()

	def cancel(self) -> None:
		self._cancel_timer()
		self._args = None
		for task in list(self._delivering):
			task.cancel()

	def _cancel_timer(self) -> None:
		if self._task is not None:
			self._task.cancel()
			self._task = None
