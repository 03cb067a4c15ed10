"""
Render scheduling and bounds reconciliation against an async renderer.
"""

# Standard Library
import asyncio
import dataclasses

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config
import label_rebuild_kit.geometry


Bounds = lrk.geometry.Bounds
PreviewSize = lrk.geometry.PreviewSize

RENDER_RETRY_LIMIT = lrk.config.RENDER_RETRY_LIMIT

IDLE = "idle"
BUSY = "busy"


class RenderFailedError(Exception):
	"""
	A render frame raised; the renderer error is chained as the cause.
	"""


@dataclasses.dataclass
class BoundsSnapshot:
	bounds: dict[str, Bounds]
	preview: PreviewSize
	missing_ids: list[str] = dataclasses.field(default_factory=list)
	attempts: int = 0
	failed_frames: int = 0

	@property
	def complete(self) -> bool:
		return not self.missing_ids


#============================================
def _settle(waiters: list[asyncio.Future], error: BaseException | None) -> int:
	"""
	Resolve the futures waiting on a frame, skipping cancelled ones.

	Args:
		waiters: Futures registered for the frame.
		error: Failure to forward, or None on success.

	Returns:
		Number of futures that were still live.
	"""
	live = 0
	for future in waiters:
		if future.done():
			continue
		live += 1
		if error is None:
			future.set_result(None)
		else:
			failure = RenderFailedError(str(error))
			failure.__cause__ = error
			future.set_exception(failure)
	return live


class RenderScheduler:
	"""
	Two-state render scheduler: idle, or busy with an optional queued rerun.

	A request made while idle starts a frame. A request made while busy
	marks the scheduler queued and is answered by the next frame, which
	starts only after the in-flight frame completes. Every future therefore
	resolves after a frame that began after its request. Cancelling a
	future withdraws it; a queued rerun with no live waiters is skipped.
	"""

	def __init__(self, renderer):
		self.renderer = renderer
		self.state = IDLE
		self.queued = False
		self.frames_started = 0
		self._current_waiters: list[asyncio.Future] = []
		self._queued_waiters: list[asyncio.Future] = []
		self._task: asyncio.Task | None = None

	def request(self) -> asyncio.Future:
		loop = asyncio.get_running_loop()
		future = loop.create_future()
		if self.state == BUSY:
			self.queued = True
			self._queued_waiters.append(future)
			return future
		self.state = BUSY
		self._current_waiters = [future]
		self._task = loop.create_task(self._run())
		return future

	async def wait_idle(self) -> None:
		while self._task is not None and not self._task.done():
			await asyncio.shield(self._task)

	async def _run(self) -> None:
		while True:
			waiters = self._current_waiters
			self.frames_started += 1
			error = None
			try:
				await self.renderer.render_frame()
			except Exception as render_error:
				error = render_error
			live = _settle(waiters, error)
			pending = [future for future in self._queued_waiters if not future.done()]
			if not self.queued or not pending:
				self._reset()
				if error is not None and live == 0:
					raise error
				return
			self.queued = False
			self._current_waiters = pending
			self._queued_waiters = []

	def _reset(self) -> None:
		self.state = IDLE
		self.queued = False
		self._current_waiters = []
		self._queued_waiters = []


class BoundsReconciler:
	"""
	Obtains a bounds map that reflects the current item list.
	"""

	def __init__(self, scheduler: RenderScheduler, retry_limit: int = RENDER_RETRY_LIMIT, verbose: bool = False):
		self.scheduler = scheduler
		self.retry_limit = retry_limit
		self.verbose = verbose

	async def refresh(self, required_ids: list[str] | None = None) -> BoundsSnapshot:
		"""
		Render until every required id has bounds or the retry ceiling is hit.

		The ceiling is soft: the last snapshot is returned with its missing
		ids listed instead of raising.

		Args:
			required_ids: Item ids the caller is about to measure.

		Returns:
			BoundsSnapshot holding copies of the renderer state.
		"""
		required = list(required_ids or [])
		attempts = 0
		failed_frames = 0
		while True:
			attempts += 1
			try:
				await self.scheduler.request()
			except RenderFailedError as error:
				failed_frames += 1
				if self.verbose:
					print(f"Render frame failed: {error}")
			renderer = self.scheduler.renderer
			bounds = {item_id: box.copy() for item_id, box in renderer.bounds_by_id.items()}
			preview = dataclasses.replace(renderer.preview_size)
			missing = [item_id for item_id in required if item_id not in bounds]
			if not missing or attempts > self.retry_limit:
				if missing and self.verbose:
					print(f"Render retries exhausted: {len(missing)} ids without bounds")
				return BoundsSnapshot(bounds, preview, missing, attempts, failed_frames)
			if self.verbose:
				print(f"Render retry {attempts}/{self.retry_limit}: missing {len(missing)} ids")
