"""
Normalization pass interface and the shared run context.
"""

# Standard Library
import dataclasses

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.config
import label_rebuild_kit.geometry
import label_rebuild_kit.reconcile


Bounds = lrk.geometry.Bounds
PreviewSize = lrk.geometry.PreviewSize
BoundsSnapshot = lrk.reconcile.BoundsSnapshot

WARNING_RENDER_FAILED = lrk.config.WARNING_RENDER_FAILED


@dataclasses.dataclass
class NormalizationResult:
	name: str
	did_mutate: bool = False
	placement_resolved: bool = True
	reason: str = ""


class NormalizationContext:
	"""
	Everything a normalizer may touch while it runs.
	"""

	def __init__(self, session, editor, reconciler, verbose: bool = False):
		self.session = session
		self.editor = editor
		self.reconciler = reconciler
		self.verbose = verbose
		self.warnings: list[str] = []

	@property
	def items(self) -> list:
		return self.session.items

	@property
	def settings(self):
		return self.session.settings

	def warn(self, message: str) -> None:
		if message not in self.warnings:
			self.warnings.append(message)

	def log(self, message: str) -> None:
		if self.verbose:
			print(message)

	async def refresh(self, required_ids: list[str] | None = None) -> BoundsSnapshot:
		"""
		Render and return bounds for the current items.

		Args:
			required_ids: Ids that must have bounds; defaults to every item.

		Returns:
			BoundsSnapshot from the reconciler.
		"""
		if required_ids is None:
			required_ids = self.session.item_ids()
		snapshot = await self.reconciler.refresh(required_ids)
		if snapshot.failed_frames:
			self.warn(WARNING_RENDER_FAILED)
		return snapshot


class Normalizer:
	"""
	A structural pattern recognizer paired with its layout repair.

	matches() must be side-effect free. apply() may mutate the session
	items and run further render and measure cycles through the context.
	"""

	name = "normalizer"

	def matches(self, items: list, bounds: dict[str, Bounds]) -> bool:
		raise NotImplementedError

	async def apply(self, context: NormalizationContext) -> NormalizationResult:
		raise NotImplementedError
