"""
Action bridge: runs a batch of edit actions against a label session and
repairs the result with the normalizer chain.
"""

# Standard Library
import asyncio

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.changes
import label_rebuild_kit.config
import label_rebuild_kit.editor
import label_rebuild_kit.items
import label_rebuild_kit.media
import label_rebuild_kit.normalize
import label_rebuild_kit.preview
import label_rebuild_kit.reconcile
import label_rebuild_kit.registry
import label_rebuild_kit.targets


RunOptions = lrk.config.RunOptions
RunResult = lrk.config.RunResult
BatchArena = lrk.targets.BatchArena
TargetResolver = lrk.targets.TargetResolver
SELECTED_POINTERS = lrk.targets.SELECTED_POINTERS

DEFAULT_X_OFFSET = lrk.config.DEFAULT_X_OFFSET
DEFAULT_Y_OFFSET = lrk.config.DEFAULT_Y_OFFSET
ORIENTATIONS = lrk.config.ORIENTATIONS
WARNING_UNKNOWN_PROPERTY = lrk.config.WARNING_UNKNOWN_PROPERTY
WARNING_ALIGN_SUPPRESSED = lrk.config.WARNING_ALIGN_SUPPRESSED
ERROR_ACTION_UNSUPPORTED = lrk.config.ERROR_ACTION_UNSUPPORTED
ERROR_ITEM_NOT_FOUND = lrk.config.ERROR_ITEM_NOT_FOUND
ERROR_INVALID_ITEM_TYPE = lrk.config.ERROR_INVALID_ITEM_TYPE
ERROR_NO_APPLICABLE_CHANGES = lrk.config.ERROR_NO_APPLICABLE_CHANGES
ERROR_INVALID_PAYLOAD = lrk.config.ERROR_INVALID_PAYLOAD
ERROR_ALIGN_FAILED = lrk.config.ERROR_ALIGN_FAILED

VERBS = (
	"add_item",
	"update_item",
	"remove_item",
	"clear_items",
	"select_items",
	"align_selected",
	"set_label",
)
BUILD_VERBS = frozenset({"add_item", "update_item"})
ITEM_TYPE_ALIASES = {
	"qrcode": "qr",
	"qr_code": "qr",
	"bar_code": "barcode",
	"picture": "image",
	"label": "text",
}
SHAPE_ITEM_TYPES = frozenset({"rect", "rectangle", "roundrect", "oval", "ellipse", "polygon", "line"})
SHAPE_TYPE_ALIASES = {"rectangle": "rect", "roundrect": "roundRect", "ellipse": "oval"}
ALIGN_FAILURE_REASONS = frozenset({"no-selection", "need-multiple", "invalid-mode"})
CAPABILITY_NOTES = (
	"Use update_item with target 'last' to edit the item added just before.",
	"Items added in this batch can be referenced as item-1, item-2, ... in order of creation.",
	"Targets may also be 'first', 'selected', an item id, or a zero-based itemIndex.",
	"QR codes are square: set size instead of width or height.",
	"Start a batch with clear_items to rebuild the label from scratch.",
)


class ActionError(Exception):
	"""
	Structural problem with one action; reported and skipped.
	"""

	def __init__(self, key: str, detail: str = ""):
		message = f"{key}: {detail}" if detail else key
		super().__init__(message)
		self.key = key
		self.detail = detail


#============================================
def infer_force_rebuild(actions: list[dict]) -> bool:
	"""
	Guess whether a batch builds a layout from scratch.

	Args:
		actions: Actions with canonical verbs.

	Returns:
		True when the batch starts with clear_items followed only by adds/updates.
	"""
	if not actions or actions[0].get("action") != "clear_items":
		return False
	return all(action.get("action") in BUILD_VERBS for action in actions[1:])


#============================================
def is_selection_pointer(action: dict) -> bool:
	"""
	Check whether an action explicitly targets the current selection.
	"""
	pointer = action.get("target", action.get("itemId"))
	return isinstance(pointer, str) and pointer.strip().lower() in SELECTED_POINTERS


#============================================
def resolve_item_type(action: dict) -> tuple[str, str]:
	"""
	Read the item type and shape variant an add_item action asks for.

	Args:
		action: Raw action dict.

	Returns:
		Tuple of (item_type, shape_type).
	"""
	nested = action.get("item") if isinstance(action.get("item"), dict) else {}
	raw_type = action.get("itemType") or action.get("type") or nested.get("type") or nested.get("itemType")
	if not raw_type:
		raw_type = lrk.changes.infer_item_type(lrk.changes.extract_changes_payload(action))
	item_type = str(raw_type).strip().lower()
	raw_shape = action.get("shapeType") or nested.get("shapeType") or "rect"
	shape_type = str(raw_shape).strip()
	if item_type in SHAPE_ITEM_TYPES:
		shape_type = item_type
		item_type = "shape"
	shape_type = SHAPE_TYPE_ALIASES.get(shape_type.lower(), shape_type)
	return (ITEM_TYPE_ALIASES.get(item_type, item_type), shape_type)


class ActionBridge:
	"""
	Sequential interpreter for proposer action batches.
	"""

	def __init__(self, session, renderer=None, editor=None, verbose: bool = False):
		self.session = session
		self.renderer = renderer if renderer is not None else lrk.preview.PreviewRenderer(session)
		self.editor = editor if editor is not None else lrk.editor.SelectionEditor(session, self.renderer)
		self.scheduler = lrk.reconcile.RenderScheduler(self.renderer)
		self.reconciler = lrk.reconcile.BoundsReconciler(self.scheduler, verbose=verbose)
		self.verbose = verbose
		self.last_normalization = None

	def get_action_capabilities(self) -> dict:
		"""
		Describe accepted verbs and item fields for prompt construction.

		Returns:
			Dict with actions, itemProperties and notes.
		"""
		return {
			"actions": list(VERBS),
			"itemProperties": lrk.items.item_properties(),
			"notes": list(CAPABILITY_NOTES),
		}

	def run_actions_sync(self, actions: list, options: RunOptions | None = None) -> RunResult:
		"""
		Run an action batch on a fresh event loop.
		"""
		return asyncio.run(self.run_actions(actions, options))

	async def run_actions(self, actions: list, options: RunOptions | None = None) -> RunResult:
		"""
		Apply an action batch, then normalize a rebuilt layout.

		Structural problems are collected as errors and the batch continues
		with the next action. Incremental batches leave placement to the
		caller; only rebuild batches run the normalizer chain.

		Args:
			actions: Ordered list of action dicts.
			options: Run options; forceRebuild is inferred when unset.

		Returns:
			RunResult with errors and warnings.
		"""
		if options is None:
			options = RunOptions()
		result = RunResult()
		if not isinstance(actions, list):
			result.errors.append(f"{ERROR_INVALID_PAYLOAD}: actions must be a list")
			return result

		batch: list[dict] = []
		for index, action in enumerate(actions):
			if not isinstance(action, dict):
				result.errors.append(f"{ERROR_INVALID_PAYLOAD}: action {index + 1} is not an object")
				continue
			canonical = dict(action)
			canonical["action"] = lrk.changes.normalize_action_name(action.get("action"))
			batch.append(canonical)

		force_rebuild = options.force_rebuild
		if force_rebuild is None:
			force_rebuild = infer_force_rebuild(batch)
		elif force_rebuild and (not batch or batch[0]["action"] != "clear_items"):
			batch.insert(0, {"action": "clear_items"})
		allow_create = options.allow_create_if_missing
		if allow_create is None:
			allow_create = force_rebuild

		preferred_media = lrk.media.resolve_preferred_media(options.preferred_media)
		if preferred_media is not None:
			self.session.settings.media = preferred_media

		arena = BatchArena()
		resolver = TargetResolver(self.session, self.editor, arena)
		self._log(f"Running {len(batch)} actions (rebuild={force_rebuild})")
		mutated = False
		for action in batch:
			try:
				changed = await self._dispatch(action, arena, resolver, result, force_rebuild, allow_create)
			except ActionError as error:
				result.errors.append(str(error))
				self._log(f"Action {action['action']} failed: {error}")
				continue
			except (TypeError, ValueError) as error:
				result.errors.append(f"{ERROR_INVALID_PAYLOAD}: {error}")
				self._log(f"Action {action['action']} rejected: {error}")
				continue
			result.executed += 1
			mutated = mutated or changed

		if force_rebuild and mutated and self.session.items:
			context = lrk.normalize.NormalizationContext(self.session, self.editor, self.reconciler, self.verbose)
			self.last_normalization = await lrk.registry.run_normalization(context)
			for warning in context.warnings:
				self._add_warning(result, warning)
		return result

	async def _dispatch(self, action, arena, resolver, result, force_rebuild, allow_create) -> bool:
		verb = action["action"]
		if verb == "add_item":
			return self._add_item(action, arena, result)
		if verb == "update_item":
			return self._update_item(action, arena, resolver, result, allow_create)
		if verb == "remove_item":
			return self._remove_item(action, arena, resolver)
		if verb == "clear_items":
			self.session.clear_items()
			arena.reset()
			self.editor.set_selected_item_ids([])
			return True
		if verb == "select_items":
			return self._select_items(action, arena, resolver)
		if verb == "align_selected":
			return await self._align_selected(action, arena, resolver, result, force_rebuild)
		if verb == "set_label":
			return self._set_label(action)
		raise ActionError(ERROR_ACTION_UNSUPPORTED, verb or "<missing>")

	def _add_item(self, action, arena, result, changes=None, item_type=None) -> bool:
		shape_type = "rect"
		if item_type is None:
			item_type, shape_type = resolve_item_type(action)
		if item_type not in lrk.items.ITEM_TYPES:
			raise ActionError(ERROR_INVALID_ITEM_TYPE, item_type)
		if changes is None:
			changes = lrk.changes.extract_changes_payload(action)
		item = self.session.add_item(item_type, shape_type)
		try:
			report = lrk.changes.apply_item_changes(item, changes, self.session.settings)
		except (TypeError, ValueError):
			self.session.remove_items([item.id])
			raise
		reference = action.get("reference") or action.get("itemId") or action.get("target")
		arena.register_added(item.id, reference if isinstance(reference, str) else None)
		self._log(f"Added {item_type} item {item.id}")
		self._report_unknown(result, report.unknown)
		if lrk.changes.changes_have_explicit_placement(changes):
			arena.placed_ids.add(item.id)
		return True

	def _update_item(self, action, arena, resolver, result, allow_create) -> bool:
		changes = lrk.changes.extract_changes_payload(action)
		item = resolver.resolve_action_target(action)
		if item is None:
			reference = action.get("itemId", action.get("target", action.get("itemIndex", "selected")))
			if not allow_create or is_selection_pointer(action):
				raise ActionError(ERROR_ITEM_NOT_FOUND, str(reference))
			item_type = lrk.changes.infer_item_type(changes)
			self._log(f"Target {reference} missing, creating {item_type} item")
			return self._add_item(action, arena, result, changes, item_type)
		report = lrk.changes.apply_item_changes(item, changes, self.session.settings)
		self._report_unknown(result, report.unknown)
		if not report.applied:
			raise ActionError(ERROR_NO_APPLICABLE_CHANGES, item.id)
		arena.touch(item.id)
		if lrk.changes.changes_have_explicit_placement(changes):
			arena.placed_ids.add(item.id)
		return True

	def _remove_item(self, action, arena, resolver) -> bool:
		if "itemIds" in action:
			item_ids = resolver.resolve_many(action["itemIds"])
		else:
			item = resolver.resolve_action_target(action)
			item_ids = [item.id] if item is not None else []
		if not item_ids:
			reference = action.get("itemIds", action.get("itemId", action.get("target", "selected")))
			raise ActionError(ERROR_ITEM_NOT_FOUND, str(reference))
		self.session.remove_items(item_ids)
		arena.selection_snapshot = [item_id for item_id in arena.selection_snapshot if item_id not in item_ids]
		return True

	def _select_items(self, action, arena, resolver) -> bool:
		references = action.get("itemIds")
		if references is None:
			references = action.get("items", action.get("target", []))
		item_ids = resolver.resolve_many(references)
		if references and not item_ids:
			raise ActionError(ERROR_ITEM_NOT_FOUND, str(references))
		self.editor.set_selected_item_ids(item_ids)
		arena.selection_snapshot = list(item_ids)
		return False

	async def _align_selected(self, action, arena, resolver, result, force_rebuild) -> bool:
		if action.get("itemIds"):
			self._select_items(action, arena, resolver)
		selected = resolver.resolve_selected_ids()
		if not selected and len(arena.touched_ids) >= 2:
			selected = list(arena.touched_ids)
			self.editor.set_selected_item_ids(selected)
			arena.selection_snapshot = list(selected)
		if force_rebuild and selected and all(self._is_explicitly_placed(item_id, arena) for item_id in selected):
			self._add_warning(result, WARNING_ALIGN_SUPPRESSED)
			self._log("Align suppressed: selection is explicitly placed")
			return False
		if selected:
			self.editor.set_selected_item_ids(selected)
			await self.reconciler.refresh(selected)
		mode = action.get("mode") or action.get("alignment") or "left"
		reference = action.get("reference") or action.get("relativeTo") or "selection"
		align_result = self.editor.align_selected_items(mode, reference)
		if not align_result.changed and align_result.reason in ALIGN_FAILURE_REASONS:
			raise ActionError(ERROR_ALIGN_FAILED, align_result.reason)
		return align_result.changed

	def _set_label(self, action) -> bool:
		payload = lrk.changes.extract_changes_payload(action)
		settings_payload = action.get("settings") if isinstance(action.get("settings"), dict) else payload
		settings = self.session.settings
		changed = False
		if "media" in settings_payload:
			media_id = lrk.media.resolve_preferred_media(str(settings_payload["media"]))
			if media_id is None:
				raise ActionError(ERROR_INVALID_PAYLOAD, f"unknown media {settings_payload['media']}")
			settings.media = media_id
			changed = True
		if "resolution" in settings_payload:
			resolution = str(settings_payload["resolution"]).strip().upper()
			if resolution not in lrk.media.RESOLUTIONS:
				raise ActionError(ERROR_INVALID_PAYLOAD, f"unknown resolution {resolution}")
			settings.resolution = resolution
			changed = True
		if "mediaLengthMm" in settings_payload:
			length = settings_payload["mediaLengthMm"]
			settings.media_length_mm = None if length in (None, "", 0) else float(length)
			changed = True
		if "orientation" in settings_payload:
			orientation = str(settings_payload["orientation"]).strip().lower()
			if orientation not in ORIENTATIONS:
				raise ActionError(ERROR_INVALID_PAYLOAD, f"unknown orientation {orientation}")
			settings.orientation = orientation
			changed = True
		if not changed:
			raise ActionError(ERROR_NO_APPLICABLE_CHANGES, "set_label")
		for item in lrk.items.items_of_type(self.session.items, "qr"):
			item.size = lrk.media.clamp_qr_size(item.size, settings)
		return True

	def _is_explicitly_placed(self, item_id: str, arena: BatchArena) -> bool:
		if item_id not in arena.placed_ids:
			return False
		item = self.session.find_item(item_id)
		if item is None:
			return False
		return item.x_offset != DEFAULT_X_OFFSET or item.y_offset != DEFAULT_Y_OFFSET

	def _report_unknown(self, result: RunResult, unknown: list[str]) -> None:
		if unknown:
			self._add_warning(result, f"{WARNING_UNKNOWN_PROPERTY}: {', '.join(sorted(unknown))}")

	def _add_warning(self, result: RunResult, message: str) -> None:
		if message not in result.warnings:
			result.warnings.append(message)

	def _log(self, message: str) -> None:
		if self.verbose:
			print(message)
