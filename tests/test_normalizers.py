import asyncio

import label_rebuild_kit.boxed_barcode as boxed_barcode
import label_rebuild_kit.config as config
import label_rebuild_kit.editor as editor
import label_rebuild_kit.fallback as fallback
import label_rebuild_kit.geometry as geometry
import label_rebuild_kit.items as items
import label_rebuild_kit.marker_group as marker_group
import label_rebuild_kit.normalize as normalize
import label_rebuild_kit.preview as preview
import label_rebuild_kit.qr_form as qr_form
import label_rebuild_kit.reconcile as reconcile
import label_rebuild_kit.registry as registry
import label_rebuild_kit.session as session


#============================================
def _build_context(label: session.LabelSession) -> normalize.NormalizationContext:
	"""
	Wire a session to the reference renderer for a normalization run.
	"""
	renderer = preview.PreviewRenderer(label)
	selection = editor.SelectionEditor(label, renderer)
	reconciler = reconcile.BoundsReconciler(reconcile.RenderScheduler(renderer))
	return normalize.NormalizationContext(label, selection, reconciler)


#============================================
def _add_text(label: session.LabelSession, text: str, font_size: float, x: int = 0, y: int = 0, mode: str = "absolute"):
	item = label.add_text_item()
	item.text = text
	item.font_size = font_size
	item.position_mode = mode
	item.x_offset = x
	item.y_offset = y
	return item


#============================================
def test_inventory_card_rebuilds_template(w24_session: session.LabelSession) -> None:
	"""
	Inventory fields become six styled rows and one QR code to their right.
	"""
	label = w24_session
	_add_text(label, "Artikelname: Schraube M4", 14, mode="flow")
	_add_text(label, "Artikelnummer: 100-200", 14, mode="flow")
	_add_text(label, "Lagerplatz:\nRegal 3", 14, mode="flow")
	qr = label.add_qr_item()
	qr.data = "100-200"
	context = _build_context(label)
	result = asyncio.run(registry.run_normalization(context))

	assert result.name == "inventory-card"
	assert result.placement_resolved
	assert context.warnings == []
	texts = items.texts_of(label.items)
	qrs = items.items_of_type(label.items, "qr")
	assert len(texts) == 6
	assert len(qrs) == 1
	assert [item.text for item in texts] == [
		"Artikelname:",
		"Schraube M4",
		"Artikelnummer:",
		"100-200",
		"Lagerplatz:",
		"Regal 3",
	]
	assert texts[0].text_underline and texts[1].text_underline
	assert texts[1].text_bold and not texts[0].text_bold
	assert qrs[0].data == "100-200"
	assert qrs[0].size == 79
	assert qrs[0].qr_error_correction_level == "M"

	bounds, _size = preview.compute_layout(label.items, label.settings)
	text_right = max(bounds[item.id].right for item in texts)
	assert bounds[qrs[0].id].x > text_right
	tops = [bounds[item.id].y for item in texts]
	assert tops == sorted(tops)


#============================================
def _build_qr_form(label: session.LabelSession) -> None:
	_add_text(label, "Name:", 30, y=-45)
	_add_text(label, "Widget", 30, y=-10)
	_add_text(label, "Ort:", 30, y=25)
	_add_text(label, "A-12", 30, y=60)
	qr = label.add_qr_item()
	qr.position_mode = "absolute"
	qr.data = "A-12"
	qr.size = 80
	qr.x_offset = 150
	qr.y_offset = 0


#============================================
def test_qr_form_downscales_rows_to_fit(w24_session: session.LabelSession) -> None:
	"""
	Overflowing rows shrink until they stack with minimum gaps inside the tape.
	"""
	label = w24_session
	_build_qr_form(label)
	context = _build_context(label)
	result = asyncio.run(registry.run_normalization(context))

	assert result.name == "qr-form"
	assert result.placement_resolved
	texts = items.texts_of(label.items)
	assert all(config.QR_FORM_FONT_FLOOR <= item.font_size < 30 for item in texts)
	bounds, size = preview.compute_layout(label.items, label.settings)
	boxes = sorted((bounds[item.id] for item in texts), key=lambda box: box.y)
	assert boxes[0].y >= 0
	assert boxes[-1].bottom <= size.height + 0.5
	for upper, lower in zip(boxes, boxes[1:]):
		assert lower.y - upper.bottom >= config.QR_FORM_MIN_ROW_GAP - 0.5
	qr_box = bounds[items.items_of_type(label.items, "qr")[0].id]
	assert qr_box.x >= max(box.right for box in boxes) + config.QR_FORM_MIN_ROW_GAP


#============================================
def test_qr_form_requires_headings(w24_session: session.LabelSession) -> None:
	"""
	Rows without colon headings are not treated as a QR form.
	"""
	label = w24_session
	_build_qr_form(label)
	label.items[0].text = "Name"
	label.items[2].text = "Ort"
	bounds, _size = preview.compute_layout(label.items, label.settings)
	assert qr_form.resolve_qr_form_roles(label.items, bounds) is None


#============================================
def test_downscale_always_steps_below_one() -> None:
	"""
	A scale just under one still shrinks fonts by one step, down to the floor.
	"""
	label = session.LabelSession(config.LabelSettings())
	big = _add_text(label, "A", 30)
	floor = _add_text(label, "B", config.QR_FORM_FONT_FLOOR)
	assert qr_form.downscale_fonts([big, floor], 0.99)
	assert big.font_size == 29
	assert floor.font_size == config.QR_FORM_FONT_FLOOR


#============================================
def _build_boxed_form(label: session.LabelSession) -> None:
	_add_text(label, "AB-1234-567", 24, x=0, y=-40)
	_add_text(label, "AB-1234-567", 24, x=150, y=-40)
	_add_text(label, "Schraube M4", 24, x=0, y=-10)
	barcode = label.add_barcode_item()
	barcode.position_mode = "absolute"
	barcode.data = "AB1234567"
	barcode.x_offset = 0
	barcode.y_offset = 30


#============================================
def test_boxed_form_builds_frame_and_dividers(w24_session: session.LabelSession) -> None:
	"""
	The boxed form gets one frame and three divider lines around disjoint rows.
	"""
	label = w24_session
	_build_boxed_form(label)
	context = _build_context(label)
	result = asyncio.run(registry.run_normalization(context))

	assert result.name == "boxed-barcode-form"
	assert result.placement_resolved
	shapes = items.items_of_type(label.items, "shape")
	assert sorted(shape.shape_type for shape in shapes) == ["line", "line", "line", "rect"]
	assert sum(1 for shape in shapes if abs(shape.rotation) == 90) == 1
	barcode = items.items_of_type(label.items, "barcode")[0]
	assert barcode.width >= 240
	headers = items.texts_of(label.items)[:2]
	assert all(header.font_size == config.BOXED_HEADER_FONT_BASE for header in headers)


#============================================
def test_boxed_form_rerun_does_not_duplicate_shapes(w24_session: session.LabelSession) -> None:
	"""
	Normalizing an already boxed form reuses its frame and lines.
	"""
	label = w24_session
	_build_boxed_form(label)
	context = _build_context(label)
	normalizer = boxed_barcode.BoxedBarcodeFormNormalizer()
	asyncio.run(normalizer.apply(context))
	first_ids = sorted(item.id for item in items.items_of_type(label.items, "shape"))
	asyncio.run(normalizer.apply(context))
	second_ids = sorted(item.id for item in items.items_of_type(label.items, "shape"))
	assert len(first_ids) == 4
	assert second_ids == first_ids


#============================================
def test_boxed_form_removes_equivalent_existing_shapes(w24_session: session.LabelSession) -> None:
	"""
	Shapes stacked on top of each other before normalization collapse to one.
	"""
	label = w24_session
	_build_boxed_form(label)
	for shape_type in ("rect", "rect", "line", "line"):
		shape = label.add_shape_item(shape_type)
		shape.position_mode = "absolute"
		shape.x_offset = 300
		shape.y_offset = 0
		shape.width = 60
		shape.height = 40 if shape_type == "rect" else 4
	context = _build_context(label)
	result = asyncio.run(registry.run_normalization(context))

	assert result.name == "boxed-barcode-form"
	shapes = items.items_of_type(label.items, "shape")
	assert sorted(shape.shape_type for shape in shapes) == ["line", "line", "line", "rect"]
	assert all(shape.x_offset != 300 for shape in shapes)


#============================================
def test_equivalent_shapes_keep_first_of_each_kind() -> None:
	"""
	Only later copies of an identical footprint count as duplicates.
	"""
	label = session.LabelSession(config.LabelSettings())
	frame = label.add_shape_item("rect")
	copy = label.add_shape_item("rect")
	line = label.add_shape_item("line")
	bounds = {
		frame.id: geometry.Bounds(10.0, 5.0, 60.0, 40.0),
		copy.id: geometry.Bounds(10.5, 5.0, 60.0, 40.0),
		line.id: geometry.Bounds(10.0, 5.0, 60.0, 40.0),
	}
	duplicates = boxed_barcode.find_equivalent_shapes([frame, copy, line], bounds)
	assert duplicates == [copy.id]


#============================================
def test_photo_composition_is_not_a_boxed_form(w24_session: session.LabelSession) -> None:
	"""
	Rotated side text with a single big letter is left to the fallback.
	"""
	label = w24_session
	side = _add_text(label, "AB-1234-567", 14)
	side.rotation = 90
	_add_text(label, "AB-1234-567", 14)
	_add_text(label, "K", 20)
	label.add_barcode_item()
	bounds, _size = preview.compute_layout(label.items, label.settings)
	assert boxed_barcode.is_barcode_photo_composition(label.items)
	assert boxed_barcode.resolve_boxed_roles(label.items, bounds) is None

	context = _build_context(label)
	result = asyncio.run(registry.run_normalization(context))
	assert result.name == "generic-fallback"
	assert config.WARNING_LOW_CONFIDENCE in context.warnings
	floors_label = label.items[2]
	assert floors_label.font_size == 58
	assert items.items_of_type(label.items, "barcode")[0].width == 240


#============================================
def test_fallback_removes_aggregate_and_markers(w24_session: session.LabelSession) -> None:
	"""
	The fallback drops a block that repeats other rows and strips bullet markers.
	"""
	label = w24_session
	_add_text(label, "Name: Anna", 14, mode="flow")
	_add_text(label, "Ort: Berlin", 14, mode="flow")
	aggregate = _add_text(label, "Name: Anna\nOrt: Berlin\nTel: 123\nMail: a@b.de", 14, mode="flow")
	marked = _add_text(label, "[ ] Milch", 14, mode="flow")
	qr = label.add_qr_item()
	qr.size = 20
	context = _build_context(label)
	result = asyncio.run(fallback.GenericFallbackNormalizer().apply(context))

	assert result.did_mutate
	assert label.find_item(aggregate.id) is None
	assert marked.text == "Milch"
	assert qr.size == 77


#============================================
def test_fallback_clamps_absolute_items_into_fixed_label() -> None:
	"""
	Absolute items pushed off a fixed-length label are pulled back inside.
	"""
	label = session.LabelSession(config.LabelSettings(media="W24", media_length_mm=30.0))
	stray = _add_text(label, "Far", 20, x=900, y=200)
	context = _build_context(label)
	asyncio.run(fallback.GenericFallbackNormalizer().apply(context))
	bounds, size = preview.compute_layout(label.items, label.settings)
	box = bounds[stray.id]
	assert box.right <= size.width + 0.5
	assert box.bottom <= size.height + 0.5


#============================================
def test_empty_session_skips_normalization() -> None:
	"""
	An empty item list is reported without running any pass.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = asyncio.run(registry.run_normalization(_build_context(label)))
	assert result.reason == "empty-items"
	assert not result.did_mutate


class FreshIdLaggingRenderer(preview.PreviewRenderer):
	"""
	Reports no bounds for an item until the frame after it first appears.
	"""

	def __init__(self, label: session.LabelSession):
		super().__init__(label)
		self.seen_ids: set[str] = set()
		self.lagged_ids: list[str] = []

	async def render_frame(self) -> None:
		await super().render_frame()
		fresh = [item_id for item_id in self.bounds_by_id if item_id not in self.seen_ids]
		for item_id in fresh:
			self.seen_ids.add(item_id)
			self.lagged_ids.append(item_id)
			del self.bounds_by_id[item_id]


#============================================
def _build_lagging_context(label: session.LabelSession) -> tuple[normalize.NormalizationContext, FreshIdLaggingRenderer]:
	renderer = FreshIdLaggingRenderer(label)
	selection = editor.SelectionEditor(label, renderer)
	reconciler = reconcile.BoundsReconciler(reconcile.RenderScheduler(renderer))
	return (normalize.NormalizationContext(label, selection, reconciler), renderer)


#============================================
def test_inventory_card_survives_lagging_renderer(w24_session: session.LabelSession) -> None:
	"""
	Rows created mid-pass still land in order with the QR code to their right.
	"""
	label = w24_session
	_add_text(label, "Artikelname: Schraube M4", 14, mode="flow")
	_add_text(label, "Artikelnummer: 100-200", 14, mode="flow")
	_add_text(label, "Lagerplatz:\nRegal 3", 14, mode="flow")
	qr = label.add_qr_item()
	qr.data = "100-200"
	original_ids = label.item_ids()
	context, renderer = _build_lagging_context(label)
	result = asyncio.run(registry.run_normalization(context))

	assert result.name == "inventory-card"
	assert result.placement_resolved
	assert context.warnings == []
	created = [item_id for item_id in renderer.lagged_ids if item_id not in original_ids]
	assert created
	texts = items.texts_of(label.items)
	assert len(texts) == 6
	bounds, _size = preview.compute_layout(label.items, label.settings)
	tops = [bounds[item.id].y for item in texts]
	assert tops == sorted(tops)
	text_right = max(bounds[item.id].right for item in texts)
	qr_box = bounds[items.items_of_type(label.items, "qr")[0].id]
	assert qr_box.x > text_right


#============================================
def test_qr_form_resolves_with_lagging_renderer(w24_session: session.LabelSession) -> None:
	"""
	The QR form converges even when every item misses its first frame.
	"""
	label = w24_session
	_build_qr_form(label)
	context, renderer = _build_lagging_context(label)
	result = asyncio.run(registry.run_normalization(context))

	assert result.name == "qr-form"
	assert result.placement_resolved
	assert set(label.item_ids()) <= set(renderer.lagged_ids)
	assert config.WARNING_PLACEMENT_APPROXIMATE not in context.warnings


#============================================
def test_text_marker_group_splits_heading_and_option(w24_session: session.LabelSession) -> None:
	"""
	A bracket checkbox line becomes a square marker beside its option text.
	"""
	label = w24_session
	source = _add_text(label, "Einkauf\n[ ] Milch", 14)
	context = _build_context(label)
	result = asyncio.run(registry.run_normalization(context))

	assert result.name == "marker-group"
	assert result.did_mutate
	assert result.placement_resolved
	assert context.warnings == []
	heading, marker, option = label.items
	assert heading.id == source.id
	assert heading.text == "Einkauf"
	assert option.text == "Milch"
	assert option.font_size < heading.font_size
	assert isinstance(marker, items.ShapeItem)
	assert marker.shape_type == "rect"
	assert marker.width == marker.height == 16
	assert all(item.position_mode == "absolute" for item in label.items)

	bounds, size = preview.compute_layout(label.items, label.settings)
	assert bounds[marker.id].x == config.MARKER_LEFT_MARGIN
	assert bounds[marker.id].right < bounds[option.id].x
	assert bounds[marker.id].y >= bounds[heading.id].bottom
	assert bounds[option.id].bottom <= size.height


#============================================
def test_shape_marker_group_reuses_square(w24_session: session.LabelSession) -> None:
	"""
	A small square next to the second text keeps its id as the option marker.
	"""
	label = w24_session
	heading = _add_text(label, "Allergene", 14, x=30, y=-30)
	option = _add_text(label, "Vegan", 14, x=30, y=10)
	square = label.add_shape_item("roundRect")
	square.position_mode = "absolute"
	square.width = 12
	square.height = 12
	square.x_offset = 10
	square.y_offset = 10
	bounds, _size = preview.compute_layout(label.items, label.settings)
	group = marker_group.resolve_marker_group(label.items, bounds)
	assert group is not None
	assert group.heading_source is heading
	assert group.option_source is option
	assert group.marker_source is square
	assert not group.has_text_marker

	result = asyncio.run(registry.run_normalization(_build_context(label)))
	assert result.name == "marker-group"
	assert label.item_ids() == [heading.id, square.id, option.id]
	assert square.shape_type == "rect"
	assert square.width == square.height
	assert square.width >= 12


#============================================
def test_marker_group_ignores_plain_rows_and_codes(w24_session: session.LabelSession) -> None:
	"""
	Rows without markers, or labels carrying a QR code, are not marker groups.
	"""
	label = w24_session
	_add_text(label, "Hello", 14, mode="flow")
	_add_text(label, "World", 14, mode="flow")
	bounds, _size = preview.compute_layout(label.items, label.settings)
	assert marker_group.resolve_marker_group(label.items, bounds) is None

	label.items[1].text = "[ ] World"
	bounds, _size = preview.compute_layout(label.items, label.settings)
	assert marker_group.resolve_marker_group(label.items, bounds) is not None
	label.add_qr_item()
	bounds, _size = preview.compute_layout(label.items, label.settings)
	assert marker_group.resolve_marker_group(label.items, bounds) is None


#============================================
def test_square_marker_shape_limits() -> None:
	"""
	Only small, roughly square rectangles count as checkbox markers.
	"""
	assert marker_group.is_square_marker_shape(items.ShapeItem("s1", width=14, height=14))
	assert marker_group.is_square_marker_shape(items.ShapeItem("s2", shape_type="roundRect", width=20, height=14))
	assert not marker_group.is_square_marker_shape(items.ShapeItem("s3", width=40, height=40))
	assert not marker_group.is_square_marker_shape(items.ShapeItem("s4", width=30, height=12))
	assert not marker_group.is_square_marker_shape(items.ShapeItem("s5", shape_type="oval", width=14, height=14))
	assert not marker_group.is_square_marker_shape(items.ShapeItem("s6", width=3, height=3))


#============================================
def test_harmonize_keeps_option_below_heading() -> None:
	"""
	Oversized sections are capped for the tape width with the option smaller.
	"""
	settings = config.LabelSettings(media="W12")
	heading = items.TextItem("t1", text="Zutaten\nBitte ankreuzen", font_size=30)
	option = items.TextItem("t2", text="Ohne Zucker", font_size=30)
	assert marker_group.harmonize_marker_sizing(settings, heading, option)
	assert heading.font_size <= 12
	assert option.font_size < heading.font_size
	assert not marker_group.harmonize_marker_sizing(settings, heading, option)
