import asyncio

import label_rebuild_kit.bridge as bridge
import label_rebuild_kit.config as config
import label_rebuild_kit.items as items
import label_rebuild_kit.preview as preview
import label_rebuild_kit.session as session


#============================================
def _run(label: session.LabelSession, actions: list, options: config.RunOptions | None = None) -> config.RunResult:
	"""
	Run one batch through a fresh bridge.
	"""
	action_bridge = bridge.ActionBridge(label)
	return asyncio.run(action_bridge.run_actions(actions, options))


#============================================
def test_clear_items_removes_previous_layout() -> None:
	"""
	A batch starting with clear_items replaces the old items.
	"""
	label = session.LabelSession(config.LabelSettings())
	label.add_text_item()
	label.add_qr_item()
	result = _run(label, [
		{"action": "clear_items"},
		{"action": "add_item", "itemType": "text", "text": "Hello"},
	])
	assert result.errors == []
	assert [item.text for item in label.items] == ["Hello"]
	assert result.executed == 2


#============================================
def test_last_targets_most_recent_addition() -> None:
	"""
	"last" after several adds edits the newest item, and QR sides fold into size.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = _run(label, [
		{"action": "add_item", "itemType": "text", "text": "Shelf"},
		{"action": "add_item", "itemType": "qrcode", "data": "https://example.org"},
		{"action": "update_item", "target": "last", "changes": {"width": 100, "height": 90}},
	])
	assert result.errors == []
	text, qr = label.items
	assert text.text == "Shelf"
	assert qr.type == "qr"
	assert qr.size == 90
	assert qr.to_dict()["height"] == 90


#============================================
def test_virtual_ids_resolve_within_batch() -> None:
	"""
	Items added earlier in a batch can be addressed as item-<n>.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = _run(label, [
		{"action": "add_item", "itemType": "text", "text": "One"},
		{"action": "add_item", "itemType": "text", "text": "Two"},
		{"action": "update_item", "itemId": "item-1", "bold": True},
	])
	assert result.errors == []
	assert label.items[0].text_bold
	assert not label.items[1].text_bold


#============================================
def test_structural_errors_do_not_abort_batch() -> None:
	"""
	Unsupported verbs and bad values are reported while later actions still run.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = _run(label, [
		{"action": "print"},
		{"action": "add_item", "itemType": "sticker"},
		{"action": "add_item", "itemType": "text", "text": "Kept"},
		{"action": "update_item", "target": "last", "fontSize": "huge"},
		{"action": "update_item", "target": "last", "unknownThing": 1},
	], config.RunOptions(force_rebuild=False))
	assert result.errors[0] == f"{config.ERROR_ACTION_UNSUPPORTED}: print"
	assert result.errors[1] == f"{config.ERROR_INVALID_ITEM_TYPE}: sticker"
	assert result.errors[2].startswith(config.ERROR_INVALID_PAYLOAD)
	assert result.errors[3] == f"{config.ERROR_NO_APPLICABLE_CHANGES}: {label.items[0].id}"
	assert f"{config.WARNING_UNKNOWN_PROPERTY}: unknownThing" in result.warnings
	assert [item.text for item in label.items] == ["Kept"]
	assert label.items[0].font_size == config.DEFAULT_FONT_SIZE


#============================================
def test_missing_target_outside_rebuild_is_an_error() -> None:
	"""
	Updates to unknown items fail when the batch does not rebuild.
	"""
	label = session.LabelSession(config.LabelSettings())
	label.add_text_item()
	result = _run(label, [
		{"action": "update_item", "itemId": "ghost", "text": "x"},
	], config.RunOptions(force_rebuild=False))
	assert result.errors == [f"{config.ERROR_ITEM_NOT_FOUND}: ghost"]
	assert result.warnings == []
	assert len(label.items) == 1


#============================================
def test_rebuild_creates_missing_targets_once() -> None:
	"""
	In rebuild mode a missing target is created and later updates reuse it.
	"""
	label = session.LabelSession(config.LabelSettings())
	label.add_text_item()
	result = _run(label, [
		{"action": "clear_items"},
		{"action": "update_item", "target": "title", "text": "Hello"},
		{"action": "update_item", "target": "title", "bold": True},
		{"action": "update_item", "target": "code", "data": "4711"},
	])
	assert result.errors == []
	assert [item.type for item in label.items] == ["text", "qr"]
	assert label.items[0].text == "Hello"
	assert label.items[0].text_bold
	assert label.items[1].data == "4711"


#============================================
def test_forced_rebuild_prepends_clear() -> None:
	"""
	An explicit rebuild without clear_items still starts from an empty label.
	"""
	label = session.LabelSession(config.LabelSettings())
	label.add_text_item()
	result = _run(label, [
		{"action": "add_item", "itemType": "text", "text": "Fresh"},
	], config.RunOptions(force_rebuild=True))
	assert result.errors == []
	assert [item.text for item in label.items] == ["Fresh"]


#============================================
def test_ambiguous_batch_warns_low_confidence() -> None:
	"""
	A layout no pattern recognizes succeeds with a low-confidence warning.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = _run(label, [
		{"action": "clear_items"},
		{"action": "add_item", "itemType": "text", "text": "Hello"},
		{"action": "add_item", "itemType": "text", "text": "World"},
	])
	assert result.errors == []
	assert result.warnings == [config.WARNING_LOW_CONFIDENCE]


#============================================
def test_align_selected_items_to_top() -> None:
	"""
	Selected items align against fresh bounds.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = _run(label, [
		{"action": "add_item", "itemType": "text", "text": "small", "fontSize": 12},
		{"action": "add_item", "itemType": "text", "text": "BIG", "fontSize": 30},
		{"action": "align_selected", "itemIds": ["item-1", "item-2"], "mode": "top"},
	], config.RunOptions(force_rebuild=False))
	assert result.errors == []
	bounds, _size = preview.compute_layout(label.items, label.settings)
	first, second = (bounds[item.id] for item in label.items)
	assert first.y == second.y


#============================================
def test_align_without_selection_is_an_error() -> None:
	"""
	Aligning with nothing selected reports the reason.
	"""
	label = session.LabelSession(config.LabelSettings())
	label.add_text_item()
	result = _run(label, [{"action": "align", "mode": "left"}], config.RunOptions(force_rebuild=False))
	assert result.errors == [f"{config.ERROR_ALIGN_FAILED}: no-selection"]


#============================================
def test_rebuild_align_keeps_explicit_placement() -> None:
	"""
	Aligning explicitly placed items during a rebuild is skipped with a warning.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = _run(label, [
		{"action": "clear_items"},
		{"action": "add_item", "itemType": "text", "text": "A", "x": 10, "y": 5},
		{"action": "add_item", "itemType": "text", "text": "B", "x": 40, "y": 20},
		{"action": "align_selected", "itemIds": ["item-1", "item-2"], "mode": "left"},
	], config.RunOptions(force_rebuild=True))
	assert result.errors == []
	assert config.WARNING_ALIGN_SUPPRESSED in result.warnings
	assert [item.x_offset for item in label.items] == [10, 40]


#============================================
def test_remove_and_select_items() -> None:
	"""
	Removal takes targets or id lists and selection ignores stale ids.
	"""
	label = session.LabelSession(config.LabelSettings())
	action_bridge = bridge.ActionBridge(label)
	result = asyncio.run(action_bridge.run_actions([
		{"action": "add_item", "itemType": "text", "text": "A"},
		{"action": "add_item", "itemType": "text", "text": "B"},
		{"action": "add_item", "itemType": "icon"},
		{"action": "select_items", "itemIds": ["item-2", "nope"]},
		{"action": "remove_item", "itemIds": ["item-3"]},
	], config.RunOptions(force_rebuild=False)))
	assert result.errors == []
	assert [item.type for item in label.items] == ["text", "text"]
	assert action_bridge.editor.get_selected_item_ids() == [label.items[1].id]


#============================================
def test_set_label_and_preferred_media_clamp_qr() -> None:
	"""
	Switching to narrow tape shrinks oversized QR codes.
	"""
	label = session.LabelSession(config.LabelSettings(media="W24"))
	qr = label.add_qr_item()
	assert qr.size == 120
	result = _run(label, [{"action": "set_label", "media": "W12"}], config.RunOptions(force_rebuild=False))
	assert result.errors == []
	assert label.settings.media == "W12"
	assert qr.size == 70

	label = session.LabelSession(config.LabelSettings(media="W24"))
	_run(label, [{"action": "add_item", "itemType": "qr", "data": "x"}], config.RunOptions(preferred_media="print on 12mm tape"))
	assert label.settings.media == "W12"
	assert items.items_of_type(label.items, "qr")[0].size == 70


#============================================
def test_inventory_batch_normalizes_to_template() -> None:
	"""
	An inventory rebuild ends as six text rows and one QR code.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = _run(label, [
		{"action": "clear_items"},
		{"action": "add_item", "itemType": "text", "text": "Artikelname: Schraube"},
		{"action": "add_item", "itemType": "text", "text": "Artikelnummer: 4711"},
		{"action": "add_item", "itemType": "text", "text": "Lagerplatz: B-12"},
		{"action": "add_item", "itemType": "qr", "data": "4711"},
	])
	assert result.errors == []
	assert len(items.texts_of(label.items)) == 6
	assert len(items.items_of_type(label.items, "qr")) == 1
	assert config.WARNING_LOW_CONFIDENCE not in result.warnings


#============================================
def test_incremental_edit_keeps_normalized_card() -> None:
	"""
	An update after a rebuild edits the existing card without renormalizing it.
	"""
	label = session.LabelSession(config.LabelSettings())
	action_bridge = bridge.ActionBridge(label)
	asyncio.run(action_bridge.run_actions([
		{"action": "clear_items"},
		{"action": "add_item", "itemType": "text", "text": "Artikelname: Schraube"},
		{"action": "add_item", "itemType": "text", "text": "Artikelnummer: 4711"},
		{"action": "add_item", "itemType": "text", "text": "Lagerplatz: B-12"},
		{"action": "add_item", "itemType": "qr", "data": "4711"},
	]))
	ids_before = label.item_ids()
	value = items.texts_of(label.items)[1]

	result = asyncio.run(action_bridge.run_actions([
		{"action": "update_item", "itemId": value.id, "fontSize": 30},
	]))
	assert result.errors == []
	assert result.warnings == []
	assert label.item_ids() == ids_before
	assert label.find_item(value.id).font_size == 30


#============================================
def test_rebuild_does_not_create_for_empty_selection() -> None:
	"""
	An explicit selection pointer with nothing selected is an error even in rebuild mode.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = _run(label, [
		{"action": "clear_items"},
		{"action": "add_item", "itemType": "text", "text": "A"},
		{"action": "update_item", "target": "selected", "text": "B"},
	])
	assert result.errors == [f"{config.ERROR_ITEM_NOT_FOUND}: selected"]
	assert [item.text for item in label.items] == ["A"]


#============================================
def test_run_actions_sync_outside_event_loop() -> None:
	"""
	The blocking entry point runs a whole batch for callers without a loop.
	"""
	label = session.LabelSession(config.LabelSettings())
	result = bridge.ActionBridge(label).run_actions_sync([
		{"action": "add_item", "itemType": "text", "text": "Sync"},
	])
	assert result.errors == []
	assert result.executed == 1
	assert [item.text for item in label.items] == ["Sync"]


#============================================
def test_capabilities_describe_verbs_and_fields() -> None:
	"""
	Capabilities list canonical verbs and per-type fields.
	"""
	capabilities = bridge.ActionBridge(session.LabelSession()).get_action_capabilities()
	assert "align_selected" in capabilities["actions"]
	assert "size" in capabilities["itemProperties"]["qr"]
	assert "width" not in capabilities["itemProperties"]["qr"]
	assert capabilities["notes"]


#============================================
def test_action_error_message_format() -> None:
	"""
	Errors render as key or key: detail.
	"""
	assert str(bridge.ActionError("assistant.x")) == "assistant.x"
	assert str(bridge.ActionError("assistant.x", "detail")) == "assistant.x: detail"


#============================================
def test_rebuild_inference() -> None:
	"""
	Only clear-then-build batches infer a rebuild.
	"""
	assert bridge.infer_force_rebuild([{"action": "clear_items"}, {"action": "add_item"}])
	assert not bridge.infer_force_rebuild([{"action": "add_item"}])
	assert not bridge.infer_force_rebuild([{"action": "clear_items"}, {"action": "align_selected"}])
	assert not bridge.infer_force_rebuild([])
