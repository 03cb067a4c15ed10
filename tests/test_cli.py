import argparse
import json
import pathlib

import label_rebuild_kit.cli as cli


#============================================
def _namespace(actions_path: pathlib.Path, output_path: pathlib.Path, **overrides) -> argparse.Namespace:
	values = {
		"actions_path": str(actions_path),
		"items_path": None,
		"output_path": str(output_path),
		"media": "W24",
		"resolution": "LOW",
		"media_length_mm": None,
		"orientation": "horizontal",
		"force_rebuild": None,
		"prompt_text": None,
		"verbose": False,
	}
	values.update(overrides)
	return argparse.Namespace(**values)


#============================================
def test_pipeline_writes_items_with_bounds(tmp_path: pathlib.Path) -> None:
	"""
	Running a batch file writes the final items, their bounds and the messages.
	"""
	actions_path = tmp_path / "actions.json"
	actions_path.write_text(json.dumps({"actions": [
		{"action": "clear_items"},
		{"action": "add_item", "itemType": "text", "text": "Hello"},
		{"action": "add_item", "itemType": "qr", "data": "4711"},
	]}), encoding="utf-8")
	output_path = tmp_path / "out.json"
	output = cli.run_pipeline(_namespace(actions_path, output_path, prompt_text="12mm tape"))

	written = json.loads(output_path.read_text(encoding="utf-8"))
	assert written == json.loads(json.dumps(output))
	assert written["media"] == "W12"
	assert [item["type"] for item in written["items"]] == ["text", "qr"]
	assert all(item["bounds"] is not None for item in written["items"])
	assert written["errors"] == []


#============================================
def test_pipeline_edits_existing_items(tmp_path: pathlib.Path) -> None:
	"""
	Existing items load from JSON and are edited in place.
	"""
	actions_path = tmp_path / "actions.json"
	actions_path.write_text(json.dumps([
		{"action": "update_item", "itemIndex": 0, "text": "Renamed"},
	]), encoding="utf-8")
	items_path = tmp_path / "items.json"
	items_path.write_text(json.dumps({"items": [{"type": "text", "text": "Old"}]}), encoding="utf-8")
	output_path = tmp_path / "out.json"
	output = cli.run_pipeline(_namespace(actions_path, output_path, items_path=str(items_path)))
	assert [item["text"] for item in output["items"]] == ["Renamed"]
