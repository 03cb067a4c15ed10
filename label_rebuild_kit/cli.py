"""
CLI entry point for running an action batch against a label.
"""

# Standard Library
import argparse
import asyncio
import json
import pathlib
import time

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.bridge
import label_rebuild_kit.config
import label_rebuild_kit.media
import label_rebuild_kit.session


LabelSettings = lrk.config.LabelSettings
RunOptions = lrk.config.RunOptions

DEFAULT_MEDIA = lrk.config.DEFAULT_MEDIA
DEFAULT_RESOLUTION = lrk.config.DEFAULT_RESOLUTION
ORIENTATIONS = lrk.config.ORIENTATIONS


#============================================
def read_actions(path: pathlib.Path) -> list:
	"""
	Load an action batch from JSON.

	Args:
		path: JSON file holding a list or an object with an actions key.

	Returns:
		List of action dicts.
	"""
	with path.open("r", encoding="utf-8") as handle:
		data = json.load(handle)
	if isinstance(data, dict):
		data = data.get("actions", [])
	if not isinstance(data, list):
		raise ValueError(f"{path}: expected a list of actions")
	return data


#============================================
def read_items(path: pathlib.Path) -> list:
	with path.open("r", encoding="utf-8") as handle:
		data = json.load(handle)
	if isinstance(data, dict):
		data = data.get("items", [])
	if not isinstance(data, list):
		raise ValueError(f"{path}: expected a list of items")
	return data


#============================================
def build_settings(args: argparse.Namespace) -> LabelSettings:
	"""
	Build label settings from CLI args.

	Args:
		args: Parsed argparse namespace.

	Returns:
		LabelSettings.
	"""
	return LabelSettings(
		media=args.media,
		resolution=args.resolution,
		media_length_mm=args.media_length_mm,
		orientation=args.orientation,
	)


#============================================
def build_output(session, renderer, result) -> dict:
	"""
	Collect items, bounds and messages for the output JSON.
	"""
	items = []
	for item in session.items:
		entry = item.to_dict()
		box = renderer.bounds_by_id.get(item.id)
		entry["bounds"] = box.to_dict() if box is not None else None
		items.append(entry)
	preview = renderer.preview_size
	return {
		"media": session.settings.media,
		"resolution": session.settings.resolution,
		"mediaLengthMm": session.settings.media_length_mm,
		"orientation": session.settings.orientation,
		"preview": {"width": preview.width, "height": preview.height},
		"items": items,
		"errors": result.errors,
		"warnings": result.warnings,
	}


#============================================
async def run_batch(bridge, actions: list, options: RunOptions):
	"""
	Run the batch, then render once more so bounds match the final items.
	"""
	result = await bridge.run_actions(actions, options)
	await bridge.reconciler.refresh(bridge.session.item_ids())
	return result


#============================================
def parse_args() -> argparse.Namespace:
	"""
	Parse command line arguments.

	Returns:
		Parsed argparse namespace.
	"""
	parser = argparse.ArgumentParser(description="Apply a label-editing action batch and normalize the layout.")
	parser.add_argument("actions_path", help="Actions JSON file.")

	io_group = parser.add_argument_group("Input and output")
	io_group.add_argument("-i", "--items", dest="items_path", default=None, help="Existing items JSON file.")
	io_group.add_argument("-o", "--output", dest="output_path", default=None, help="Output JSON path.")

	label_group = parser.add_argument_group("Label")
	label_group.add_argument("-m", "--media", dest="media", default=DEFAULT_MEDIA, help="Media id, e.g. W24.")
	label_group.add_argument(
		"-r",
		"--resolution",
		dest="resolution",
		choices=sorted(lrk.media.RESOLUTIONS),
		default=DEFAULT_RESOLUTION,
		help="Print resolution.",
	)
	label_group.add_argument(
		"-L",
		"--length-mm",
		dest="media_length_mm",
		type=float,
		default=None,
		help="Fixed label length in millimetres.",
	)
	label_group.add_argument("--orientation", dest="orientation", choices=ORIENTATIONS, default="horizontal", help="Label orientation.")

	behavior_group = parser.add_argument_group("Behavior")
	behavior_group.add_argument("-b", "--rebuild", dest="force_rebuild", action="store_true", help="Rebuild the layout from scratch.")
	behavior_group.add_argument("-B", "--no-rebuild", dest="force_rebuild", action="store_false", help="Edit the existing layout.")
	behavior_group.add_argument("-t", "--prompt-text", dest="prompt_text", default=None, help="Prompt text to scan for a tape width.")
	behavior_group.add_argument("-v", "--verbose", dest="verbose", action="store_true", help="Print progress.")

	parser.set_defaults(force_rebuild=None, verbose=False)

	args = parser.parse_args()
	return args


#============================================
def run_pipeline(args: argparse.Namespace) -> dict:
	"""
	Load inputs, run the batch and write the result.

	Args:
		args: Parsed argparse namespace.

	Returns:
		Output dict that was written.
	"""
	actions_path = pathlib.Path(args.actions_path)
	actions = read_actions(actions_path)
	print(f"Actions: {len(actions)} from {actions_path}")

	session = lrk.session.LabelSession(build_settings(args))
	if args.items_path:
		unknown = lrk.session.load_items(session, read_items(pathlib.Path(args.items_path)))
		print(f"Items loaded: {len(session.items)}")
		if unknown:
			print(f"Ignored item fields: {', '.join(sorted(set(unknown)))}")

	options = RunOptions(force_rebuild=args.force_rebuild, preferred_media=args.prompt_text)
	bridge = lrk.bridge.ActionBridge(session, verbose=args.verbose)
	start_time = time.perf_counter()
	result = asyncio.run(run_batch(bridge, actions, options))
	total_time = time.perf_counter() - start_time

	print(f"Actions executed: {result.executed}")
	for error in result.errors:
		print(f"Error: {error}")
	for warning in result.warnings:
		print(f"Warning: {warning}")
	if bridge.last_normalization is not None:
		print(f"Normalizer: {bridge.last_normalization.name} ({bridge.last_normalization.reason})")

	output = build_output(session, bridge.renderer, result)
	output_path = args.output_path
	if output_path is None:
		output_path = str(actions_path.with_suffix("")) + ".items.json"
	with pathlib.Path(output_path).open("w", encoding="utf-8") as handle:
		json.dump(output, handle, indent=2, sort_keys=True)
	print(f"Items written: {output_path}")
	print(f"Timing: total={total_time:.2f}s")
	return output


#============================================
def main() -> None:
	"""
	Main entry point.
	"""
	args = parse_args()
	run_pipeline(args)


if __name__ == "__main__":
	main()
