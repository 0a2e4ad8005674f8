import argparse
import json
import logging
import os
import typing

import yaml

import negative_harmony.config
import negative_harmony.engine
import negative_harmony.export
import negative_harmony.source


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def load_document (path: str) -> negative_harmony.source.SourceDocument:

	"""
	Load a parsed source document from a JSON or YAML file.
	"""

	with open(path, 'r') as f:

		if path.lower().endswith('.json'):
			data = json.load(f)
		else:
			data = yaml.safe_load(f)

	if not isinstance(data, dict):
		raise ValueError(f"{path} does not hold a source document")

	return negative_harmony.source.SourceDocument.from_dict(data)


def default_output (source_path: str, reversed: bool) -> str:

	base, _ = os.path.splitext(source_path)

	return f"{base}{'_reversed' if reversed else ''}_negative.mid"


def parse_args (argv: typing.Optional[typing.List[str]] = None) -> argparse.Namespace:

	parser = argparse.ArgumentParser(
		prog = "negative_harmony",
		description = "Write a negative-harmony (or inverted) MIDI file from a parsed source document."
	)

	parser.add_argument("source", help="Source document (.json, .yaml or .yml)")
	parser.add_argument("--config", default="config.yaml", help="Settings file (default: config.yaml)")
	parser.add_argument("--output", default=None, help="MIDI file to write")
	parser.add_argument("--reverse", action="store_true", default=None, help="Render the reversed timeline")
	parser.add_argument("--speed", type=float, default=None, help="Playback speed (default from settings, else 1.0)")

	return parser.parse_args(argv)


def main (argv: typing.Optional[typing.List[str]] = None) -> int:

	"""
	Main entry point: settings + document in, transformed MIDI file out.
	"""

	args = parse_args(argv)
	settings = negative_harmony.config.load_settings(args.config)

	reversed = settings.reversed if args.reverse is None else args.reverse
	speed = settings.speed if args.speed is None else args.speed

	document = load_document(args.source)

	engine = negative_harmony.engine.Engine(settings.transform_config(), normal=settings.normal, align=settings.align)
	timeline = engine.load(document)

	logger.info(f"Transform: {settings.mode}, scope {settings.scope}, axis root {engine.axis_root}")

	output = args.output or default_output(args.source, reversed)

	if not negative_harmony.export.save_midi(timeline, output, reversed=reversed, speed=speed):
		return 1

	return 0


if __name__ == "__main__":
	raise SystemExit(main())
