import logging
import typing

import mido
import pytest

import negative_harmony.engine
import negative_harmony.export
import negative_harmony.source
import negative_harmony.timeline
import negative_harmony.transform


def _timeline (document: negative_harmony.source.SourceDocument) -> negative_harmony.timeline.Timeline:

	engine = negative_harmony.engine.Engine(negative_harmony.transform.TransformConfig(mode="identity"))

	return engine.load(document)


def _absolute (track: mido.MidiTrack) -> typing.List[typing.Tuple[int, mido.Message]]:

	"""Pair each message with its absolute tick."""

	tick = 0
	result = []

	for message in track:
		tick += message.time
		result.append((tick, message))

	return result


def _tempo (mid: mido.MidiFile) -> int:

	return next(message.tempo for message in mid.tracks[0] if message.type == 'set_tempo')


def test_render_layout (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""Type 1: a conductor track, then one track per channel."""

	mid = negative_harmony.export.render_midi(_timeline(sample_document))

	assert mid.type == 1
	assert mid.ticks_per_beat == 480
	assert len(mid.tracks) == 3
	assert mid.tracks[0][0].type == 'track_name'
	assert mid.tracks[0][0].name == "Sample (negative harmony)"
	assert _tempo(mid) == mido.bpm2tempo(120)


def test_forward_channel_events (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""Channel 0 in ticks at 960 per second."""

	mid = negative_harmony.export.render_midi(_timeline(sample_document))

	events = [(tick, message.type) for tick, message in _absolute(mid.tracks[1])]

	assert events == [
		(480, 'control_change'),
		(960, 'program_change'),
		(960, 'note_on'),
		(1440, 'note_off'),
		(1920, 'note_on'),
		(2400, 'pitchwheel'),
		(2880, 'control_change'),
		(3360, 'note_off'),
		(4800, 'note_on'),
		(5280, 'note_off'),
	]


def test_values_are_converted (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""Controllers become 7-bit values and bends 14-bit values."""

	mid = negative_harmony.export.render_midi(_timeline(sample_document))
	messages = [message for _, message in _absolute(mid.tracks[1])]

	assert [message.value for message in messages if message.type == 'control_change'] == [63, 127]
	assert [message.pitch for message in messages if message.type == 'pitchwheel'] == [4096]
	assert [message.program for message in messages if message.type == 'program_change'] == [5]
	assert [message.velocity for message in messages if message.type == 'note_on'] == [127, 31, 81]


def test_reversed_render_truncates_at_end (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""The mirrored kick starts at D; its note-off follows at the same tick."""

	mid = negative_harmony.export.render_midi(_timeline(sample_document), reversed=True)

	drums = [(tick, message.type) for tick, message in _absolute(mid.tracks[2])]

	assert drums == [(7680, 'note_on'), (7680, 'note_off')]


def test_reversed_render_uses_reverse_times (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""G at 3.0s, E at 4.5s and C at 7.0s."""

	mid = negative_harmony.export.render_midi(_timeline(sample_document), reversed=True)

	starts = [(tick, message.note) for tick, message in _absolute(mid.tracks[1]) if message.type == 'note_on']

	assert starts == [(2880, 67), (4320, 64), (6720, 60)]


def test_speed_changes_written_tempo (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""The tempo is multiplied by the speed and clamped to 20-300 bpm."""

	timeline = _timeline(sample_document)

	assert _tempo(negative_harmony.export.render_midi(timeline, speed=2.0)) == mido.bpm2tempo(240)
	assert _tempo(negative_harmony.export.render_midi(timeline, speed=10.0)) == mido.bpm2tempo(300)
	assert _tempo(negative_harmony.export.render_midi(timeline, speed=0.1)) == mido.bpm2tempo(20)

	with pytest.raises(ValueError):
		negative_harmony.export.render_midi(timeline, speed=0.0)


def test_out_of_range_pitch_is_clamped (caplog: pytest.LogCaptureFixture) -> None:

	"""Export clamps stray pitches and warns."""

	timeline = negative_harmony.timeline.Timeline(None, 2.0)
	timeline.add_pair(0, 0.0, 1.0, negative_harmony.timeline.Note(channel=0, original_pitch=0, transformed_pitch=-5, velocity=100, duration=1.0))
	timeline.finalize()

	with caplog.at_level(logging.WARNING):
		mid = negative_harmony.export.render_midi(timeline)

	notes = [message.note for message in mid.tracks[1] if message.type == 'note_on']

	assert notes == [0]
	assert "outside the MIDI range" in caplog.text
	assert _tempo(mid) == mido.bpm2tempo(120)


def test_save_midi_writes_a_readable_file (sample_document: negative_harmony.source.SourceDocument, tmp_path: typing.Any) -> None:

	"""The saved file loads back with mido."""

	path = tmp_path / "negative.mid"

	assert negative_harmony.export.save_midi(_timeline(sample_document), str(path)) is True
	assert path.exists()

	loaded = mido.MidiFile(str(path))

	assert len(loaded.tracks) == 3


def test_save_midi_reports_failure (sample_document: negative_harmony.source.SourceDocument, tmp_path: typing.Any, caplog: pytest.LogCaptureFixture) -> None:

	"""An unwritable path is logged and returns False."""

	path = tmp_path / "missing" / "negative.mid"

	with caplog.at_level(logging.ERROR):
		assert negative_harmony.export.save_midi(_timeline(sample_document), str(path)) is False

	assert "Failed to save MIDI file" in caplog.text
