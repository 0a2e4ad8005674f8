"""Write the transformed timeline to a Standard MIDI File.

Renders one direction of a timeline - forward or reversed - at a given
playback speed. The result is a type-1 file: a conductor track with the
tempo, then one track per channel.

Timeline times already include every tempo change of the source, so the
file carries a single tempo (the opening tempo times the speed) and the
event positions are converted with that tempo.
"""

import logging
import typing

import mido

import negative_harmony.constants
import negative_harmony.dispatcher
import negative_harmony.timeline


logger = logging.getLogger(__name__)

MIN_EXPORT_BPM = 20.0
MAX_EXPORT_BPM = 300.0

# Order of simultaneous events within a track.
_PRIORITY_PROGRAM = 0
_PRIORITY_CONTROL = 1
_PRIORITY_BEND = 2
_PRIORITY_NOTE_OFF = 3
_PRIORITY_NOTE_ON = 4
_PRIORITY_EMPTY_NOTE_OFF = 5


def opening_bpm (timeline: negative_harmony.timeline.Timeline) -> float:

	"""The earliest forward tempo of the timeline, or the default."""

	tempos = [
		entry for entry in timeline.entries()
		if not entry.reversed and isinstance(entry.payload, negative_harmony.timeline.Tempo)
	]

	if not tempos:
		return negative_harmony.constants.DEFAULT_BPM

	first = min(tempos, key=lambda entry: entry.time)

	return typing.cast(negative_harmony.timeline.Tempo, first.payload).bpm


def render_midi (
	timeline: negative_harmony.timeline.Timeline,
	reversed: bool = False,
	speed: float = 1.0,
	ticks_per_beat: int = 480
) -> mido.MidiFile:

	"""
	Build a ``mido.MidiFile`` from one direction of ``timeline``.

	Parameters:
		timeline: A built timeline.
		reversed: Render the reverse entries instead of the forward ones.
		speed: Playback speed; scales the written tempo (clamped to 20-300 bpm).
		ticks_per_beat: File resolution.
	"""

	if speed <= 0:
		raise ValueError("Playback speed must be positive")

	base_bpm = opening_bpm(timeline)
	base_tempo = mido.bpm2tempo(base_bpm)
	written_bpm = max(MIN_EXPORT_BPM, min(MAX_EXPORT_BPM, base_bpm * speed))

	mid = mido.MidiFile(type=1)
	mid.ticks_per_beat = ticks_per_beat

	conductor = mido.MidiTrack()
	name = getattr(timeline.source, "name", "")

	if name:
		conductor.append(mido.MetaMessage('track_name', name=f"{name} (negative harmony)", time=0))

	conductor.append(mido.MetaMessage('set_tempo', tempo=mido.bpm2tempo(written_bpm), time=0))
	mid.tracks.append(conductor)

	def to_ticks (seconds: float) -> int:
		seconds = max(0.0, min(seconds, timeline.total_duration))
		return int(round(mido.second2tick(seconds, ticks_per_beat, base_tempo)))

	for channel in sorted(timeline.channels):

		events = _channel_events(timeline.channels[channel], reversed, to_ticks, timeline.total_duration)

		if not events:
			continue

		track = mido.MidiTrack()
		last_tick = 0

		for tick, _, _, message in sorted(events, key=lambda event: event[:3]):
			message.time = tick - last_tick
			track.append(message)
			last_tick = tick

		mid.tracks.append(track)

	return mid


def save_midi (
	timeline: negative_harmony.timeline.Timeline,
	filename: str,
	reversed: bool = False,
	speed: float = 1.0,
	ticks_per_beat: int = 480
) -> bool:

	"""Render and save. Returns ``True`` when the file was written."""

	mid = render_midi(timeline, reversed=reversed, speed=speed, ticks_per_beat=ticks_per_beat)
	count = sum(len(track) for track in mid.tracks)

	logger.info(f"Saving transformed MIDI ({count} events, {'reversed' if reversed else 'forward'}, speed {speed:g}) to {filename}...")

	try:
		mid.save(filename)
		logger.info(f"Saved {filename}")
		return True

	except Exception as e:
		logger.error(f"Failed to save MIDI file: {e}")
		return False


def _channel_events (
	partition: negative_harmony.timeline.ChannelTimeline,
	reversed: bool,
	to_ticks: typing.Callable[[float], int],
	total_duration: float
) -> typing.List[typing.Tuple[int, int, int, mido.Message]]:

	"""Absolute-tick events as ``(tick, priority, order, message)``."""

	events: typing.List[typing.Tuple[int, int, int, mido.Message]] = []

	for entry in partition.entries:

		if entry.reversed != reversed:
			continue

		payload = entry.payload
		tick = to_ticks(entry.time)
		order = entry.entry_id

		if isinstance(payload, negative_harmony.timeline.Note):

			pitch = _export_pitch(payload)
			end = max(to_ticks(min(entry.time + payload.duration, total_duration)), tick)
			off_priority = _PRIORITY_NOTE_OFF if end > tick else _PRIORITY_EMPTY_NOTE_OFF

			events.append((tick, _PRIORITY_NOTE_ON, order, mido.Message('note_on', channel=payload.channel, note=pitch, velocity=payload.velocity)))
			events.append((end, off_priority, order, mido.Message('note_off', channel=payload.channel, note=pitch, velocity=0)))

		elif isinstance(payload, negative_harmony.timeline.ControlChange):

			value = negative_harmony.dispatcher.controller_value(payload.value)
			events.append((tick, _PRIORITY_CONTROL, order, mido.Message('control_change', channel=payload.channel, control=payload.number, value=value)))

		elif isinstance(payload, negative_harmony.timeline.ProgramChange):

			events.append((tick, _PRIORITY_PROGRAM, order, mido.Message('program_change', channel=payload.channel, program=payload.number)))

		elif isinstance(payload, negative_harmony.timeline.PitchBend):

			value = negative_harmony.dispatcher.bend_value(payload.value)
			events.append((tick, _PRIORITY_BEND, order, mido.Message('pitchwheel', channel=payload.channel, pitch=value)))

	return events


def _export_pitch (note: negative_harmony.timeline.Note) -> int:

	pitch = note.transformed_pitch

	if negative_harmony.constants.MIDI_NOTE_MIN <= pitch <= negative_harmony.constants.MIDI_NOTE_MAX:
		return pitch

	clamped = max(negative_harmony.constants.MIDI_NOTE_MIN, min(negative_harmony.constants.MIDI_NOTE_MAX, pitch))
	logger.warning(f"Transformed pitch {pitch} on channel {note.channel} is outside the MIDI range; clamped to {clamped}")

	return clamped
