"""Timeline construction.

Turns a :class:`~negative_harmony.source.SourceDocument` into a
:class:`~negative_harmony.timeline.Timeline`. All engine state lives in an
explicit :class:`EngineContext` which is passed in; nothing here is global.

Reverse times mirror each event around the total duration ``D``. Which
moment of an event is mirrored depends on its kind:

- notes mirror their start, or their end when they are longer than a beat
  (so a long note still starts where it ended); percussion always mirrors
  the start,
- controller streams mirror the time of the *previous* value in the same
  stream,
- a program change sits at the track's first note,
- pitch bends and tempo changes mirror their own time.
"""

import dataclasses
import logging
import math
import typing

import negative_harmony.analysis
import negative_harmony.constants
import negative_harmony.source
import negative_harmony.timeline
import negative_harmony.transform


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class EngineContext:

	"""
	Everything the engine knows: configuration, channel ranges and the timeline.

	``normal`` mirrors the host's "voice settings hidden" flag; while it is
	set pitch bends keep their polarity. ``needs_reanalysis`` is sticky and
	is only cleared by a fresh range analysis.
	"""

	config: negative_harmony.transform.TransformConfig = dataclasses.field(default_factory=negative_harmony.transform.TransformConfig)
	channel_ranges: typing.Dict[int, negative_harmony.analysis.ChannelRange] = dataclasses.field(default_factory=dict)
	timeline: typing.Optional[negative_harmony.timeline.Timeline] = None
	detected_root: typing.Optional[int] = None
	normal: bool = False
	needs_reanalysis: bool = False

	def range_of (self, channel: int) -> typing.Optional[negative_harmony.analysis.ChannelRange]:

		return self.channel_ranges.get(channel)

	def transform (self, pitch: int, channel: int) -> int:

		"""Transform one pitch under the current configuration."""

		result, missing_range = negative_harmony.transform.resolve_pitch(
			pitch,
			channel,
			self.config,
			self.range_of,
			self.detected_root
		)

		if missing_range and not self.needs_reanalysis:
			logger.warning(f"No pitch range for channel {channel}; using per-octave axis until ranges are re-analysed")
			self.needs_reanalysis = True

		return result

	def apply_analysis (self, analysis: negative_harmony.analysis.RangeAnalysis) -> None:

		"""Adopt fresh ranges and, if one was found, the detected root."""

		self.channel_ranges = dict(analysis.ranges)

		if analysis.detected_root is not None:
			self.detected_root = analysis.detected_root

		self.needs_reanalysis = False


def note_velocity (velocity: float, channel: int) -> int:

	"""
	Map a normalised velocity to 0..127.

	Melodic channels use a squared curve, percussion a linear one.
	"""

	if channel == negative_harmony.constants.DRUM_CHANNEL:
		scaled = math.floor(velocity * negative_harmony.constants.MIDI_VALUE_MAX)
	else:
		scaled = math.floor((velocity ** 2) * negative_harmony.constants.MIDI_VALUE_MAX)

	return max(0, min(negative_harmony.constants.MIDI_VALUE_MAX, scaled))


def note_reverse_reference (note: negative_harmony.source.SourceNote, channel: int, beat_seconds: float) -> float:

	"""The moment of a note that lands on the mirrored timeline."""

	if note.duration <= beat_seconds or channel == negative_harmony.constants.DRUM_CHANNEL:
		return note.time

	return note.time + note.duration


def build_timeline (
	ctx: EngineContext,
	document: negative_harmony.source.SourceDocument,
	analysis: typing.Optional[negative_harmony.analysis.RangeAnalysis] = None
) -> negative_harmony.timeline.Timeline:

	"""
	Build (or keep) the timeline for ``document``.

	Building again from the same document object returns the existing
	timeline untouched. A different document drops the previous timeline as
	a whole before the new one is built, so old and new entries never mix.

	Parameters:
		ctx: Engine state. Receives the ranges, detected root and timeline.
		document: The parsed source.
		analysis: Output of :func:`negative_harmony.analysis.analyze`. Computed
			here when omitted.
	"""

	if ctx.timeline is not None and ctx.timeline.source is document:
		logger.debug("Timeline already built for this source")
		return ctx.timeline

	# The previous timeline is dropped whole, never patched.
	ctx.timeline = None
	# A root detected in another source does not carry over.
	ctx.detected_root = None

	if analysis is None:
		detect_root = not negative_harmony.transform.is_valid_root(ctx.config.axis_root)
		analysis = negative_harmony.analysis.analyze(document, detect_root=detect_root)

	ctx.apply_analysis(analysis)

	total = document.total_duration
	timeline = negative_harmony.timeline.Timeline(document, total)

	for tempo in document.tempos:
		timeline.add_pair(0, tempo.time, total - tempo.time, negative_harmony.timeline.Tempo(bpm=tempo.bpm))

	for track in document.tracks:

		if track.is_empty():
			continue

		_add_track(ctx, timeline, document, track)

	attach_ranges(ctx, timeline)

	timeline.finalize()
	ctx.timeline = timeline

	logger.info(f"Built timeline: {len(timeline)} entries on {len(timeline.channels)} channels ({total:.2f}s)")

	return timeline


def _add_track (
	ctx: EngineContext,
	timeline: negative_harmony.timeline.Timeline,
	document: negative_harmony.source.SourceDocument,
	track: negative_harmony.source.SourceTrack
) -> None:

	channel = track.channel
	total = timeline.total_duration

	timeline.partition(channel)

	# Added first so that it sorts ahead of a note starting at the same time.
	if track.instrument is not None:

		program_time = track.notes[0].time if track.notes else 0.0
		payload_pc = negative_harmony.timeline.ProgramChange(channel=channel, number=track.instrument)

		timeline.add_pair(channel, program_time, total - program_time, payload_pc)

	for note in track.notes:

		payload = negative_harmony.timeline.Note(
			channel = channel,
			original_pitch = note.pitch,
			transformed_pitch = ctx.transform(note.pitch, channel),
			velocity = note_velocity(note.velocity, channel),
			duration = note.duration
		)

		reference = note_reverse_reference(note, channel, document.quarter_note_seconds(note.time))
		timeline.add_pair(channel, note.time, total - reference, payload)

	for number in sorted(track.control_changes):

		previous_time = 0.0

		for cc in track.control_changes[number]:

			payload_cc = negative_harmony.timeline.ControlChange(channel=channel, number=number, value=cc.value)
			timeline.add_pair(channel, cc.time, total - previous_time, payload_cc)

			previous_time = cc.time

	polarity = negative_harmony.transform.bend_polarity(ctx.config, ctx.normal)

	for bend in track.pitch_bends:

		payload_bend = negative_harmony.timeline.PitchBend(channel=channel, original_value=bend.value, value=bend.value * polarity)
		timeline.add_pair(channel, bend.time, total - bend.time, payload_bend)


def attach_ranges (ctx: EngineContext, timeline: negative_harmony.timeline.Timeline) -> None:

	"""Hang each channel's pitch range on its partition; flag melodic channels without one."""

	for channel, partition in timeline.channels.items():

		partition.note_range = ctx.channel_ranges.get(channel)

		if partition.note_range is None and channel != negative_harmony.constants.DRUM_CHANNEL and partition.has_notes():
			logger.warning(f"Channel {channel} has notes but no pitch range; flagging for re-analysis")
			ctx.needs_reanalysis = True
