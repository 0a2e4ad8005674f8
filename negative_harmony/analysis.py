"""Per-channel pitch ranges and tonic detection.

One pass over the notes of a source document gives, for each melodic
channel, the lowest and highest pitch played. Per-voice transforms centre
their axis on the middle of that range.

The same pass collects the *terminal notes* of each channel - the notes
that start last - because a piece usually ends on its tonic. The lowest
terminal note across all channels, taken modulo 12, becomes the detected
axis root.
"""

import dataclasses
import logging
import typing

import negative_harmony.constants
import negative_harmony.source


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ChannelRange:

	"""Lowest and highest pitch heard on a channel."""

	lowest: int
	highest: int

	@property
	def mid (self) -> float:

		return (self.lowest + self.highest) / 2


@dataclasses.dataclass
class TerminalNotes:

	"""The last-starting notes of a channel, one entry per distinct pitch."""

	time: float = float("-inf")
	pitches: typing.List[int] = dataclasses.field(default_factory=list)

	def offer (self, time: float, pitch: int) -> None:

		"""Consider a note; a later start replaces the set, an equal start joins it."""

		if time > self.time:
			self.time = time
			self.pitches = [pitch]

		elif time == self.time and pitch not in self.pitches:
			self.pitches.append(pitch)


@dataclasses.dataclass
class RangeAnalysis:

	ranges: typing.Dict[int, ChannelRange] = dataclasses.field(default_factory=dict)
	terminal_notes: typing.Dict[int, TerminalNotes] = dataclasses.field(default_factory=dict)
	detected_root: typing.Optional[int] = None


def analyze (document: negative_harmony.source.SourceDocument, detect_root: bool = True) -> RangeAnalysis:

	"""
	Compute channel ranges and, when ``detect_root`` is set, the detected root.

	The percussion channel is skipped. Several tracks on the same channel
	merge into one range.

	Parameters:
		document: The parsed source.
		detect_root: Collect terminal notes and derive a root. Hosts that
			already have an explicit root pass ``False``.
	"""

	lowest: typing.Dict[int, int] = {}
	highest: typing.Dict[int, int] = {}
	terminal: typing.Dict[int, TerminalNotes] = {}

	for track in document.tracks:

		channel = track.channel

		if channel == negative_harmony.constants.DRUM_CHANNEL or not track.notes:
			continue

		for note in track.notes:

			lowest[channel] = min(lowest.get(channel, note.pitch), note.pitch)
			highest[channel] = max(highest.get(channel, note.pitch), note.pitch)

			if detect_root:
				terminal.setdefault(channel, TerminalNotes()).offer(note.time, note.pitch)

	ranges = {channel: ChannelRange(lowest=lowest[channel], highest=highest[channel]) for channel in lowest}

	detected_root = None
	all_terminal = [pitch for notes in terminal.values() for pitch in notes.pitches]

	if all_terminal:
		detected_root = min(all_terminal) % 12
		logger.debug(f"Detected axis root {detected_root} from terminal notes {sorted(all_terminal)}")

	return RangeAnalysis(ranges=ranges, terminal_notes=terminal, detected_root=detected_root)
