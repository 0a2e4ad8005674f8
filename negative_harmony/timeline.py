"""Dual forward/reverse timeline.

Every source event is stored twice: once at its own time for forward
playback, once at a mirrored time for reverse playback. The clock plays
only the entries whose ``reversed`` flag matches its direction, so
switching direction never rebuilds anything.

Entries live in per-channel partitions kept in time order, and in an
arena keyed by a stable ``entry_id``. The arena is what the explicit
override operations work on: an override remembers the original payload
so that :meth:`Timeline.restore_channel` can put it back.

Only derived fields are meant to change after construction
(``Note.transformed_pitch`` and ``PitchBend.value``), plus the values
touched by overrides.
"""

import bisect
import dataclasses
import itertools
import typing

import negative_harmony.analysis
import negative_harmony.constants


@dataclasses.dataclass
class Note:

	channel: int
	original_pitch: int
	transformed_pitch: int
	velocity: int
	duration: float


@dataclasses.dataclass
class ControlChange:

	channel: int
	number: int
	value: float


@dataclasses.dataclass
class ProgramChange:

	channel: int
	number: int


@dataclasses.dataclass
class PitchBend:

	channel: int
	original_value: float
	value: float


@dataclasses.dataclass(frozen=True)
class Tempo:

	bpm: float


Payload = typing.Union[Note, ControlChange, ProgramChange, PitchBend, Tempo]


@dataclasses.dataclass
class TimelineEntry:

	"""
	One scheduled event.

	``original`` holds a copy of the payload taken by the first override and
	is ``None`` while the entry is untouched.
	"""

	entry_id: int
	time: float
	reversed: bool
	payload: Payload
	original: typing.Optional[Payload] = None


class ChannelTimeline:

	"""The time-ordered entries of one channel, with the channel's pitch range."""

	def __init__ (self, channel: int) -> None:

		self.channel = channel
		self.entries: typing.List[TimelineEntry] = []
		self.note_range: typing.Optional[negative_harmony.analysis.ChannelRange] = None
		self._times: typing.List[float] = []

	def __len__ (self) -> int:

		return len(self.entries)

	def finalize (self) -> None:

		"""Sort entries by time (stable) and index them for window queries."""

		self.entries.sort(key=lambda entry: entry.time)
		self._times = [entry.time for entry in self.entries]

	def between (self, start: float, end: float, reversed: bool) -> typing.List[TimelineEntry]:

		"""Entries of one direction with ``start <= time < end``."""

		low = bisect.bisect_left(self._times, start)
		high = bisect.bisect_left(self._times, end)

		return [entry for entry in self.entries[low:high] if entry.reversed == reversed]

	def notes (self) -> typing.Iterator[TimelineEntry]:

		return (entry for entry in self.entries if isinstance(entry.payload, Note))

	def has_notes (self) -> bool:

		return any(True for _ in self.notes())


class Timeline:

	"""
	All entries built from one source document.

	The timeline keeps a reference to the document it was built from; the
	engine compares it by identity to make repeated loads a no-op.
	"""

	def __init__ (self, source: typing.Any, total_duration: float) -> None:

		self.source = source
		self.total_duration = total_duration
		self.channels: typing.Dict[int, ChannelTimeline] = {}

		self._arena: typing.Dict[int, TimelineEntry] = {}
		self._ids = itertools.count()

	def __len__ (self) -> int:

		return len(self._arena)

	def partition (self, channel: int) -> ChannelTimeline:

		"""Return the partition for ``channel``, creating it if needed."""

		if channel not in self.channels:
			self.channels[channel] = ChannelTimeline(channel)

		return self.channels[channel]

	def channel (self, channel: int) -> typing.Optional[ChannelTimeline]:

		return self.channels.get(channel)

	def add (self, channel: int, time: float, reversed: bool, payload: Payload) -> TimelineEntry:

		entry = TimelineEntry(entry_id=next(self._ids), time=time, reversed=reversed, payload=payload)

		self.partition(channel).entries.append(entry)
		self._arena[entry.entry_id] = entry

		return entry

	def add_pair (self, channel: int, forward_time: float, reverse_time: float, payload: Payload) -> typing.Tuple[TimelineEntry, TimelineEntry]:

		"""Add a forward entry and a reverse entry, each with its own payload copy."""

		forward = self.add(channel, forward_time, False, payload)
		reverse = self.add(channel, reverse_time, True, dataclasses.replace(payload))

		return forward, reverse

	def finalize (self) -> None:

		for partition in self.channels.values():
			partition.finalize()

	def entry (self, entry_id: int) -> TimelineEntry:

		return self._arena[entry_id]

	def entries (self) -> typing.Iterator[TimelineEntry]:

		"""All entries, channel by channel in ascending channel order."""

		for channel in sorted(self.channels):
			yield from self.channels[channel].entries

	def between (self, start: float, end: float, reversed: bool) -> typing.List[TimelineEntry]:

		"""Entries of one direction in ``[start, end)`` across channels, in time order."""

		found: typing.List[TimelineEntry] = []

		for partition in self.channels.values():
			found.extend(partition.between(start, end, reversed))

		found.sort(key=lambda entry: (entry.time, entry.entry_id))

		return found

	def range_of (self, channel: int) -> typing.Optional[negative_harmony.analysis.ChannelRange]:

		partition = self.channels.get(channel)

		return partition.note_range if partition is not None else None

	def override_program_change (self, channel: int, number: int) -> int:

		"""
		Replace the program of every program change on ``channel``.

		Returns the number of entries changed.
		"""

		_validate_channel(channel)
		_validate_value(number, "Program number")

		changed = 0

		for entry in self._channel_entries(channel, ProgramChange):
			_remember(entry)
			typing.cast(ProgramChange, entry.payload).number = number
			changed += 1

		return changed

	def override_control_change (self, channel: int, number: int, value: float) -> int:

		"""
		Replace the value of every change of controller ``number`` on ``channel``.

		``value`` is normalised (0..1) like the source data. Returns the number
		of entries changed.
		"""

		_validate_channel(channel)

		if value < 0 or value > 1:
			raise ValueError("Controller value must be between 0 and 1")

		changed = 0

		for entry in self._channel_entries(channel, ControlChange):

			control_change = typing.cast(ControlChange, entry.payload)

			if control_change.number != number:
				continue

			_remember(entry)
			control_change.value = value
			changed += 1

		return changed

	def restore_channel (self, channel: int) -> int:

		"""Undo every override on ``channel``. Returns the number of entries restored."""

		restored = 0

		partition = self.channels.get(channel)

		if partition is None:
			return 0

		for entry in partition.entries:

			if entry.original is None:
				continue

			entry.payload = entry.original
			entry.original = None
			restored += 1

		return restored

	def _channel_entries (self, channel: int, kind: type) -> typing.Iterator[TimelineEntry]:

		partition = self.channels.get(channel)

		if partition is None:
			return iter(())

		return (entry for entry in partition.entries if isinstance(entry.payload, kind))


def _remember (entry: TimelineEntry) -> None:

	if entry.original is None:
		entry.original = dataclasses.replace(entry.payload)


def _validate_channel (channel: int) -> None:

	if channel < 0 or channel >= negative_harmony.constants.NUM_CHANNELS:
		raise ValueError(f"MIDI channel must be between 0 and {negative_harmony.constants.NUM_CHANNELS - 1}")


def _validate_value (value: int, label: str) -> None:

	if value < 0 or value > negative_harmony.constants.MIDI_VALUE_MAX:
		raise ValueError(f"{label} must be between 0 and {negative_harmony.constants.MIDI_VALUE_MAX}")
