"""Playback boundary.

The engine only owns data. Something else owns the clock: a host event
loop, an audio callback, a test. That clock calls :meth:`Dispatcher.advance`
with the elapsed playback time, and the dispatcher turns the timeline
entries that fall due into calls on a :class:`MidiSink`.

:class:`MidoSink` is a sink that sends ``mido`` messages to any output port
(or anything else with a ``send()`` method).

Playback speed scales time: at ``speed=2`` one clock second covers two
timeline seconds and notes are released after half their duration.

Instruments that load asynchronously are tracked by a
:class:`ResourceRegistry`. While a channel's resource is pending, notes on
that channel are skipped and program changes wait in a queue that is
drained when the resource becomes ready.
"""

import collections
import dataclasses
import heapq
import itertools
import logging
import typing

import mido

import negative_harmony.constants
import negative_harmony.timeline


logger = logging.getLogger(__name__)


@typing.runtime_checkable
class MidiSink (typing.Protocol):

	"""
	Receiver of playback calls. Values arrive as stored in the timeline:
	controller values 0..1, pitch bend -1..1.
	"""

	def note_on (self, channel: int, pitch: int, velocity: int) -> None:
		...

	def note_off (self, channel: int, pitch: int) -> None:
		...

	def control_change (self, channel: int, number: int, value: float) -> None:
		...

	def program_change (self, channel: int, number: int) -> None:
		...

	def pitch_bend (self, channel: int, value: float) -> None:
		...


def controller_value (value: float) -> int:

	"""Normalised controller value to 7-bit MIDI data."""

	return max(0, min(negative_harmony.constants.MIDI_VALUE_MAX, int(value * negative_harmony.constants.MIDI_VALUE_MAX)))


def bend_value (value: float) -> int:

	"""Normalised bend (-1..1) to mido's signed 14-bit range."""

	scaled = round(value * negative_harmony.constants.PITCH_BEND_CENTER)

	return max(negative_harmony.constants.PITCH_BEND_MIN, min(negative_harmony.constants.PITCH_BEND_MAX, scaled))


class MidoSink:

	"""Send playback calls as ``mido`` messages to an output port."""

	def __init__ (self, port: typing.Any) -> None:

		self.port = port

	@classmethod
	def open (cls, device_name: typing.Optional[str] = None) -> typing.Optional["MidoSink"]:

		"""
		Open a MIDI output and wrap it.

		With no ``device_name`` the first available output is used. Returns
		``None`` (after logging) when no suitable device can be opened.
		"""

		try:
			outputs = mido.get_output_names()

			if not outputs:
				logger.error("No MIDI output devices found.")
				return None

			if device_name is not None and device_name not in outputs:
				logger.error(f"MIDI output device '{device_name}' not found. Available devices: {outputs}")
				return None

			selected_name = device_name if device_name is not None else outputs[0]
			port = mido.open_output(selected_name)
			logger.info(f"Opened MIDI output: {selected_name}")

			return cls(port)

		except Exception as e:
			logger.error(f"Failed to open MIDI output: {e}")
			return None

	def close (self) -> None:

		self.port.close()

	def note_on (self, channel: int, pitch: int, velocity: int) -> None:

		self._send(mido.Message('note_on', channel=channel, note=pitch, velocity=velocity))

	def note_off (self, channel: int, pitch: int) -> None:

		self._send(mido.Message('note_off', channel=channel, note=pitch, velocity=0))

	def control_change (self, channel: int, number: int, value: float) -> None:

		self._send(mido.Message('control_change', channel=channel, control=number, value=controller_value(value)))

	def program_change (self, channel: int, number: int) -> None:

		self._send(mido.Message('program_change', channel=channel, program=number))

	def pitch_bend (self, channel: int, value: float) -> None:

		self._send(mido.Message('pitchwheel', channel=channel, pitch=bend_value(value)))

	def _send (self, message: mido.Message) -> None:

		try:
			self.port.send(message)

		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")


class ResourceRegistry:

	"""
	Pending/ready state per resource key, with callbacks run once on readiness.

	Keys are whatever the host loads per channel (usually the channel
	number). Unknown keys count as ready.
	"""

	def __init__ (self) -> None:

		self._pending: typing.Dict[typing.Hashable, typing.List[typing.Callable[[], typing.Any]]] = {}

	def request (self, key: typing.Hashable) -> None:

		"""Mark ``key`` as loading."""

		self._pending.setdefault(key, [])

	def is_ready (self, key: typing.Hashable) -> bool:

		return key not in self._pending

	def when_ready (self, key: typing.Hashable, callback: typing.Callable[[], typing.Any]) -> None:

		"""Run ``callback`` now if ``key`` is ready, otherwise once it becomes ready."""

		if key in self._pending:
			self._pending[key].append(callback)
		else:
			callback()

	def mark_ready (self, key: typing.Hashable) -> int:

		"""Mark ``key`` as loaded and drain its queue. Returns the number of callbacks run."""

		callbacks = self._pending.pop(key, [])

		for callback in callbacks:
			callback()

		return len(callbacks)


@dataclasses.dataclass(order=True)
class _PendingRelease:

	clock_time: float
	order: int
	channel: int = dataclasses.field(compare=False)
	pitch: int = dataclasses.field(compare=False)


class Dispatcher:

	"""
	Plays a timeline into a sink under an external clock.

	Example:
		```python
		dispatcher = Dispatcher(engine.timeline, MidoSink(port), speed=1.0)

		while playing:
			dispatcher.advance(clock.seconds())
		```
	"""

	def __init__ (
		self,
		timeline: negative_harmony.timeline.Timeline,
		sink: MidiSink,
		speed: float = 1.0,
		resources: typing.Optional[ResourceRegistry] = None
	) -> None:

		if speed <= 0:
			raise ValueError("Playback speed must be positive")

		self.timeline = timeline
		self.sink = sink
		self.speed = speed
		self.resources = resources if resources is not None else ResourceRegistry()

		self.reversed = False
		self.solo_channels: typing.Set[int] = set()

		# Timeline position (seconds) up to which entries have been fired.
		self.position = 0.0
		self._clock_time = 0.0

		# Sounding notes, counted per (channel, pitch).
		self.active_notes: typing.Counter[typing.Tuple[int, int]] = collections.Counter()
		self._releases: typing.List[_PendingRelease] = []
		self._release_counter = itertools.count()

	def set_speed (self, speed: float) -> None:

		if speed <= 0:
			raise ValueError("Playback speed must be positive")

		self.all_notes_off()
		self.speed = speed

	def set_reversed (self, reversed: bool) -> None:

		"""
		Switch direction, keeping the same musical moment.

		The position mirrors to ``D - position`` and sounding notes stop.
		"""

		if reversed == self.reversed:
			return

		self.reversed = reversed
		self.position = max(0.0, self.timeline.total_duration - self.position)
		self.all_notes_off()

	def seek (self, position: float, clock_time: typing.Optional[float] = None) -> None:

		"""Jump to a timeline position (seconds) without firing the skipped entries."""

		self.all_notes_off()
		self.position = max(0.0, min(position, self.timeline.total_duration))

		if clock_time is not None:
			self._clock_time = clock_time

	def advance (self, clock_time: float) -> int:

		"""
		Fire everything due by ``clock_time`` (seconds since the last seek/start).

		Returns the number of entries fired.
		"""

		elapsed = max(0.0, clock_time - self._clock_time)
		end = self.position + elapsed * self.speed

		due = self.timeline.between(self.position, end, self.reversed)

		for entry in due:
			# Each entry goes out at the clock time it was due, after the note-offs due before it.
			due_time = self._clock_time + (entry.time - self.position) / self.speed
			self.release(due_time)
			self.fire(entry, due_time)

		self.position = end
		self._clock_time = clock_time
		self.release(clock_time)

		return len(due)

	def fire (self, entry: negative_harmony.timeline.TimelineEntry, now: float) -> None:

		"""Issue the sink call for one entry if it belongs to the current direction."""

		if entry.reversed != self.reversed:
			return

		payload = entry.payload

		if isinstance(payload, negative_harmony.timeline.Note):
			self._fire_note(payload, now)

		elif isinstance(payload, negative_harmony.timeline.ControlChange):
			self.sink.control_change(payload.channel, payload.number, payload.value)

		elif isinstance(payload, negative_harmony.timeline.ProgramChange):
			channel, number = payload.channel, payload.number
			self.resources.when_ready(channel, lambda: self.sink.program_change(channel, number))

		elif isinstance(payload, negative_harmony.timeline.PitchBend):
			self.sink.pitch_bend(payload.channel, payload.value)

		elif isinstance(payload, negative_harmony.timeline.Tempo):
			logger.debug(f"Tempo {payload.bpm:.2f} bpm (playing at {payload.bpm * self.speed:.2f})")

	def release (self, clock_time: float) -> int:

		"""Send the note-offs due by ``clock_time``."""

		released = 0

		while self._releases and self._releases[0].clock_time <= clock_time:

			pending = heapq.heappop(self._releases)
			self.sink.note_off(pending.channel, pending.pitch)
			key = (pending.channel, pending.pitch)
			self.active_notes[key] -= 1

			if self.active_notes[key] <= 0:
				del self.active_notes[key]

			released += 1

		return released

	def all_notes_off (self) -> None:

		"""Stop tracked notes, then send All Sound Off and All Notes Off on every channel."""

		for channel, pitch in sorted(self.active_notes):
			self.sink.note_off(channel, pitch)

		self.active_notes.clear()
		self._releases.clear()

		for channel in range(negative_harmony.constants.NUM_CHANNELS):
			self.sink.control_change(channel, negative_harmony.constants.CC_ALL_SOUND_OFF, 0.0)
			self.sink.control_change(channel, negative_harmony.constants.CC_ALL_NOTES_OFF, 0.0)

	def sustain_off (self) -> None:

		for channel in range(negative_harmony.constants.NUM_CHANNELS):
			self.sink.control_change(channel, negative_harmony.constants.CC_SUSTAIN, 0.0)

	def stop (self) -> None:

		"""Silence everything and rewind to the start of the current direction."""

		self.all_notes_off()
		self.sustain_off()
		self.position = 0.0
		self._clock_time = 0.0

	def _fire_note (self, note: negative_harmony.timeline.Note, now: float) -> None:

		pitch = note.transformed_pitch

		assert negative_harmony.constants.MIDI_NOTE_MIN <= pitch <= negative_harmony.constants.MIDI_NOTE_MAX, \
			f"Transformed pitch {pitch} (from {note.original_pitch}) on channel {note.channel} is outside the MIDI range"

		if self.solo_channels and note.channel not in self.solo_channels:
			return

		if not self.resources.is_ready(note.channel):
			logger.debug(f"Channel {note.channel} still loading; skipped note {pitch}")
			return

		self.sink.note_on(note.channel, pitch, note.velocity)
		self.active_notes[(note.channel, pitch)] += 1

		heapq.heappush(self._releases, _PendingRelease(
			clock_time = now + note.duration / self.speed,
			order = next(self._release_counter),
			channel = note.channel,
			pitch = pitch
		))
