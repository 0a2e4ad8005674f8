import copy
import typing

import mido
import pytest

import negative_harmony.source


class FakeMidiOut:

	"""MIDI output stub that keeps every message it is sent."""

	def __init__ (self) -> None:

		self.messages: typing.List[mido.Message] = []

	def send (self, message: mido.Message) -> None:

		"""Store outgoing MIDI messages."""

		self.messages.append(message)

	def close (self) -> None:

		"""No-op close for the fake device."""

		return None

	def panic (self) -> None:

		"""No-op panic for the fake device."""

		return None

	def reset (self) -> None:

		"""No-op reset for the fake device."""

		return None


class RecordingSink:

	"""MidiSink that records each call as a tuple."""

	def __init__ (self) -> None:

		self.calls: typing.List[typing.Tuple[typing.Any, ...]] = []

	def note_on (self, channel: int, pitch: int, velocity: int) -> None:

		self.calls.append(("note_on", channel, pitch, velocity))

	def note_off (self, channel: int, pitch: int) -> None:

		self.calls.append(("note_off", channel, pitch))

	def control_change (self, channel: int, number: int, value: float) -> None:

		self.calls.append(("control_change", channel, number, value))

	def program_change (self, channel: int, number: int) -> None:

		self.calls.append(("program_change", channel, number))

	def pitch_bend (self, channel: int, value: float) -> None:

		self.calls.append(("pitch_bend", channel, value))

	def of_kind (self, kind: str) -> typing.List[typing.Tuple[typing.Any, ...]]:

		"""Return only the calls of one kind."""

		return [call for call in self.calls if call[0] == kind]


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	return FakeMidiOut()


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output for tests that open ports."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


@pytest.fixture
def fake_port () -> FakeMidiOut:

	"""A fresh fake output port."""

	return FakeMidiOut()


@pytest.fixture
def sink () -> RecordingSink:

	"""A fresh recording sink."""

	return RecordingSink()


SAMPLE_DOCUMENT: typing.Dict[str, typing.Any] = {
	"name": "Sample",
	"totalDuration": 8.0,
	"tempos": [{"time": 0.0, "bpm": 120}, {"time": 4.0, "bpm": 60}],
	"timeSignatures": [{"time": 0.0, "timeSignature": [4, 4]}],
	"tracks": [
		{
			"channel": 0,
			"name": "Lead",
			"instrument": {"number": 5},
			"notes": [
				{"time": 1.0, "duration": 0.5, "pitch": 60, "velocity": 1.0},
				{"time": 2.0, "duration": 1.5, "pitch": 64, "velocity": 0.5},
				{"time": 5.0, "duration": 0.5, "pitch": 67, "velocity": 0.8},
			],
			"controlChanges": {"7": [{"time": 0.5, "value": 0.5}, {"time": 3.0, "value": 1.0}]},
			"pitchBends": [{"time": 2.5, "value": 0.5}],
		},
		{
			"channel": 9,
			"name": "Drums",
			"notes": [{"time": 0.0, "duration": 1.0, "pitch": 36, "velocity": 0.5}],
		},
		{
			"channel": 3,
			"name": "Empty",
		},
	],
}


@pytest.fixture
def sample_data () -> typing.Dict[str, typing.Any]:

	"""The sample document as a parser would deliver it."""

	return copy.deepcopy(SAMPLE_DOCUMENT)


@pytest.fixture
def sample_document () -> negative_harmony.source.SourceDocument:

	"""
	Eight seconds, 120 bpm then 60 bpm from 4s.

	Channel 0 plays 60 (1.0s), 64 (2.0s, long) and 67 (5.0s) with program 5,
	a volume stream and one bend. Channel 9 has a kick at 0. Channel 3 is empty.
	"""

	return negative_harmony.source.SourceDocument.from_dict(SAMPLE_DOCUMENT)
