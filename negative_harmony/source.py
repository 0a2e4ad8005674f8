"""Structured musical-event source.

The engine never parses MIDI bytes. An external parser produces a document
in the shape below (seconds for all times, normalised values for velocity,
controllers and pitch bend), and :func:`SourceDocument.from_dict` turns the
plain mapping into typed objects:

	```python
	{
		"totalDuration": 12.0,
		"tempos": [{"time": 0.0, "bpm": 96}],
		"timeSignatures": [{"time": 0.0, "timeSignature": [3, 4]}],
		"tracks": [
			{
				"channel": 0,
				"notes": [{"time": 0.0, "duration": 0.5, "pitch": 60, "velocity": 0.8}],
				"controlChanges": {"7": [{"time": 0.0, "value": 0.75}]},
				"pitchBends": [{"time": 1.0, "value": -0.5}],
				"instrument": {"number": 0},
			}
		],
	}
	```

Missing collections are read as empty, so an empty mapping is a valid
document with zero events.
"""

import bisect
import dataclasses
import typing

import negative_harmony.constants


@dataclasses.dataclass
class SourceNote:

	"""A note as delivered by the parser."""

	time: float
	duration: float
	pitch: int
	velocity: float


@dataclasses.dataclass
class ControlPoint:

	"""One value of a controller stream (value in 0..1)."""

	time: float
	value: float


@dataclasses.dataclass
class BendPoint:

	"""One pitch-bend value (value in -1..1)."""

	time: float
	value: float


@dataclasses.dataclass
class TempoChange:

	time: float
	bpm: float


@dataclasses.dataclass
class TimeSignature:

	time: float
	numerator: int = 4
	denominator: int = 4


@dataclasses.dataclass
class SourceTrack:

	"""
	One parsed track. A track plays on a single channel.
	"""

	channel: int
	notes: typing.List[SourceNote] = dataclasses.field(default_factory=list)
	control_changes: typing.Dict[int, typing.List[ControlPoint]] = dataclasses.field(default_factory=dict)
	pitch_bends: typing.List[BendPoint] = dataclasses.field(default_factory=list)
	instrument: typing.Optional[int] = None
	name: str = ""

	def is_empty (self) -> bool:

		"""True when the track has no notes, no controller data and no bends."""

		return not self.notes and not self.control_changes and not self.pitch_bends


@dataclasses.dataclass(eq=False)
class SourceDocument:

	"""
	A whole parsed piece.

	Documents compare by identity: the engine uses the object itself to
	decide whether a load request is a repeat of the current source.

	``tempos`` is kept in time order; it is sorted once on construction and
	anything that edits it afterwards must keep that order.
	"""

	total_duration: float = 0.0
	tempos: typing.List[TempoChange] = dataclasses.field(default_factory=list)
	time_signatures: typing.List[TimeSignature] = dataclasses.field(default_factory=list)
	tracks: typing.List[SourceTrack] = dataclasses.field(default_factory=list)
	name: str = ""

	def __post_init__ (self) -> None:

		self.tempos.sort(key=lambda tempo: tempo.time)

	def tempo_at (self, time: float) -> float:

		"""
		Return the bpm in effect at ``time``.

		Times before the first tempo change use the first tempo. A document
		without tempo changes plays at the default 120 bpm.
		"""

		if not self.tempos:
			return negative_harmony.constants.DEFAULT_BPM

		times = [tempo.time for tempo in self.tempos]
		index = bisect.bisect_right(times, time) - 1

		return self.tempos[max(index, 0)].bpm

	def quarter_note_seconds (self, time: float) -> float:

		"""Length of one beat at the tempo in effect at ``time``."""

		return 60.0 / self.tempo_at(time)

	def time_signature (self) -> typing.Tuple[int, int]:

		"""The first time signature as ``(numerator, denominator)``."""

		if not self.time_signatures:
			return negative_harmony.constants.DEFAULT_TIME_SIGNATURE

		first = min(self.time_signatures, key=lambda signature: signature.time)

		return first.numerator, first.denominator

	@classmethod
	def from_dict (cls, data: typing.Mapping[str, typing.Any]) -> "SourceDocument":

		"""
		Build a document from a parser's plain mapping.

		Both the camelCase keys of JavaScript MIDI parsers and snake_case keys
		are accepted. Notes may give their pitch as ``pitch`` or ``midi``.
		"""

		tempos = [
			TempoChange(time=float(tempo.get("time", 0.0)), bpm=float(tempo["bpm"]))
			for tempo in _field(data, "tempos") or []
		]

		signatures = []

		for signature in _field(data, "timeSignatures", "time_signatures") or []:

			pair = signature.get("timeSignature") or signature.get("time_signature")

			if pair is not None:
				numerator, denominator = int(pair[0]), int(pair[1])
			else:
				numerator = int(signature.get("numerator", 4))
				denominator = int(signature.get("denominator", 4))

			signatures.append(TimeSignature(time=float(signature.get("time", 0.0)), numerator=numerator, denominator=denominator))

		tracks = [_track_from_dict(track) for track in _field(data, "tracks") or []]

		return cls(
			total_duration = float(_field(data, "totalDuration", "total_duration", "duration") or 0.0),
			tempos = tempos,
			time_signatures = signatures,
			tracks = tracks,
			name = str(_field(data, "name") or "")
		)


def _field (data: typing.Mapping[str, typing.Any], *keys: str) -> typing.Any:

	for key in keys:
		if key in data and data[key] is not None:
			return data[key]

	return None


def _track_from_dict (data: typing.Mapping[str, typing.Any]) -> SourceTrack:

	notes = []

	for note in _field(data, "notes") or []:

		pitch = note["pitch"] if "pitch" in note else note["midi"]

		notes.append(SourceNote(
			time = float(note.get("time", 0.0)),
			duration = float(note.get("duration", 0.0)),
			pitch = int(pitch),
			velocity = float(note.get("velocity", 1.0))
		))

	control_changes: typing.Dict[int, typing.List[ControlPoint]] = {}

	for number, stream in (_field(data, "controlChanges", "control_changes") or {}).items():
		control_changes[int(number)] = [ControlPoint(time=float(cc.get("time", 0.0)), value=float(cc["value"])) for cc in stream]

	pitch_bends = [
		BendPoint(time=float(bend.get("time", 0.0)), value=float(bend["value"]))
		for bend in _field(data, "pitchBends", "pitch_bends") or []
	]

	instrument = _field(data, "instrument")

	if isinstance(instrument, typing.Mapping):
		instrument = instrument.get("number")

	return SourceTrack(
		channel = int(data.get("channel", 0)),
		notes = notes,
		control_changes = control_changes,
		pitch_bends = pitch_bends,
		instrument = int(instrument) if instrument is not None else None,
		name = str(data.get("name") or "")
	)
