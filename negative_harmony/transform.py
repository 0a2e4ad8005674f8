"""Pitch reflection.

Maps a note to its mirror image around an axis. Three modes are available:

- ``"identity"`` leaves every pitch alone.
- ``"inversion"`` mirrors around D (the centre of the piano keyboard).
- ``"negative_harmony"`` mirrors around the axis between the tonic and
  the dominant of a configurable root, so that major becomes minor and
  dominant motion becomes plagal.

The scope decides where the axis sits: once for the whole keyboard
(``"global"``), once per octave (``"per_octave"``), or per channel close
to the middle of that channel's pitch range (``"per_voice"``).

Channel 9 (General MIDI percussion) is never transformed.

Example:
	```python
	config = TransformConfig(mode="inversion", scope="global")
	transform_pitch(60, channel=0, config=config, range_of=lambda channel: None)  # 64
	```
"""

import dataclasses
import typing

import negative_harmony.analysis
import negative_harmony.constants


MODE_IDENTITY = "identity"
MODE_INVERSION = "inversion"
MODE_NEGATIVE_HARMONY = "negative_harmony"

MODES = (MODE_IDENTITY, MODE_INVERSION, MODE_NEGATIVE_HARMONY)

SCOPE_GLOBAL = "global"
SCOPE_PER_OCTAVE = "per_octave"
SCOPE_PER_VOICE = "per_voice"

SCOPES = (SCOPE_GLOBAL, SCOPE_PER_OCTAVE, SCOPE_PER_VOICE)

# Inversion mirrors around D: the global axis is pitch 62, per-voice axes are the Ds.
INVERSION_PIVOT = 82
INVERSION_OFFSET = 21
INVERSION_AXIS_NOTES = tuple(range(2, 123, 12))

RangeLookup = typing.Callable[[int], typing.Optional[negative_harmony.analysis.ChannelRange]]


@dataclasses.dataclass
class TransformConfig:

	"""
	How pitches are reflected.

	``axis_root`` is a pitch class (0-11). ``None`` means "use the detected
	root"; the engine supplies the fallback.
	"""

	mode: str = MODE_NEGATIVE_HARMONY
	axis_root: typing.Optional[int] = None
	scope: str = SCOPE_PER_OCTAVE

	def __post_init__ (self) -> None:

		validate_mode(self.mode)
		validate_scope(self.scope)


def validate_mode (mode: str) -> None:

	if mode not in MODES:
		raise ValueError(f"Unknown transform mode: {mode!r} (expected one of {', '.join(MODES)})")


def validate_scope (scope: str) -> None:

	if scope not in SCOPES:
		raise ValueError(f"Unknown transform scope: {scope!r} (expected one of {', '.join(SCOPES)})")


def norm_mod12 (value: float) -> float:

	"""Modulo 12 that stays in ``[0, 12)`` for negative input."""

	return ((value % 12) + 12) % 12


def clamp_pitch (pitch: int) -> int:

	return max(negative_harmony.constants.MIDI_NOTE_MIN, min(negative_harmony.constants.MIDI_NOTE_MAX, pitch))


def is_valid_root (root: typing.Any) -> bool:

	return isinstance(root, int) and not isinstance(root, bool) and 0 <= root <= 11


def effective_axis_root (config: TransformConfig, fallback_root: typing.Optional[int] = None) -> int:

	"""
	The root to reflect around.

	An explicit valid root wins. Otherwise the fallback (normally the root
	detected from the terminal notes) is used, and failing that the default.
	"""

	if is_valid_root(config.axis_root):
		return typing.cast(int, config.axis_root)

	if is_valid_root(fallback_root):
		return typing.cast(int, fallback_root)

	return negative_harmony.constants.DEFAULT_AXIS_ROOT


def nearest_axis (mid: float, candidates: typing.Iterable[float]) -> float:

	"""
	Pick the candidate closest to ``mid``.

	Candidates are scanned in order and only a strictly closer one replaces
	the current best, so the first of two equidistant candidates wins.
	"""

	best: typing.Optional[float] = None
	best_distance = float("inf")

	for candidate in candidates:

		distance = abs(mid - candidate)

		if distance < best_distance:
			best = candidate
			best_distance = distance

	assert best is not None
	return best


def invert_global (pitch: int) -> int:

	return (INVERSION_PIVOT - (pitch - INVERSION_OFFSET)) + INVERSION_OFFSET


def invert_per_octave (pitch: int) -> int:

	"""Mirror around the D of the note's own octave, keeping the result near the input."""

	octave = ((pitch + 2) // 12) * 12
	raw = int(norm_mod12((INVERSION_PIVOT - (pitch + 2 - INVERSION_OFFSET)) + INVERSION_OFFSET))

	if raw >= 9:
		raw -= 12

	return octave + raw + 2


def invert_per_voice (pitch: int, note_range: negative_harmony.analysis.ChannelRange) -> int:

	axis = nearest_axis(note_range.mid, INVERSION_AXIS_NOTES)

	return clamp_pitch(int(2 * axis - pitch))


def negative_per_octave (pitch: int, root: int) -> int:

	"""
	Negative harmony folded into the note's octave.

	Not clamped: pitches near the ends of the MIDI range can leave 0..127.
	"""

	neg = norm_mod12(root - 3)
	axis = norm_mod12(neg + 3.5)

	semitone = pitch % 12
	octave = pitch // 12

	reflected = norm_mod12(2 * axis - semitone)
	result = octave * 12 + reflected

	if semitone <= neg:
		result -= 12

	if reflected - neg > 9:
		result -= 12
	elif neg - reflected > 2:
		result += 12

	return int(result)


def negative_per_voice (pitch: int, root: int, note_range: negative_harmony.analysis.ChannelRange) -> int:

	neg = norm_mod12(root - 3)
	axis_semitone = norm_mod12(neg + 3.5)

	candidates = [
		octave * 12 + axis_semitone
		for octave in range(11)
		if negative_harmony.constants.MIDI_NOTE_MIN <= octave * 12 + axis_semitone <= negative_harmony.constants.MIDI_NOTE_MAX
	]

	axis = nearest_axis(note_range.mid, candidates)

	return clamp_pitch(int(2 * axis - pitch))


def reflect (pitch: int, root: int) -> int:

	"""Plain reflection across ``root + 0.5``. Not clamped."""

	return 2 * root - pitch + 1


def resolve_pitch (
	pitch: int,
	channel: int,
	config: TransformConfig,
	range_of: RangeLookup,
	fallback_root: typing.Optional[int] = None
) -> typing.Tuple[int, bool]:

	"""
	Transform a pitch and report whether a channel range was missing.

	Returns ``(pitch, needs_reanalysis)``. When a per-voice transform finds
	no range for the channel it falls back to the per-octave computation
	and reports ``True`` so that the caller can re-run the range analysis.
	"""

	if channel == negative_harmony.constants.DRUM_CHANNEL or config.mode == MODE_IDENTITY:
		return pitch, False

	scope = config.scope
	missing_range = False
	note_range = None

	if scope == SCOPE_PER_VOICE:

		note_range = range_of(channel)

		if note_range is None:
			scope = SCOPE_PER_OCTAVE
			missing_range = True

	if config.mode == MODE_INVERSION:

		if scope == SCOPE_GLOBAL:
			return invert_global(pitch), missing_range

		if scope == SCOPE_PER_OCTAVE:
			return invert_per_octave(pitch), missing_range

		assert note_range is not None
		return invert_per_voice(pitch, note_range), missing_range

	root = effective_axis_root(config, fallback_root)

	if scope == SCOPE_PER_OCTAVE:
		return negative_per_octave(pitch, root), missing_range

	if scope == SCOPE_PER_VOICE:
		assert note_range is not None
		return negative_per_voice(pitch, root, note_range), missing_range

	return reflect(pitch, root), missing_range


def transform_pitch (
	pitch: int,
	channel: int,
	config: TransformConfig,
	range_of: RangeLookup,
	fallback_root: typing.Optional[int] = None
) -> int:

	"""Transform a pitch, discarding the missing-range signal."""

	return resolve_pitch(pitch, channel, config, range_of, fallback_root)[0]


def bend_polarity (config: TransformConfig, normal: bool) -> int:

	"""
	Sign applied to pitch-bend values.

	A reflected melody bends the other way, so bends flip whenever a
	transform is active and the voice settings are not hidden (``normal``).
	"""

	if config.mode != MODE_IDENTITY and not normal:
		return -1

	return 1
