"""Bar alignment of a source document.

Many files start with silence or a pickup and end in the middle of a bar.
Mirrored playback then starts off the beat. :func:`align_to_first_bar`
moves the first bar that contains music to time zero and pads the end to
the next downbeat, so that the forward and the reverse timeline both start
on a bar line.

Bar length comes from the first time signature and the first tempo.
"""

import copy
import dataclasses
import logging
import math
import typing

import negative_harmony.source


logger = logging.getLogger(__name__)

_TOLERANCE = 1e-9


@dataclasses.dataclass
class BarInfo:

	"""Where the music starts."""

	time: float
	bar_number: int
	first_event_time: typing.Optional[float]
	method: str


def bar_seconds (document: negative_harmony.source.SourceDocument) -> float:

	"""Length of one bar at the opening tempo and time signature."""

	numerator, denominator = document.time_signature()
	beat = document.quarter_note_seconds(0.0) * 4 / denominator

	return beat * numerator


def first_musical_bar (document: negative_harmony.source.SourceDocument) -> BarInfo:

	"""
	Find the bar holding the earliest note.

	Only notes count as music; controller data before the first note does
	not. ``bar_number`` is 1-based; it is 0 when the document has no
	notes and so no musical bar.
	"""

	starts = [note.time for track in document.tracks for note in track.notes]

	if not starts:
		return BarInfo(time=0.0, bar_number=0, first_event_time=None, method="no_music")

	first = min(starts)
	bar = bar_seconds(document)
	index = math.floor(first / bar + _TOLERANCE)

	return BarInfo(time=index * bar, bar_number=index + 1, first_event_time=first, method="first_musical_bar")


def align_to_first_bar (document: negative_harmony.source.SourceDocument) -> negative_harmony.source.SourceDocument:

	"""
	Return an aligned copy of ``document``. The input is not modified.

	When the first musical bar starts after zero, everything is shifted back
	by that amount - unless a tempo or time-signature change sits between
	zero and the bar, in which case everything is padded forward instead so
	that the change is kept. The end is then extended to the next downbeat
	by lengthening the notes that end last.
	"""

	aligned = copy.deepcopy(document)
	info = first_musical_bar(document)
	bar = bar_seconds(document)

	offset = 0.0

	if info.time > _TOLERANCE:

		header_changes = any(0 < tempo.time < info.time for tempo in document.tempos)
		header_changes = header_changes or any(0 < signature.time < info.time for signature in document.time_signatures)

		offset = info.time if header_changes else -info.time
		_shift(aligned, offset)

		if offset < 0:
			_ensure_header_at_zero(aligned, document)

		logger.debug(f"{'Padded' if offset > 0 else 'Shifted'} source by {abs(offset):.3f}s (first music in bar {info.bar_number})")

	end = document.total_duration + offset
	remainder = end % bar

	if remainder > _TOLERANCE and bar - remainder > _TOLERANCE:

		padding = bar - remainder

		if _extend_last_notes(aligned, padding):
			end += padding
		else:
			logger.warning("No notes to extend; the source does not end on a downbeat")

	aligned.total_duration = end

	return aligned


def _shift (document: negative_harmony.source.SourceDocument, offset: float) -> None:

	def moved (time: float) -> float:
		return max(0.0, time + offset)

	for track in document.tracks:

		for note in track.notes:
			note.time = moved(note.time)

		for stream in track.control_changes.values():
			for cc in stream:
				cc.time = moved(cc.time)

		for bend in track.pitch_bends:
			bend.time = moved(bend.time)

	for tempo in document.tempos:
		tempo.time = moved(tempo.time)

	for signature in document.time_signatures:
		signature.time = moved(signature.time)


def _ensure_header_at_zero (aligned: negative_harmony.source.SourceDocument, original: negative_harmony.source.SourceDocument) -> None:

	if not any(tempo.time == 0 for tempo in aligned.tempos):
		aligned.tempos.insert(0, negative_harmony.source.TempoChange(time=0.0, bpm=original.tempo_at(0.0)))

	if aligned.time_signatures and not any(signature.time == 0 for signature in aligned.time_signatures):
		numerator, denominator = original.time_signature()
		aligned.time_signatures.insert(0, negative_harmony.source.TimeSignature(time=0.0, numerator=numerator, denominator=denominator))


def _extend_last_notes (document: negative_harmony.source.SourceDocument, padding: float) -> bool:

	last_end = -math.inf
	last_notes: typing.List[negative_harmony.source.SourceNote] = []

	for track in document.tracks:
		for note in track.notes:

			end = note.time + note.duration

			if math.isclose(end, last_end, abs_tol=_TOLERANCE):
				last_notes.append(note)

			elif end > last_end:
				last_end = end
				last_notes = [note]

	for note in last_notes:
		note.duration += padding

	return bool(last_notes)
