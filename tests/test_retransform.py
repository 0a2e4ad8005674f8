import negative_harmony.builder
import negative_harmony.retransform
import negative_harmony.source
import negative_harmony.timeline
import negative_harmony.transform


def _context (document: negative_harmony.source.SourceDocument) -> negative_harmony.builder.EngineContext:

	ctx = negative_harmony.builder.EngineContext()
	negative_harmony.builder.build_timeline(ctx, document)

	return ctx


def _note_snapshot (ctx: negative_harmony.builder.EngineContext) -> list:

	return [
		(entry.entry_id, entry.time, entry.reversed, entry.payload.channel, entry.payload.original_pitch, entry.payload.velocity, entry.payload.duration)
		for entry in ctx.timeline.entries()
		if isinstance(entry.payload, negative_harmony.timeline.Note)
	]


def test_update_without_timeline_does_nothing () -> None:

	"""No timeline, nothing to change."""

	assert negative_harmony.retransform.update_all(negative_harmony.builder.EngineContext()) == 0


def test_update_rewrites_transformed_pitches (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""Switching to global inversion re-derives every melodic note from its original pitch."""

	ctx = _context(sample_document)
	ctx.config.mode = "inversion"
	ctx.config.scope = "global"

	negative_harmony.retransform.update_all(ctx)

	for entry in ctx.timeline.entries():

		payload = entry.payload

		if isinstance(payload, negative_harmony.timeline.Note) and payload.channel != 9:
			assert payload.transformed_pitch == negative_harmony.transform.invert_global(payload.original_pitch)


def test_update_preserves_timing (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""Time, direction, channel, original pitch, velocity and duration never change."""

	ctx = _context(sample_document)
	before = _note_snapshot(ctx)

	for mode, scope in (("inversion", "per_voice"), ("negative_harmony", "global"), ("identity", "per_octave")):
		ctx.config.mode = mode
		ctx.config.scope = scope
		negative_harmony.retransform.update_all(ctx)

	assert _note_snapshot(ctx) == before


def test_update_counts_changed_entries (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""Six melodic note entries and two bends change when switching to identity."""

	ctx = _context(sample_document)
	ctx.config.mode = "identity"

	assert negative_harmony.retransform.update_all(ctx) == 8
	assert negative_harmony.retransform.update_all(ctx) == 0


def test_identity_restores_original_values (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""Identity puts back the original pitches and bend values."""

	ctx = _context(sample_document)
	ctx.config.mode = "identity"

	negative_harmony.retransform.update_all(ctx)

	for entry in ctx.timeline.entries():

		payload = entry.payload

		if isinstance(payload, negative_harmony.timeline.Note):
			assert payload.transformed_pitch == payload.original_pitch

		elif isinstance(payload, negative_harmony.timeline.PitchBend):
			assert payload.value == payload.original_value == 0.5


def test_normal_flag_keeps_bend_polarity (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""Hiding the voice settings un-flips the bends without touching notes."""

	ctx = _context(sample_document)
	ctx.normal = True

	assert negative_harmony.retransform.update_all(ctx) == 2


def test_per_voice_without_range_sets_flag (sample_document: negative_harmony.source.SourceDocument) -> None:

	"""A missing range during retransform degrades to per-octave and flags re-analysis."""

	ctx = _context(sample_document)
	ctx.channel_ranges = {}
	ctx.config.scope = "per_voice"

	negative_harmony.retransform.update_all(ctx)

	assert ctx.needs_reanalysis is True

	for entry in ctx.timeline.channels[0].notes():
		assert entry.payload.transformed_pitch == negative_harmony.transform.negative_per_octave(entry.payload.original_pitch, 7)
