"""Re-derive transformed pitches after a configuration change.

Walks the stored timeline and rewrites the two derived fields in place:
``Note.transformed_pitch`` (from ``original_pitch``) and ``PitchBend.value``
(from ``original_value``). Timing, velocity, duration and channel are never
touched, so a change of mode, root or scope takes effect without a rebuild.

The caller must not run this while a dispatcher is reading the same
entries; serialise it against the clock's tick.
"""

import logging

import negative_harmony.builder
import negative_harmony.constants
import negative_harmony.timeline
import negative_harmony.transform


logger = logging.getLogger(__name__)


def update_all (ctx: negative_harmony.builder.EngineContext) -> int:

	"""
	Recompute every derived field of ``ctx.timeline``.

	Returns the number of entries whose value changed. Does nothing when no
	timeline has been built.
	"""

	if ctx.timeline is None:
		return 0

	polarity = negative_harmony.transform.bend_polarity(ctx.config, ctx.normal)
	changed = 0

	for entry in ctx.timeline.entries():

		payload = entry.payload

		if isinstance(payload, negative_harmony.timeline.Note):

			if payload.channel == negative_harmony.constants.DRUM_CHANNEL:
				continue

			pitch = ctx.transform(payload.original_pitch, payload.channel)

			if pitch != payload.transformed_pitch:
				payload.transformed_pitch = pitch
				changed += 1

		elif isinstance(payload, negative_harmony.timeline.PitchBend):

			value = payload.original_value * polarity

			if value != payload.value:
				payload.value = value
				changed += 1

	logger.debug(f"Retransformed {changed} entries ({ctx.config.mode}, {ctx.config.scope}, root={ctx.config.axis_root})")

	return changed
