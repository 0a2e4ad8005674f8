"""Host-facing engine.

:class:`Engine` owns one :class:`~negative_harmony.builder.EngineContext`
and exposes the operations a player needs: load a source, change the
transform, re-analyse ranges and override program or controller values.

Example:
	```python
	engine = Engine(TransformConfig(mode="negative_harmony", scope="per_octave"))
	engine.load(SourceDocument.from_dict(parsed))

	engine.set_axis_root(7)          # every note re-derived in place
	engine.set_scope("per_voice")

	forward = engine.timeline.between(0.0, 4.0, reversed=False)
	```

All operations run to completion on the caller's thread. The engine is
not thread-safe, and configuration changes must not interleave with a
dispatcher reading the same timeline.

Events (``engine.events.on(name, callback)``):

- ``"loaded"`` with the new timeline,
- ``"retransformed"`` with the number of changed entries,
- ``"reanalysis_required"`` when a per-voice transform found no range.
"""

import logging
import typing

import negative_harmony.alignment
import negative_harmony.analysis
import negative_harmony.builder
import negative_harmony.events
import negative_harmony.retransform
import negative_harmony.source
import negative_harmony.timeline
import negative_harmony.transform


logger = logging.getLogger(__name__)


class Engine:

	def __init__ (
		self,
		config: typing.Optional[negative_harmony.transform.TransformConfig] = None,
		normal: bool = False,
		align: bool = False
	) -> None:

		"""
		Parameters:
			config: Initial transform. Defaults to per-octave negative harmony.
			normal: Keep pitch-bend polarity even while a transform is active.
			align: Align each loaded source to its first musical bar.
		"""

		self.ctx = negative_harmony.builder.EngineContext(
			config = config if config is not None else negative_harmony.transform.TransformConfig(),
			normal = normal
		)
		self.align = align
		self.events = negative_harmony.events.EventEmitter()

		self._document: typing.Optional[negative_harmony.source.SourceDocument] = None
		self._source: typing.Optional[negative_harmony.source.SourceDocument] = None

	@property
	def config (self) -> negative_harmony.transform.TransformConfig:

		return self.ctx.config

	@property
	def timeline (self) -> typing.Optional[negative_harmony.timeline.Timeline]:

		return self.ctx.timeline

	@property
	def source (self) -> typing.Optional[negative_harmony.source.SourceDocument]:

		"""The document the timeline was built from (the aligned copy when aligning)."""

		return self._source

	@property
	def needs_reanalysis (self) -> bool:

		return self.ctx.needs_reanalysis

	@property
	def axis_root (self) -> int:

		"""The root negative harmony currently reflects around."""

		return negative_harmony.transform.effective_axis_root(self.ctx.config, self.ctx.detected_root)

	def load (self, document: negative_harmony.source.SourceDocument) -> negative_harmony.timeline.Timeline:

		"""
		Build the timeline for ``document``.

		Loading the object that is already loaded does nothing and returns the
		current timeline.
		"""

		if self._document is document and self.ctx.timeline is not None:
			return self.ctx.timeline

		source = negative_harmony.alignment.align_to_first_bar(document) if self.align else document

		timeline = negative_harmony.builder.build_timeline(self.ctx, source)

		self._document = document
		self._source = source

		self.events.emit("loaded", timeline)
		self._report_reanalysis()

		return timeline

	def unload (self) -> None:

		"""Drop the timeline, the ranges and the detected root."""

		self.ctx.timeline = None
		self.ctx.channel_ranges = {}
		self.ctx.detected_root = None
		self.ctx.needs_reanalysis = False

		self._document = None
		self._source = None

	def set_mode (self, mode: str) -> int:

		negative_harmony.transform.validate_mode(mode)
		self.ctx.config.mode = mode

		return self._retransform()

	def set_axis_root (self, root: typing.Optional[int]) -> int:

		"""
		Set the pitch class to reflect around, or ``None`` for the detected root.

		An invalid value is kept but ignored: negative harmony falls back to
		the detected (or default) root.
		"""

		if root is not None and not negative_harmony.transform.is_valid_root(root):
			logger.warning(f"Invalid axis root {root!r}; falling back to the detected or default root")

		self.ctx.config.axis_root = root

		return self._retransform()

	def set_scope (self, scope: str) -> int:

		negative_harmony.transform.validate_scope(scope)
		self.ctx.config.scope = scope

		return self._retransform()

	def set_normal (self, normal: bool) -> int:

		"""Set the "voice settings hidden" flag that keeps bend polarity."""

		self.ctx.normal = normal

		return self._retransform()

	def reanalyze (self) -> int:

		"""
		Recompute channel ranges for the loaded source and clear the re-analysis flag.

		Returns the number of entries changed by the following retransform.
		"""

		if self._source is None or self.ctx.timeline is None:
			return 0

		detect_root = not negative_harmony.transform.is_valid_root(self.ctx.config.axis_root)
		analysis = negative_harmony.analysis.analyze(self._source, detect_root=detect_root)

		self.ctx.apply_analysis(analysis)
		negative_harmony.builder.attach_ranges(self.ctx, self.ctx.timeline)

		return self._retransform()

	def transform (self, pitch: int, channel: int) -> int:

		"""Transform a single pitch under the current settings."""

		result = self.ctx.transform(pitch, channel)
		self._report_reanalysis()

		return result

	def range_of (self, channel: int) -> typing.Optional[negative_harmony.analysis.ChannelRange]:

		return self.ctx.range_of(channel)

	def override_program_change (self, channel: int, number: int) -> int:

		if self.ctx.timeline is None:
			return 0

		return self.ctx.timeline.override_program_change(channel, number)

	def override_control_change (self, channel: int, number: int, value: float) -> int:

		if self.ctx.timeline is None:
			return 0

		return self.ctx.timeline.override_control_change(channel, number, value)

	def restore_channel (self, channel: int) -> int:

		if self.ctx.timeline is None:
			return 0

		return self.ctx.timeline.restore_channel(channel)

	def _retransform (self) -> int:

		# Configuration is stored either way; without a timeline there is nothing to update.
		if self.ctx.timeline is None:
			return 0

		changed = negative_harmony.retransform.update_all(self.ctx)

		self.events.emit("retransformed", changed)
		self._report_reanalysis()

		return changed

	def _report_reanalysis (self) -> None:

		if self.ctx.needs_reanalysis:
			self.events.emit("reanalysis_required")
