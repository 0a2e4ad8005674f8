"""Settings file loading.

A settings file is YAML::

	transform:
	  mode: negative_harmony      # identity | inversion | negative_harmony
	  axis_root: 7                # pitch class 0-11, omit to auto-detect
	  scope: per_octave           # global | per_octave | per_voice
	playback:
	  speed: 1.0
	  reversed: false
	engine:
	  normal: false
	  align: false

Every key is optional.
"""

import dataclasses
import logging
import os
import typing

import yaml

import negative_harmony.transform


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Settings:

	mode: str = negative_harmony.transform.MODE_NEGATIVE_HARMONY
	axis_root: typing.Optional[int] = None
	scope: str = negative_harmony.transform.SCOPE_PER_OCTAVE
	speed: float = 1.0
	reversed: bool = False
	normal: bool = False
	align: bool = False

	def __post_init__ (self) -> None:

		negative_harmony.transform.validate_mode(self.mode)
		negative_harmony.transform.validate_scope(self.scope)

		if self.speed <= 0:
			raise ValueError("Playback speed must be positive")

	def transform_config (self) -> negative_harmony.transform.TransformConfig:

		"""A fresh :class:`TransformConfig` for these settings."""

		return negative_harmony.transform.TransformConfig(mode=self.mode, axis_root=self.axis_root, scope=self.scope)


def load_config (config_path: str) -> dict:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		return yaml.safe_load(f) or {}


def settings_from_dict (config: typing.Dict[str, typing.Any]) -> Settings:

	"""Build :class:`Settings` from the nested ``transform``/``playback``/``engine`` sections."""

	transform = config.get('transform') or {}
	playback = config.get('playback') or {}
	engine = config.get('engine') or {}

	defaults = Settings()

	return Settings(
		mode = transform.get('mode', defaults.mode),
		axis_root = transform.get('axis_root', defaults.axis_root),
		scope = transform.get('scope', defaults.scope),
		speed = float(playback.get('speed', defaults.speed)),
		reversed = bool(playback.get('reversed', defaults.reversed)),
		normal = bool(engine.get('normal', defaults.normal)),
		align = bool(engine.get('align', defaults.align))
	)


def load_settings (config_path: str) -> Settings:

	"""Read ``config_path`` into :class:`Settings`; a missing file gives the defaults."""

	return settings_from_dict(load_config(config_path))
