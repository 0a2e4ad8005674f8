"""MIDI and engine constants.

Pitches, velocities and controller numbers follow the General MIDI
conventions. Channels are zero-based, so the General MIDI percussion
channel (channel 10 on most hardware) is ``DRUM_CHANNEL = 9``.
"""

NUM_CHANNELS = 16
DRUM_CHANNEL = 9

MIDI_NOTE_MIN = 0
MIDI_NOTE_MAX = 127
MIDI_VALUE_MAX = 127

# 14-bit pitch bend, centred. mido represents it as -8192..8191.
PITCH_BEND_CENTER = 8192
PITCH_BEND_MIN = -8192
PITCH_BEND_MAX = 8191

DEFAULT_BPM = 120.0
DEFAULT_TIME_SIGNATURE = (4, 4)

# Root used under negative harmony when neither an explicit nor a detected root exists.
DEFAULT_AXIS_ROOT = 0

# Controller numbers used by the dispatcher.
CC_SUSTAIN = 64
CC_ALL_SOUND_OFF = 120
CC_ALL_NOTES_OFF = 123

SEMITONES_PER_OCTAVE = 12
