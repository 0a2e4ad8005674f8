"""
Negative Harmony - a bidirectional pitch-transform and event-scheduling engine.

Takes a parsed MIDI-like document and builds a timeline of playable
events in which every note is reflected through a musical axis: plain
inversion, or negative harmony around a chosen (or detected) root. Each
event is held twice, once for forward playback and once mirrored around
the total duration for reverse playback, so a player can switch
direction at any moment.

What it does:

- **Three transforms.** Identity, inversion and negative harmony, each
  scoped globally, per octave, or per voice (around the middle of each
  channel's pitch range). Channel 9 (percussion) is never transformed.
- **Live changes.** Change the mode, axis root or scope during playback;
  every note is re-derived in place from its original pitch, and timing
  never moves.
- **Forward and reverse.** Notes longer than a beat mirror their end so
  they still start on time when reversed. Controller streams and tempo
  changes mirror as well.
- **Playback boundary.** ``Dispatcher`` fires the due entries into any
  ``MidiSink`` (``MidoSink`` sends ``mido`` messages to a port) under an
  external clock.
- **Export.** Render either direction, at any speed, to a Standard MIDI
  File.

Minimal example:

    ```python
    import negative_harmony

    engine = negative_harmony.Engine(negative_harmony.TransformConfig(mode="negative_harmony"))
    engine.load(negative_harmony.SourceDocument.from_dict(parsed))

    engine.set_axis_root(7)
    negative_harmony.save_midi(engine.timeline, "out.mid", reversed=True)
    ```

Package-level exports: ``Engine``, ``TransformConfig``, ``SourceDocument``,
``Dispatcher``, ``MidoSink``, ``render_midi``, ``save_midi``.
"""

import negative_harmony.dispatcher
import negative_harmony.engine
import negative_harmony.export
import negative_harmony.source
import negative_harmony.transform


Engine = negative_harmony.engine.Engine
TransformConfig = negative_harmony.transform.TransformConfig
SourceDocument = negative_harmony.source.SourceDocument
Dispatcher = negative_harmony.dispatcher.Dispatcher
MidoSink = negative_harmony.dispatcher.MidoSink
render_midi = negative_harmony.export.render_midi
save_midi = negative_harmony.export.save_midi
