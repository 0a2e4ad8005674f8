import logging
import sys
import time

import yaml

import negative_harmony

logging.basicConfig(level=logging.INFO)

# Plays a parsed document (YAML or JSON) in negative harmony, then switches
# to per-voice inversion halfway through and plays the rest backwards.

with open(sys.argv[1], 'r') as f:
	document = negative_harmony.SourceDocument.from_dict(yaml.safe_load(f))

engine = negative_harmony.Engine(negative_harmony.TransformConfig(mode="negative_harmony", scope="per_octave"))
timeline = engine.load(document)

sink = negative_harmony.MidoSink.open()

if sink is None:
	sys.exit(1)

dispatcher = negative_harmony.Dispatcher(timeline, sink, speed=1.0)

halfway = timeline.total_duration / 2
switched = False
start = time.perf_counter()

try:
	while dispatcher.position < timeline.total_duration:

		now = time.perf_counter() - start
		dispatcher.advance(now)

		if not switched and dispatcher.position >= halfway:
			engine.set_mode("inversion")
			engine.set_scope("per_voice")
			dispatcher.set_reversed(True)
			switched = True

		time.sleep(0.005)

except KeyboardInterrupt:
	logging.info("Stopping...")

finally:
	dispatcher.stop()
	sink.close()
