import negative_harmony.analysis
import negative_harmony.source


def _document () -> negative_harmony.source.SourceDocument:

	return negative_harmony.source.SourceDocument.from_dict({
		"totalDuration": 6.0,
		"tracks": [
			{"channel": 0, "notes": [
				{"time": 0.0, "duration": 1.0, "pitch": 60, "velocity": 1.0},
				{"time": 1.0, "duration": 1.0, "pitch": 67, "velocity": 1.0},
				{"time": 2.0, "duration": 1.0, "pitch": 55, "velocity": 1.0},
				{"time": 2.0, "duration": 1.0, "pitch": 64, "velocity": 1.0},
			]},
			{"channel": 1, "notes": [
				{"time": 0.0, "duration": 1.0, "pitch": 48, "velocity": 1.0},
				{"time": 3.0, "duration": 1.0, "pitch": 50, "velocity": 1.0},
			]},
			{"channel": 9, "notes": [
				{"time": 5.0, "duration": 0.1, "pitch": 36, "velocity": 1.0},
			]},
		],
	})


def test_ranges_per_channel () -> None:

	"""Each melodic channel gets its lowest and highest pitch."""

	analysis = negative_harmony.analysis.analyze(_document())

	assert analysis.ranges[0] == negative_harmony.analysis.ChannelRange(lowest=55, highest=67)
	assert analysis.ranges[1] == negative_harmony.analysis.ChannelRange(lowest=48, highest=50)


def test_percussion_channel_is_skipped () -> None:

	"""Channel 9 has no range and no terminal notes."""

	analysis = negative_harmony.analysis.analyze(_document())

	assert 9 not in analysis.ranges
	assert 9 not in analysis.terminal_notes


def test_range_mid () -> None:

	"""The middle of a range may be a half step."""

	assert negative_harmony.analysis.ChannelRange(lowest=55, highest=79).mid == 67
	assert negative_harmony.analysis.ChannelRange(lowest=60, highest=61).mid == 60.5


def test_terminal_notes_collect_last_starting_pitches () -> None:

	"""Notes sharing the latest start time are all terminal."""

	analysis = negative_harmony.analysis.analyze(_document())

	assert analysis.terminal_notes[0].time == 2.0
	assert sorted(analysis.terminal_notes[0].pitches) == [55, 64]
	assert analysis.terminal_notes[1].pitches == [50]


def test_terminal_notes_reset_and_deduplicate () -> None:

	"""A later note resets the set and a repeated pitch is kept once."""

	terminal = negative_harmony.analysis.TerminalNotes()

	terminal.offer(1.0, 60)
	terminal.offer(2.0, 62)
	terminal.offer(2.0, 62)
	terminal.offer(2.0, 59)
	terminal.offer(1.5, 40)

	assert terminal.time == 2.0
	assert terminal.pitches == [62, 59]


def test_detected_root_is_lowest_terminal_pitch_class () -> None:

	"""The lowest terminal pitch across channels (50) gives pitch class 2."""

	analysis = negative_harmony.analysis.analyze(_document())

	assert analysis.detected_root == 2


def test_detection_can_be_skipped () -> None:

	"""With an explicit root the terminal notes are not collected."""

	analysis = negative_harmony.analysis.analyze(_document(), detect_root=False)

	assert analysis.detected_root is None
	assert analysis.terminal_notes == {}
	assert 0 in analysis.ranges


def test_tracks_on_one_channel_merge () -> None:

	"""Two tracks on the same channel share one range."""

	document = negative_harmony.source.SourceDocument.from_dict({
		"tracks": [
			{"channel": 2, "notes": [{"time": 0.0, "duration": 1.0, "pitch": 40, "velocity": 1.0}]},
			{"channel": 2, "notes": [{"time": 0.0, "duration": 1.0, "pitch": 80, "velocity": 1.0}]},
		],
	})

	assert negative_harmony.analysis.analyze(document).ranges[2] == negative_harmony.analysis.ChannelRange(lowest=40, highest=80)


def test_empty_document () -> None:

	"""No notes means no ranges and no detected root."""

	analysis = negative_harmony.analysis.analyze(negative_harmony.source.SourceDocument.from_dict({}))

	assert analysis.ranges == {}
	assert analysis.detected_root is None
