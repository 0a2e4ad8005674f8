import pytest

import negative_harmony.events


def test_on_and_emit () -> None:

	"""Registered callbacks are called with the emitted arguments."""

	emitter = negative_harmony.events.EventEmitter()
	received: list[int] = []

	emitter.on("retransformed", lambda v: received.append(v))

	assert emitter.emit("retransformed", 42) == 1
	assert received == [42]


def test_emit_without_listeners () -> None:

	"""Emitting an unknown event calls nobody."""

	assert negative_harmony.events.EventEmitter().emit("loaded") == 0


def test_listeners_run_in_registration_order () -> None:

	"""First registered, first called."""

	emitter = negative_harmony.events.EventEmitter()
	order: list[str] = []

	emitter.on("loaded", lambda: order.append("a"))
	emitter.on("loaded", lambda: order.append("b"))
	emitter.emit("loaded")

	assert order == ["a", "b"]


def test_off_removes_only_target_callback () -> None:

	"""off() leaves other callbacks for the same event intact."""

	emitter = negative_harmony.events.EventEmitter()
	a: list[int] = []
	b: list[int] = []

	def cb_a (v: int) -> None:
		a.append(v)

	def cb_b (v: int) -> None:
		b.append(v)

	emitter.on("tick", cb_a)
	emitter.on("tick", cb_b)
	emitter.off("tick", cb_a)
	emitter.emit("tick", 7)

	assert a == []
	assert b == [7]


def test_off_raises_for_unregistered_callback () -> None:

	"""off() raises ValueError for a callback that was never registered."""

	emitter = negative_harmony.events.EventEmitter()

	with pytest.raises(ValueError):
		emitter.off("tick", lambda: None)


def test_listener_exceptions_propagate () -> None:

	"""A failing listener fails the emitting call."""

	emitter = negative_harmony.events.EventEmitter()

	def broken () -> None:
		raise RuntimeError("listener failed")

	emitter.on("loaded", broken)

	with pytest.raises(RuntimeError):
		emitter.emit("loaded")
