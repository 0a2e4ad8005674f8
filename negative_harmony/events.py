import typing


CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Synchronous notifications from the engine to its host.

	Listeners run in registration order on the caller's thread, before the
	emitting call returns. Exceptions raised by a listener propagate.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		self._listeners.setdefault(event_name, []).append(callback)


	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if callback not in self._listeners.get(event_name, []):
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)


	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> int:

		"""
		Call every listener of ``event_name``. Returns how many were called.
		"""

		listeners = list(self._listeners.get(event_name, []))

		for callback in listeners:
			callback(*args, **kwargs)

		return len(listeners)
