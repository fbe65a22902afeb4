"""
Read lifecycle hooks.

A model class can register handlers that run *before* each read entry point
builds and executes its statement::

    User.before('fetch', lambda query: query.where(User.active == True))

Events and payloads:

- ``fetch``: multi-row reads (``get(fetch_mode='all')``), payload is the ``ModelQuery``
- ``find``: single-row reads (``get(fetch_mode='first' | 'one')``), payload is the ``ModelQuery``
- ``paginate``: ``get_with_count()``, payload is ``(count_query, data_query)``

A read that fails before its ``before`` hooks run (invalid arguments,
statement construction errors) runs the class's abort handlers instead::

    User.on_read_abort(reset_request_scope)

Hooks belong to the exact class they were registered on; subclasses start
with an empty registry.
"""
from typing import Any, Callable, ClassVar, Literal, get_args

ReadEvent = Literal['fetch', 'find', 'paginate']

READ_EVENTS: tuple[str, ...] = get_args(ReadEvent)

BeforeHook = Callable[[Any], None]

AbortHook = Callable[[], None]


class ReadHooksMixin:
    """Per-class registry of ``before`` read hooks."""

    _has_read_hooks: ClassVar[bool] = True
    """Internal flag marking classes that expose the read lifecycle."""

    @classmethod
    def _own_before_hooks(cls) -> dict[str, list[BeforeHook]]:
        hooks = cls.__dict__.get('__before_hooks__')
        if hooks is None:
            hooks = {event: [] for event in READ_EVENTS}
            cls.__before_hooks__ = hooks
        return hooks

    @classmethod
    def before(cls, event: ReadEvent, handler: BeforeHook) -> None:
        """
        Register a handler to run before the given read event.

        :param event: ``'fetch'``, ``'find'`` or ``'paginate'``
        :param handler: Callable receiving the event payload
        :raises ValueError: Unknown event name
        """
        if event not in READ_EVENTS:
            raise ValueError(f"Unknown read event '{event}', expected one of {READ_EVENTS}")
        cls._own_before_hooks()[event].append(handler)

    @classmethod
    def get_before_hooks(cls, event: ReadEvent) -> tuple[BeforeHook, ...]:
        """Handlers registered on this class for ``event``, in registration order."""
        hooks = cls.__dict__.get('__before_hooks__')
        if hooks is None:
            return ()
        return tuple(hooks.get(event, ()))

    @classmethod
    def run_before_hooks(cls, event: ReadEvent, payload: Any) -> None:
        """Run this class's handlers for ``event``. Handler exceptions propagate."""
        for handler in cls.get_before_hooks(event):
            handler(payload)

    @classmethod
    def on_read_abort(cls, handler: AbortHook) -> None:
        """
        Register a handler to run when a read fails before its ``before`` hooks ran.

        :param handler: Callable taking no arguments
        """
        hooks = cls.__dict__.get('__abort_hooks__')
        if hooks is None:
            hooks = []
            cls.__abort_hooks__ = hooks
        hooks.append(handler)

    @classmethod
    def get_abort_hooks(cls) -> tuple[AbortHook, ...]:
        return tuple(cls.__dict__.get('__abort_hooks__', ()))

    @classmethod
    def abort_read(cls) -> None:
        """Run this class's abort handlers. Handler exceptions propagate."""
        for handler in cls.get_abort_hooks():
            handler()
