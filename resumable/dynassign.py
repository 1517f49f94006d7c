# -*- coding: utf-8 -*-
"""Dynamic assignment of context-local stores.

A *store* is a named slot whose current value is local to the logical
execution context: each thread, and each asyncio task, sees its own value.
A new value is introduced for the dynamic extent of a call, and the previous
value comes back when that call exits, no matter how it exits::

    depth = make_store("depth", default=0)

    def f():
        return current(depth)

    assert with_bound(depth, 1, f) == 1
    with bound(depth, 2):
        assert f() == 2
        with bound(depth, 3):
            assert f() == 3
        assert f() == 2
    assert f() == 0

Similar to (parameterize) in Racket; akin to Common Lisp's special variables.

Values are stored in `contextvars.ContextVar` instances. Rebinding sets a new
value and keeps the reset token; the scope guard resets the token in a
`finally`, so an exception or an escape (see `resumable.ec`) propagating
through several nested bindings restores each of them, innermost first.

**Spawning**: asyncio copies the current context into each new task, so a task
starts with a snapshot of its spawner's values; after that, the two evolve
independently. For threads, wrap the target with `inherit` to get the same
snapshot behavior. Stores made with `inherit=False` start from their default
in an `inherit`ed call.
"""

__all__ = ["Store", "make_store", "current", "bound", "with_bound", "inherit"]

from contextlib import contextmanager
from contextvars import ContextVar, copy_context
from functools import wraps
from weakref import WeakSet

_stores = WeakSet()

class Store:
    """A context-local slot. Create with `make_store`.

    The default value is shared by all contexts that have not rebound the
    store, so it should be immutable.
    """
    def __init__(self, name, default=None, inherit=True):
        self.name = name
        self.default = default
        self.inherit = inherit
        self._var = ContextVar(name, default=default)
    def get(self):
        """Return the value visible in the current execution context."""
        return self._var.get()
    def __repr__(self):  # pragma: no cover
        return "<Store {} at 0x{:x}: {}>".format(repr(self.name), id(self), repr(self.get()))

def make_store(name, default=None, inherit=True):
    """Create a context-local store.

    `name`: str, for debugging.
    `default`: the value seen outside the dynamic extent of any binding.
    `inherit`: whether `inherit` carries the current value into the wrapped call.
               If `False`, the wrapped call sees `default` instead.
    """
    store = Store(name, default, inherit)
    _stores.add(store)
    return store

def current(store):
    """Return the value of `store` visible in the current execution context."""
    return store.get()

@contextmanager
def bound(store, value):
    """Bind `store` to `value` for the dynamic extent of the `with` block.

    Usage is ``with bound(store, value):``. The block sees `value`; the previous
    value is restored on exit, also when exiting via an exception or an escape.
    """
    token = store._var.set(value)
    try:
        yield value
    finally:
        store._var.reset(token)

def with_bound(store, value, body):
    """Call `body()` with `store` bound to `value`. Return what `body` returns.

    This is the functional form of `bound`.
    """
    with bound(store, value):
        return body()

def inherit(f):
    """Decorator. Run `f` with a snapshot of the caller's stores.

    The snapshot is taken now, when `inherit` is called. Each call of the
    returned function runs in a fresh copy of that snapshot, so rebinding
    inside one call is invisible to the spawner and to other calls. Stores
    created with `inherit=False` are reset to their default.

    Typical use is a thread target::

        t = threading.Thread(target=inherit(worker))
    """
    snapshot = copy_context()
    @wraps(f)
    def inherited(*args, **kwargs):
        def isolated():
            for store in list(_stores):
                if not store.inherit:
                    store._var.set(store.default)
            return f(*args, **kwargs)
        return snapshot.copy().run(isolated)
    return inherited
