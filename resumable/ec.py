# -*- coding: utf-8 -*-
"""Escape continuations, i.e. jumping outward on the call stack.

`establish(tag, body)` runs `body` and sets up a catch point for `tag`.
`escape(tag, value)` transfers control, from any depth inside `body`, straight
back to that catch point, which then returns `value`::

    def g(x):
        escape("hop", 2 * x)

    assert establish("hop", lambda: 1 + g(3)) == 6

Catch points nest; an escape goes to the innermost active catch point with an
equal tag, unwinding (and running the `finally` blocks of) everything in
between.

The transfer is implemented by raising `Escape`, which derives from
`BaseException`, like `GeneratorExit`; an ordinary ``except Exception`` in the
code being unwound does not intercept it.

If no catch point for the tag is active, `escape` raises `UnmatchedEscape`
right at the escape site. This is a structural bug (e.g. mismatched tags, or an
escape continuation used after its dynamic extent), not a condition.

**Etymology**: in the Lisp family this construct has been called `catch` and
`throw` since the mid-1980s. Common Lisp has it as `CATCH`/`THROW`; see
Peter Seibel: Practical Common Lisp, chapter 20:
    http://www.gigamonkeys.com/book/the-special-operators.html
"""

__all__ = ["establish", "escape", "catching", "catch", "call_ec",
           "Escape", "ControlError", "UnmatchedEscape"]

import asyncio
import threading
from contextlib import contextmanager
from functools import wraps

from .collections import box, unbox
from .dynassign import make_store, bound
from .llist import nil, push
from .symbol import gensym

# The currently active catch points, innermost first, as (tag, owner, alive)
# triples. An escape cannot cross into another thread or task, so `inherit`
# never carries this over. asyncio copies it into new tasks anyway; a point
# only counts in its owner, and only until it exits.
_escape_points = make_store("escape_points", default=nil, inherit=False)

def _owner():
    try:
        task = asyncio.current_task()
    except RuntimeError:  # no running event loop
        task = None
    return (threading.get_ident(), task)

@contextmanager
def _catch_point(tag):
    alive = box(True)
    with bound(_escape_points, push((tag, _owner(), alive), _escape_points.get())):
        try:
            yield
        finally:
            alive << False

class ControlError(Exception):
    """Base class for errors detected by the control-flow machinery.

    Known in Common Lisp as `CONTROL-ERROR`.
    """

class UnmatchedEscape(ControlError):
    """Raised by `escape` when no catch point for its tag is active."""
    def __init__(self, tag, value):
        super().__init__("No active establish for escape tag {}".format(repr(tag)))
        self.tag = tag
        self.value = value

class Escape(BaseException):
    """Exception that represents an escape in flight to its catch point.

    Constructor parameters: see `escape`.
    """
    def __init__(self, tag, value):
        self.tag = tag
        self.value = value
        # Error message when uncaught
        self.args = ("escape to tag {} was not caught".format(repr(tag)),)

def establish(tag, body):
    """Call `body()` with a catch point for `tag` in effect.

    If `escape(tag, v)` is performed anywhere within the dynamic extent of
    `body`, return `v`. Otherwise return what `body` returns.

    `tag`: anything comparable with ``==``. For a guaranteed one-to-one
    relationship between escapes and catch points, use a `gensym`.
    """
    with _catch_point(tag):
        try:
            return body()
        except Escape as e:
            if e.tag == tag:
                return e.value
            raise  # meant for someone further out

@contextmanager
def catching(tag, default=None):
    """Set up a catch point for `tag` for the dynamic extent of a `with` block.

    This is the `with` form of `establish`. Usage::

        with catching("out") as caught:
            ...
            escape("out", 42)
            ...
        assert unbox(caught) == 42

    The block binds a `box` that holds `default` until an escape to `tag`
    arrives. The escape exits the block, the box receives the escaped value,
    and execution continues after the `with`.
    """
    caught = box(default)
    with _catch_point(tag):
        try:
            yield caught
        except Escape as e:
            if e.tag == tag:
                caught << e.value
            else:
                raise

def escape(tag, value=None):
    """Escape to the innermost active `establish` for `tag`, sending `value`.

    This function never returns normally.

    Wrapping the raise in a function call lets lambdas escape, too.

    If there is no live catch point for `tag` in the current thread (or
    asyncio task), raise `UnmatchedEscape` without unwinding anything.
    """
    owner = _owner()
    if not any(t == tag and o == owner and unbox(alive)
               for t, o, alive in _escape_points.get()):
        raise UnmatchedEscape(tag, value)
    raise Escape(tag, value)

def catch(tag):
    """Decorator. Mark function as exitable by ``escape(tag, value)``.

    Decorator form of `establish`::

        @catch("outer")
        def outerfunc():
            @catch("inner")
            def innerfunc():
                escape("outer", 21)
            innerfunc()
            return "never reached"
        assert outerfunc() == 21
    """
    def decorator(f):
        @wraps(f)
        def catchpoint(*args, **kwargs):
            return establish(tag, lambda: f(*args, **kwargs))
        return catchpoint
    return decorator

def call_ec(f):
    """Decorator. Call with escape continuation (call/ec).

    `f` is called immediately with one argument, the first-class escape
    continuation `ec`. Calling ``ec(value)`` makes `call_ec` return `value`.
    Like in ``@call``, the def'd name is replaced by the return value::

        @call_ec
        def result(ec):
            def inner():
                ec(42)  # directly escape from the outer def
                return 23
            inner()
            return "never reached"
        assert result == 42

    The ec is tagged with a fresh `gensym`, so only its own catch point can
    catch it. Once `call_ec` has returned, the catch point is gone, and calling
    the ec raises `UnmatchedEscape`.
    """
    tag = gensym("ec")
    def ec(value=None):
        escape(tag, value)
    return establish(tag, lambda: f(ec))
