# -*- coding: utf-8 -*-
"""Resumable conditions, handlers and restarts, after Common Lisp.

No debugger of our own, and no separate base class for conditions: any value
can be signaled. Handlers pick conditions by type, like `except` clauses do.

The core forms are `signal`, `handler_bind` and `restart_bind`, plus
`find_restart` and `invoke_restart`. They interlock in a very particular way:

  - `handler_bind(body, (type, handler), ...)` calls `body` with the given
    handlers in effect. The bindings form one *frame*, pushed on top of the
    handler frames already in effect.

  - `signal(condition)` runs, innermost frame first and in declaration order
    within each frame, **every** handler whose type matches the condition.
    The handlers run *on top of* the signal site: the call stack is **not**
    unwound before they run. This is what makes conditions resumable.

  - While a frame's handlers run, only the frames outside it are visible, so a
    handler may signal again (the same condition or a new one) without
    re-triggering itself or its siblings.

  - A handler decides what happens next. It may return normally (decline, and
    let the next matching handler have a look), escape to an enclosing
    `establish` (see `resumable.ec`), or invoke a restart.

  - `restart_bind(body, (name, action), ...)` makes named recovery actions
    available to handlers. A handler looks one up with `find_restart` and runs
    it with `invoke_restart`. Invoking a restart is just a function call; any
    unwinding happens only if the restart's action escapes.

  - If no handler escapes, `signal` applies the unhandled fallback: by default
    it raises `NoMatchingHandler`. See `set_unhandled_fallback`.

On top of these, `handler_case` and `restart_case` give try/except-like
"first matching clause wins, with the stack unwound to here" semantics, and
`restarts` / `with_restarts` are the `with` and decorator forms of
`restart_case`.

The protocols `warn` and `cerror` are built on the core forms, with the
ready-made restart functions `muffle` and `proceed`, respectively. Other
protocols can be built the same way.

Example, a handler invoking a restart that escapes::

    def parse(text):
        return restart_case(lambda: signal(MalformedEntry(text)),
                            ("use_value", lambda value: value))

    handler_bind(lambda: parse("garbage"),
                 (MalformedEntry, lambda c: use_value(None)))  # --> None

Each thread, and each asyncio task, has its own handler and restart stacks;
see `resumable.dynassign` for how new threads and tasks inherit them.

To understand conditions, see *Chapter 19: Beyond Exception Handling:
Conditions and Restarts* in *Practical Common Lisp* by Peter Seibel (2005):

    http://www.gigamonkeys.com/book/beyond-exception-handling-conditions-and-restarts.html
"""

__all__ = ["Handler", "Restart",
           "handler_bind", "handlers", "signal",
           "set_unhandled_fallback", "get_unhandled_fallback", "unhandled_fallback",
           "restart_bind", "find_restart", "invoke_restart", "invoke",
           "invoker", "use_value",
           "available_restarts", "available_handlers",
           "handler_case", "restart_case", "restarts", "with_restarts",
           "warn", "muffle",
           "cerror", "proceed",
           "NoMatchingHandler", "ControlError"]

import sys
import typing
import warnings
from collections import namedtuple
from contextlib import contextmanager
from functools import partial

from .collections import box
from .dynassign import make_store, bound, with_bound
from .ec import establish, escape, catching, ControlError
from .llist import nil, push, isempty
from .symbol import sym, gensym

_handler_stack = make_store("handler_stack", default=nil)
_restart_stack = make_store("restart_stack", default=nil)

_fallback_modes = ("raise", "interactive")
_fallback_default = "raise"
_fallback_override = make_store("unhandled_fallback", default=None)

Handler = namedtuple("Handler", ["type", "action"])
Handler.__doc__ = """A condition handler: `action(condition)` runs when `condition` matches `type`.

`type` is a class, or a tuple of classes (OR'd, as in `except`), or anything
else `isinstance` accepts (ABCs, unions). `typing.Any` matches everything.
"""

Restart = namedtuple("Restart", ["name", "action"])
Restart.__doc__ = """A restart: `action(*args, **kwargs)` runs when the restart `name` is invoked.

`name` is a `str` or a `sym`. `find_restart` returns these.
"""

class NoMatchingHandler(ControlError):
    """Raised by `signal` when no handler escaped.

    The unhandled condition is available as the `condition` attribute.
    """
    def __init__(self, condition):
        super().__init__("No handler escaped for condition {}".format(repr(condition)))
        self.condition = condition

# --------------------------------------------------------------------------------
# Handlers

def _is_typespec(t):
    if t is typing.Any:
        return True
    if isinstance(t, tuple):
        return all(_is_typespec(x) for x in t)
    try:
        isinstance(None, t)
    except TypeError:  # "isinstance() arg 2 must be a type, a tuple of types, or a union"
        return False
    return True

def _matches(t, condition):
    if t is typing.Any:
        return True
    if isinstance(t, tuple):
        return any(_matches(x, condition) for x in t)
    return isinstance(condition, t)

def _handler_frame(bindings):
    frame = []
    for binding in bindings:
        try:
            t, action = binding
        except (TypeError, ValueError):
            raise TypeError("Each binding must be of the form (type, callable); got {}".format(repr(binding)))
        if not (_is_typespec(t) and callable(action)):
            raise TypeError("Each binding must be of the form (type, callable) or ((t0, ..., tn), callable); got {}".format(repr(binding)))
        frame.append(Handler(t, action))
    return tuple(frame)

def handler_bind(body, *bindings):
    """Call `body()` with condition handlers in effect. Known as `HANDLER-BIND` in Common Lisp.

    Each binding is a `Handler`, or a pair ``(type, action)``, where `type` is
    a condition type (class), or a `tuple` of such types, just like in `except`.
    `action` is called with the condition instance as its only argument.

    The bindings are pushed as one frame for the dynamic extent of `body`.
    Return what `body` returns, unless an escape unwinds through here.

    To *handle* a condition, an action must transfer control: escape to an
    enclosing `establish`, or invoke a restart whose action escapes.

    To decline, and delegate to the next matching handler, an action returns
    normally. Its return value is ignored. Any side effects it performed (such
    as logging) still occur.

    If you use only `handler_bind` and `escape`, the conditions system reduces
    into an exceptions system. If that's all you need, just use exceptions;
    see `handler_case` for the try/except-like form.
    """
    frame = _handler_frame(bindings)
    return with_bound(_handler_stack, push(frame, _handler_stack.get()), body)

@contextmanager
def handlers(*bindings):
    """Set up condition handlers for the dynamic extent of a `with` block.

    Usage::

        with handlers((cls, callable), ...):
            ...

    This is the `with` form of `handler_bind`; the bindings are the same.
    """
    frame = _handler_frame(bindings)
    with bound(_handler_stack, push(frame, _handler_stack.get())):
        yield

def _dispatch(condition):
    # Run all matching handlers, without the unhandled fallback.
    stack = _handler_stack.get()
    while not isempty(stack):
        frame, outer = stack.car, stack.cdr
        # The frame being processed is invisible to its own handlers.
        with bound(_handler_stack, outer):
            for handler in frame:
                if _matches(handler.type, condition):
                    handler.action(condition)
        stack = outer

def signal(condition):
    """Signal a condition.

    Signaling a condition works similarly to raising an exception, but the act
    of signaling itself does **not** unwind the call stack. Handlers bound
    (see `handler_bind`) to the type of the given condition run from
    dynamically innermost to dynamically outermost, with the condition as
    argument, on top of the signal site.

    Any handler may terminate the signal by escaping (directly, or by invoking
    a restart that escapes). Then the caller of `signal` exits nonlocally, as if
    an exception occurred, and all matching handlers further out are skipped.

    If all matching handlers return normally, the unhandled fallback applies:

      - `"raise"` (default): raise `NoMatchingHandler(condition)`. If the
        condition is an exception, it becomes the `__cause__`.

      - `"interactive"`: call `sys.breakpointhook()` here, at the signal site,
        so you can look around in a debugger. When the debugger continues,
        `signal` returns `None` to its caller.

    Conditions can be any values, not only exceptions. Handlers match them by
    type, using `isinstance`.

    Errors raised by handlers propagate through `signal` unchanged.
    """
    _dispatch(condition)
    if get_unhandled_fallback() == "interactive":
        sys.breakpointhook()
        return
    if isinstance(condition, BaseException):
        raise NoMatchingHandler(condition) from condition
    raise NoMatchingHandler(condition)

def _check_mode(mode):
    if mode not in _fallback_modes:
        raise ValueError("Unhandled fallback mode must be one of {}; got {}".format(_fallback_modes, repr(mode)))
    return mode

def set_unhandled_fallback(mode):
    """Set the process-wide unhandled fallback of `signal`. Return the previous mode.

    `mode` is `"raise"` (the initial default) or `"interactive"`.

    A context-local override installed with `unhandled_fallback` takes precedence.
    """
    global _fallback_default
    old = _fallback_default
    _fallback_default = _check_mode(mode)
    return old

def get_unhandled_fallback():
    """Return the unhandled fallback mode in effect in the current execution context."""
    mode = _fallback_override.get()
    if mode is None:
        return _fallback_default
    return mode

@contextmanager
def unhandled_fallback(mode):
    """Override the unhandled fallback for the dynamic extent of a `with` block.

    Usage::

        with unhandled_fallback("interactive"):
            ...

    The override is local to the current thread or asyncio task.
    """
    with bound(_fallback_override, _check_mode(mode)):
        yield

def available_handlers():
    """Return a list of the handlers currently in scope.

    Shadowing is respected; the most recently bound handler for a given type
    wins. A handler bound to a tuple of types counts as bound separately to
    each of those types.

    The return value format is `[(type, callable), ...]`, sorted by type name.
    """
    out = []
    seen = set()
    for frame in _handler_stack.get():
        for t, action in frame:
            ts = t if isinstance(t, tuple) else (t,)
            for x in ts:
                if x not in seen:
                    seen.add(x)
                    out.append((x, action))
    return sorted(out, key=lambda x: getattr(x[0], "__name__", repr(x[0])))

# --------------------------------------------------------------------------------
# Restarts

def _restart_frame(bindings):
    frame = []
    for binding in bindings:
        try:
            name, action = binding
        except (TypeError, ValueError):
            raise TypeError("Each binding must be of the form (name, callable); got {}".format(repr(binding)))
        if not (isinstance(name, (str, sym)) and callable(action)):
            raise TypeError("Each binding must be of the form (name, callable), with name a str or sym; got {}".format(repr(binding)))
        frame.append(Restart(name, action))
    return tuple(frame)

def restart_bind(body, *bindings):
    """Call `body()` with restarts in effect. Known as `RESTART-BIND` in Common Lisp.

    Each binding is a `Restart`, or a pair ``(name, action)``. A restart can
    take any number of args and kwargs; its call signature depends only on how
    it's intended to be invoked.

    The restarts are visible to handlers running within the dynamic extent of
    `body`. Invoking one just calls its action, at the invocation site; if you
    want the invocation to unwind back to here, have the action escape, or use
    `restart_case`.
    """
    frame = _restart_frame(bindings)
    return with_bound(_restart_stack, push(frame, _restart_stack.get()), body)

def find_restart(name):
    """Look up a restart. Known as `FIND-RESTART` in Common Lisp.

    If the named restart is currently in (dynamic) scope, return it as a
    `Restart`. The most recently bound restart matching the name wins.

    If no match, return `None`.

    This allows optional condition handling. You can check for the presence
    of a specific restart before you commit to invoking it.
    """
    for frame in _restart_stack.get():
        for restart in frame:
            if restart.name == name:
                return restart
    return None

def invoke_restart(restart, *args, **kwargs):
    """Invoke a restart. Known as `INVOKE-RESTART` in Common Lisp.

    `restart` is a `Restart` returned by `find_restart`, or the name of a
    restart currently in scope. An unknown name raises `ControlError`.

    Any args and kwargs are passed through to the restart's action. Return
    what the action returns; no stack manipulation happens here.
    """
    if isinstance(restart, (str, sym)):
        name = restart
        restart = find_restart(name)
        if restart is None:
            raise ControlError("No such restart: {}; available restarts: {}".format(repr(name), [n for n, _ in available_restarts()]))
    elif not isinstance(restart, Restart):
        raise TypeError("Expected a restart name or a return value of find_restart, got {} with value {}".format(type(restart), repr(restart)))
    return restart.action(*args, **kwargs)

invoke = invoke_restart

use_value = partial(invoke_restart, "use_value")
use_value.__doc__ = """Invoke the 'use_value' restart immediately with given args and kwargs.

Known as the `USE-VALUE` restart function in Common Lisp.

A handler that just invokes the `use_value` restart is such a common use case
that it is useful to have an abbreviation for it. This::

    handler_bind(body, (OhNoes, lambda c: invoke_restart("use_value", 42)))

can be abbreviated to::

    handler_bind(body, (OhNoes, lambda c: use_value(42)))

The pattern ``partial(invoke_restart, name)`` defines similar shorthand for
your own restarts. Restarts are looked up by name, so one module-level
shorthand serves every site that provides a restart of that name.
"""

def invoker(restart_name, *args, **kwargs):
    """Create a handler that just invokes the named restart.

    The args and kwargs are frozen into the created handler by closure, and
    passed through to the restart whenever the handler triggers. The handler
    ignores the condition instance; if you need it, see `use_value`.

    The returned function has the same name as the restart it invokes, to ease
    debugging::

        handler_bind(body, (OhNoes, invoker("use_value", 42)))
    """
    def the_invoker(condition):
        return invoke_restart(restart_name, *args, **kwargs)
    the_invoker.__name__ = the_invoker.__qualname__ = str(restart_name)
    the_invoker.__doc__ = "Invoke the '{}' restart.".format(restart_name)
    return the_invoker

def available_restarts():
    """Return a sorted list of restarts currently in scope.

    Name shadowing is respected; for each unique name, the return value
    contains only the most recently bound (dynamically innermost) restart.

    The return value format is `[(name, callable), ...]`.
    """
    out = []
    seen = set()
    for frame in _restart_stack.get():
        for name, action in frame:
            if name not in seen:
                seen.add(name)
                out.append((name, action))
    return sorted(out, key=lambda x: str(x[0]))

# --------------------------------------------------------------------------------
# Case forms

def handler_case(body, *clauses):
    """Call `body()`; if it signals a matching condition, unwind and handle it here.

    Known as `HANDLER-CASE` in Common Lisp. Each clause is a pair
    ``(type, function)``. Works like try/except: the **first** clause, in
    declaration order, whose type matches the signaled condition wins. The
    call stack is unwound back to here, and then `function(condition)` is
    called; its return value becomes the return value of `handler_case`::

        handler_case(lambda: signal(3.0),
                     (numbers.Integral, lambda c: ("integer", c)),
                     (numbers.Number, lambda c: ("number", c)),
                     (typing.Any, lambda c: ("any", c)))  # --> ("number", 3.0)

    If `body` returns normally, its return value is returned.

    Outer handlers never see a condition caught by a clause here.
    """
    frame = _handler_frame(clauses)
    tag = gensym("handler_case")
    def make_handler(k, t):
        return Handler(t, lambda condition: escape(tag, (k, condition)))
    internal = [make_handler(k, t) for k, (t, _) in enumerate(frame, start=1)]
    k, value = establish(tag, lambda: handler_bind(lambda: (0, body()), *internal))
    if k == 0:
        return value
    return frame[k - 1].action(value)

def restart_case(body, *clauses):
    """Call `body()` with restarts in effect that unwind back to here when invoked.

    Known as `RESTART-CASE` in Common Lisp. Each clause is a pair
    ``(name, function)``. When a handler invokes one of these restarts, the
    call stack is unwound back to here, and then `function(*args, **kwargs)`
    is called with the invocation arguments; its return value becomes the
    return value of `restart_case`::

        handler_bind(lambda: restart_case(lambda: signal(3),
                                          ("myrestart", lambda c: c + 1)),
                     (int, lambda c: invoke_restart(find_restart("myrestart"), 2 * c)))  # --> 7

    If `body` returns normally, its return value is returned.

    Roughly, restarts can be thought of as canned error recovery strategies.
    The low-level code knows *how* to recover; the high-level code chooses
    *which* recovery to use, by invoking a restart from its handler.
    """
    frame = _restart_frame(clauses)
    tag = gensym("restart_case")
    def make_restart(k, name):
        return Restart(name, lambda *args, **kwargs: escape(tag, (k, args, kwargs)))
    internal = [make_restart(k, name) for k, (name, _) in enumerate(frame, start=1)]
    outcome = establish(tag, lambda: restart_bind(lambda: (0, body()), *internal))
    if outcome[0] == 0:
        return outcome[1]
    k, args, kwargs = outcome
    return frame[k - 1].action(*args, **kwargs)

@contextmanager
def restarts(*bindings, **named):
    """Provide restarts for the dynamic extent of a `with` block.

    This is the `with` form of `restart_case`. The bindings are given as
    ``(name, callable)`` pairs, or as keyword arguments::

        with restarts(use_value=(lambda x: x)) as result:
            ...
            result << 42

    The block binds a `box` to hold the result of the block. Use `unbox(result)`
    to access the value. The default value the box holds, if nothing is set
    into it, is `None`.

    If the code inside the `with` block invokes one of these restarts, the
    block exits (the call stack unwinds back to it), the restart runs, and the
    box receives its return value. Then execution continues from immediately
    after the block.

    The manual result assignment via `<<` at the end of the block sets the
    result for a normal exit, i.e. when no restart was invoked.

    If none of your restarts need to return a value, you can omit the
    as-binding. If you just need a jump label, use `lambda: None` as the restart.
    """
    frame = _restart_frame(bindings + tuple(named.items()))
    tag = gensym("restarts")
    def make_restart(restart):
        return Restart(restart.name, lambda *args, **kwargs: escape(tag, (restart, args, kwargs)))
    internal = tuple(make_restart(restart) for restart in frame)
    result = box(None)
    with catching(tag) as invoked:
        with bound(_restart_stack, push(internal, _restart_stack.get())):
            yield result
    if invoked.get() is not None:
        restart, args, kwargs = invoked.get()
        result << restart.action(*args, **kwargs)

def with_restarts(*bindings, **named):
    """Alternate syntax. Use restarts with a `def` code block instead of a `with`.

    The def'd name is replaced by the result, so you can return a value
    from the block normally (using `return`), and don't need to unbox anything.

    Parametric decorator. Returns a `call_with_restarts` function that calls
    its argument with the restarts specified here.

    As a decorator::

        @with_restarts(use_value=(lambda x: x))
        def result():  # must take no parameters, essentially just a variable
            ...
            return 42
        # now `result` is either 42 or the return value of a restart

    As a regular function, to re-use the same restarts for several thunks::

        with_usevalue = with_restarts(use_value=(lambda x: x))
        result = with_usevalue(dostuff)
    """
    clauses = bindings + tuple(named.items())
    _restart_frame(clauses)  # fail early
    def call_with_restarts(f):
        """Call `f`, while providing the restarts stored in this closure.

        Invoking such a restart terminates `f`, and instead of its normal
        return value, returns whatever the restart returns.
        """
        return restart_case(f, *clauses)
    return call_with_restarts

# --------------------------------------------------------------------------------
# Standard protocols, building on the core forms.

def warn(condition):
    """Like `signal`, but emit a warning if the condition is not handled.

    Instead of applying the unhandled fallback, emit a warning using Python's
    standard `warnings.warn`, and return normally. If the condition is a
    `Warning` instance, it is used as the warning (so its type is the warning
    category); anything else is converted with `str` and warned as
    `UserWarning`.

    `warn` internally establishes a restart `muffle`, which a handler can
    invoke to suppress the warning. As a convenience, the handler `muffle`
    does just that::

        with handlers((HelpMe, muffle)):
            warn(HelpMe(42))  # no warning emitted
            ...  # execution continues normally

    The combination of `warn` and `muffle` behaves somewhat like
    `contextlib.suppress`, except that execution continues normally
    in the caller of `warn` instead of unwinding to the handler.
    """
    muffled = restart_case(lambda: _dispatch(condition),
                           ("muffle", lambda: True))
    if muffled:
        return
    if isinstance(condition, Warning):
        warnings.warn(condition, stacklevel=2)  # 2 to skip `warn` itself.
    else:
        warnings.warn(str(condition), category=UserWarning, stacklevel=2)

def cerror(condition):
    """Like `signal`, but allow a handler to instruct the caller to ignore the error.

    `cerror` (correctable error) internally establishes a restart named
    `proceed`, which can be invoked to make `cerror` return normally to its
    caller. As a convenience, the handler `proceed` does just that.

    We use the name "proceed" instead of Common Lisp's "continue", because in
    Python `continue` is a reserved word.

    Example::

        with handlers((OddNumberError, proceed)):
            out = []
            for x in range(10):
                if x % 2 == 1:
                    cerror(OddNumberError(x))  # if unhandled, raises NoMatchingHandler
                out.append(x)
    """
    restart_case(lambda: signal(condition),
                 ("proceed", lambda: None))

proceed = invoker("proceed")
proceed.__doc__ = "Invoke the 'proceed' restart. Restart function for use with `cerror`."

muffle = invoker("muffle")
muffle.__doc__ = "Invoke the 'muffle' restart. Restart function for use with `warn`."
