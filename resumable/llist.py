# -*- coding: utf-8 -*-
"""Cons cells as a persistent stack.

The handler, restart and escape-point registries are all stacks of this kind.
A stack is either `nil` (empty) or a `cons` whose `car` is the top item and
whose `cdr` is the rest of the stack. Cells are immutable, so pushing never
disturbs anyone holding a reference to the old stack; "popping" is just
going back to the `cdr` that was there before the push::

    outer = push("a", nil)
    inner = push("b", outer)
    assert inner.cdr is outer
    assert list(inner) == ["b", "a"]

Iteration walks from the top (innermost) item outward.
"""

__all__ = ["cons", "nil", "push", "isempty", "ll", "llist"]

from collections.abc import Iterable, Iterator, Sized

class Nil:
    """The empty stack. Use the module-level instance `nil`.

    Pickling refers back to that instance, so `stack is nil` survives a
    round trip.
    """
    def __reduce__(self):
        return "nil"
    def __iter__(self):
        return iter(())
    def __len__(self):
        return 0
    def __bool__(self):
        return False
    def __repr__(self):
        return "nil"
nil = Nil()

class StackIterator:
    """Iterator over the items of a stack, top first."""
    def __init__(self, head):
        self.cell = head
    def __iter__(self):
        return self
    def __next__(self):
        cell = self.cell
        if cell is nil:
            raise StopIteration()
        if not isinstance(cell, cons):
            raise TypeError("Not a stack: cdr is {} with value {}".format(type(cell), repr(cell)))
        self.cell = cell.cdr
        return cell.car
Iterable.register(StackIterator)
Iterator.register(StackIterator)

class cons:
    """Cons cell. Immutable, like in Racket."""
    def __init__(self, v1, v2):
        self.car = v1
        self.cdr = v2
        self._immutable = True
    def __setattr__(self, k, v):
        if hasattr(self, "_immutable"):
            raise TypeError("'cons' object does not support item assignment")
        super().__setattr__(k, v)
    def __iter__(self):
        return StackIterator(self)
    def __len__(self):
        return sum(1 for _ in self)
    def __bool__(self):
        return True
    def __repr__(self):
        return "ll({})".format(", ".join(repr(x) for x in self))
    def __eq__(self, other):
        if other is self:
            return True
        if isinstance(other, cons):
            return tuple(self) == tuple(other)
        return False
    def __hash__(self):
        return hash(tuple(self))
Sized.register(cons)

def push(item, stack):
    """Return a new stack with `item` on top of `stack`. O(1).

    `stack` itself is not modified; it becomes the tail of the result.
    """
    if not (stack is nil or isinstance(stack, cons)):
        raise TypeError("Expected a stack (cons or nil), got {} with value {}".format(type(stack), repr(stack)))
    return cons(item, stack)

def isempty(stack):
    """Return whether `stack` is the empty stack."""
    return stack is nil

def ll(*items):
    """Make a stack with the given items, the first one on top."""
    return llist(items)

def llist(iterable):
    """Make a stack from iterable, its first item on top."""
    out = nil
    for x in reversed(list(iterable)):
        out = cons(x, out)
    return out
