# -*- coding: utf-8 -*-
"""A one-slot mutable cell.

A `with` block cannot produce a value, so `with restarts` and `with catching`
bind a `box` instead, and fill it in when the block exits::

    with catching("out") as caught:
        escape("out", 23)
    assert unbox(caught) == 23
"""

__all__ = ["box", "unbox"]

class box:
    """Mutable cell holding one value. ``b << v`` stores `v`.

    A box compares equal to its contents.
    """
    def __init__(self, contents=None):
        self.contents = contents
    def set(self, contents):
        self.contents = contents
        return contents
    __lshift__ = set
    def get(self):
        return self.contents
    def __eq__(self, other):
        return other == self.contents
    def __repr__(self):  # pragma: no cover
        return "box({})".format(repr(self.contents))

def unbox(b):
    """Return the contents of box `b`. `TypeError` if `b` is not a `box`."""
    if not isinstance(b, box):
        raise TypeError("Expected box, got {} with value {}".format(type(b), repr(b)))
    return b.contents
