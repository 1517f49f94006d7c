# -*- coding: utf-8; -*-
"""Named markers: interned `sym` and fresh `gensym`.

Restart names may be given as `sym` instead of `str`. The case forms tag
their catch points with a `gensym`, which no other code can reproduce, so a
stray escape can never land in them.
"""

__all__ = ["sym", "gensym"]

from weakref import WeakValueDictionary
import threading

_table = WeakValueDictionary()
_table_lock = threading.Lock()

class sym:
    """A marker with a name, compared by identity.

    There is at most one live `sym` per name, also across pickling::

        assert sym("proceed") is sym("proceed")
    """
    def __new__(cls, name):
        with _table_lock:
            marker = _table.get(name)
            if marker is None:
                marker = _table[name] = super().__new__(cls)
                marker.name = name
        return marker
    def __reduce__(self):
        return (sym, (self.name,))
    def __str__(self):
        return self.name
    def __repr__(self):
        return 'sym("{}")'.format(self.name)

class gensym(sym):
    """A fresh marker. Every call makes a new one; the name is only a label.

    Unpickling also makes a new one.
    """
    def __new__(cls, name):
        marker = object.__new__(cls)
        marker.name = name
        return marker
    def __reduce__(self):
        return (gensym, (self.name,))
    def __str__(self):
        return repr(self)
    def __repr__(self):
        return '<uninterned symbol "{}" at 0x{:x}>'.format(self.name, id(self))
