# -*- coding: utf-8 -*-
"""Resumable conditions and restarts for Python, after Common Lisp.

See ``dir(resumable)`` and submodule docstrings for more. Start with
``resumable.conditions``.
"""

__version__ = '0.1.0'

from .collections import *  # noqa: F401, F403
from .conditions import *  # noqa: F401, F403
from .dynassign import *  # noqa: F401, F403
from .ec import *  # noqa: F401, F403
from .llist import *  # noqa: F401, F403
from .symbol import *  # noqa: F401, F403
