# -*- coding: utf-8 -*-
"""Run all tests for `resumable`.

Usage::

    python3 runtests.py [extra pytest args]

The tests live in `resumable/tests`; this just points pytest at them.
"""

import os
import sys

import pytest

def main(argv):
    testdir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "resumable", "tests")
    return pytest.main([testdir] + list(argv))

if __name__ == '__main__':
    sys.exit(main(sys.argv[1:]))
