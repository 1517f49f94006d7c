# -*- coding: utf-8 -*-

import asyncio
import threading
from queue import Queue

import pytest

from resumable.collections import unbox
from resumable.dynassign import inherit
from resumable.ec import (establish, escape, catching, catch, call_ec,
                          Escape, ControlError, UnmatchedEscape)
from resumable.symbol import gensym

def test_escape_round_trip():
    for tag, value in (("hop", 6), (gensym("t"), None), (42, [1, 2])):
        assert establish(tag, lambda: escape(tag, value)) == value

def test_body_value_when_not_escaping():
    assert establish("hop", lambda: "k") == "k"

def test_multi_return_from_depth():
    def g(x):
        escape("hop", 2 * x)
        pytest.fail("This line should not be reached.")  # pragma: no cover
    assert establish("hop", lambda: 1 + g(3)) == 6

def test_tagged_nesting():
    def inner():
        escape("outer", 21)
    def middle():
        establish("inner", inner)
        pytest.fail("This line should not be reached.")  # pragma: no cover
    assert establish("outer", middle) == 21

    def inner2():
        escape("inner", 21)
    assert establish("outer", lambda: 2 * establish("inner", inner2)) == 42

def test_innermost_same_tag_wins():
    log = []
    def body():
        r = establish("t", lambda: escape("t", "inner"))
        log.append(r)
        return "outer body done"
    assert establish("t", body) == "outer body done"
    assert log == ["inner"]

def test_finally_blocks_run_while_unwinding():
    log = []
    def body():
        try:
            escape("out", 1)
        finally:
            log.append("cleanup")
    assert establish("out", body) == 1
    assert log == ["cleanup"]

def test_escape_is_not_an_ordinary_exception():
    def body():
        try:
            escape("out", "got through")
        except Exception:  # pragma: no cover
            return "intercepted"
    assert establish("out", body) == "got through"
    assert not issubclass(Escape, Exception)

def test_unmatched_escape():
    with pytest.raises(UnmatchedEscape) as info:
        escape("nowhere", 1)
    assert info.value.tag == "nowhere"
    assert info.value.value == 1
    assert isinstance(info.value, ControlError)

    # inside an establish for some other tag, nothing gets unwound
    log = []
    def body():
        try:
            escape("nowhere", 1)
        except UnmatchedEscape:
            log.append("caught at the escape site")
        return "done"
    assert establish("somewhere", body) == "done"
    assert log == ["caught at the escape site"]

def test_catch_point_ends_with_its_dynamic_extent():
    establish("gone", lambda: None)
    with pytest.raises(UnmatchedEscape):
        escape("gone", 1)

def test_escape_points_are_not_inherited_by_threads():
    comm = Queue()
    def worker():
        try:
            escape("main", 1)
        except BaseException as err:
            comm.put(err)
    def body():
        t = threading.Thread(target=inherit(worker))
        t.start()
        t.join()
        return "main finished normally"
    assert establish("main", body) == "main finished normally"
    assert isinstance(comm.get(), UnmatchedEscape)

def test_escape_points_do_not_carry_over_into_asyncio_tasks():
    async def child():
        try:
            escape("main", 1)
        except BaseException as err:
            return err
    async def main():
        # The task copies the context while the catch point is active,
        # but runs only after `establish` has returned.
        late = await establish("main", lambda: asyncio.ensure_future(child()))
        # Here the catch point is still active in the parent task.
        with catching("main"):
            early = await asyncio.ensure_future(child())
        return late, early
    late, early = asyncio.run(main())
    assert isinstance(late, UnmatchedEscape)
    assert isinstance(early, UnmatchedEscape)

def test_escape_within_one_asyncio_task():
    async def inner():
        await asyncio.sleep(0)
        escape("out", 42)
    async def main():
        with catching("out") as caught:
            await inner()
        return unbox(caught)
    assert asyncio.run(main()) == 42

def test_catching_with_form():
    with catching("out") as caught:
        escape("out", 42)
        pytest.fail("This line should not be reached.")  # pragma: no cover
    assert unbox(caught) == 42

    with catching("out", default="untouched") as caught:
        pass
    assert unbox(caught) == "untouched"

    with pytest.raises(UnmatchedEscape):
        escape("out", 1)

def test_catching_passes_on_other_tags():
    def body():
        with catching("inner"):
            escape("outer", "through")
        pytest.fail("This line should not be reached.")  # pragma: no cover
    assert establish("outer", body) == "through"

def test_catch_decorator():
    @catch("outer")
    def outerfunc():
        @catch("inner")
        def innerfunc():
            escape("outer", 21)
            pytest.fail("This line should not be reached.")  # pragma: no cover
        innerfunc()
        pytest.fail("This line should not be reached either.")  # pragma: no cover
    assert outerfunc() == 21
    assert outerfunc.__name__ == "outerfunc"

def test_call_ec():
    @call_ec
    def result(ec):
        answer = 42
        def inner():
            ec(answer)  # directly escape from the outer def
            return 23
        answer = inner()
        pytest.fail("This line should not be reached.")  # pragma: no cover
    assert result == 42

    # escape from a lambda
    assert call_ec(lambda ec: [ec(42), pytest.fail("not reached")]) == 42

def test_call_ec_is_dead_after_its_extent():
    @call_ec
    def leaked(ec):
        return ec
    with pytest.raises(UnmatchedEscape):
        leaked(42)

def test_call_ec_tags_are_private():
    # an ec cannot be intercepted by a catch point set up for another ec
    @call_ec
    def result(outer_ec):
        call_ec(lambda inner_ec: outer_ec("to the outer one"))
        pytest.fail("This line should not be reached.")  # pragma: no cover
    assert result == "to the outer one"
