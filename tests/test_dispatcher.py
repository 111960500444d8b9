"""Behavioural tests for :mod:`faceid.dispatcher`."""

from __future__ import annotations

import asyncio
import threading

import pytest

from faceid.dispatcher import Dispatcher
from faceid.params import TYPED_NAME, extract_param
from faceid.states import GameState


def recording_handler(log: list, label: str):
    async def handler(params):
        log.append((label, params))

    handler.__name__ = f"handle_{label}"
    return handler


@pytest.mark.asyncio
async def test_tasks_run_in_fifo_order_one_per_tick():
    log: list = []
    dispatcher = Dispatcher(
        {
            GameState.STARTED: recording_handler(log, "a"),
            GameState.LISTING_PROFILES: recording_handler(log, "b"),
            GameState.WELCOME_SCREEN: recording_handler(log, "c"),
        }
    )

    dispatcher.enqueue(GameState.STARTED)
    dispatcher.enqueue(GameState.LISTING_PROFILES, {"k": 1})
    dispatcher.enqueue(GameState.WELCOME_SCREEN)
    assert dispatcher.pending == 3

    assert await dispatcher.run_one_tick() is True
    assert log == [("a", None)]
    assert await dispatcher.run_one_tick() is True
    assert await dispatcher.run_one_tick() is True
    assert [label for label, _ in log] == ["a", "b", "c"]
    assert log[1][1] == {"k": 1}
    assert await dispatcher.run_one_tick() is False


@pytest.mark.asyncio
async def test_unregistered_state_is_dropped_without_raising(caplog):
    dispatcher = Dispatcher()

    with caplog.at_level("ERROR"):
        dispatcher.enqueue(GameState.REJECTION_PROMPT)

    assert dispatcher.pending == 0
    assert "Unknown GameState task" in caplog.text
    assert await dispatcher.run_one_tick() is False


@pytest.mark.asyncio
async def test_handler_enqueues_are_appended_behind_existing_tasks():
    log: list = []
    dispatcher = Dispatcher()

    async def chain(params):
        log.append("chain")
        dispatcher.enqueue(GameState.WELCOME_SCREEN)

    dispatcher.register(GameState.STARTED, chain)
    dispatcher.register(GameState.LISTING_PROFILES, recording_handler(log, "listing"))
    dispatcher.register(GameState.WELCOME_SCREEN, recording_handler(log, "welcome"))

    dispatcher.enqueue(GameState.STARTED)
    dispatcher.enqueue(GameState.LISTING_PROFILES)
    while await dispatcher.run_one_tick():
        pass

    assert [entry if isinstance(entry, str) else entry[0] for entry in log] == ["chain", "listing", "welcome"]


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_later_tasks(caplog):
    log: list = []

    async def boom(params):
        raise RuntimeError("kaboom")

    dispatcher = Dispatcher({GameState.STARTED: boom, GameState.WELCOME_SCREEN: recording_handler(log, "w")})
    dispatcher.enqueue(GameState.STARTED)
    dispatcher.enqueue(GameState.WELCOME_SCREEN)

    with caplog.at_level("ERROR"):
        assert await dispatcher.run_one_tick() is True
    assert "Error invoking task STARTED" in caplog.text
    assert await dispatcher.run_one_tick() is True
    assert log == [("w", None)]


@pytest.mark.asyncio
async def test_missing_parameter_reports_once_and_stops_handler():
    reached: list = []
    dispatcher = Dispatcher()
    errors: list = []

    async def evaluate(params):
        extract_param(params, TYPED_NAME, str, dispatcher.enqueue)
        reached.append(params)

    async def parsing_error(params):
        errors.append(params)

    dispatcher.register(GameState.EVALUATING_TYPED_NAME, evaluate)
    dispatcher.register(GameState.INTERNAL_ERROR_PARSING, parsing_error)

    dispatcher.enqueue(GameState.EVALUATING_TYPED_NAME, {"wrong": "x"})
    await dispatcher.run_one_tick()

    assert reached == []
    assert dispatcher.pending == 1
    await dispatcher.run_one_tick()
    assert errors == [None]
    assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_enqueue_from_foreign_threads_keeps_every_task():
    log: list = []
    dispatcher = Dispatcher({GameState.STARTED: recording_handler(log, "s")})

    def producer():
        for _ in range(50):
            dispatcher.enqueue(GameState.STARTED)

    threads = [threading.Thread(target=producer) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert dispatcher.pending == 200
    while await dispatcher.run_one_tick():
        pass
    assert len(log) == 200


@pytest.mark.asyncio
async def test_run_drains_queue_until_stopped():
    stop = asyncio.Event()
    log: list = []

    async def last(params):
        log.append("last")
        stop.set()

    dispatcher = Dispatcher({GameState.STARTED: recording_handler(log, "first"), GameState.WELCOME_SCREEN: last})
    dispatcher.enqueue(GameState.STARTED)
    dispatcher.enqueue(GameState.WELCOME_SCREEN)

    await asyncio.wait_for(dispatcher.run(stop, tick_interval=0.01), timeout=2.0)
    assert log == [("first", None), "last"]


def test_task_handler_name_unwraps_partials():
    import functools

    async def show_welcome_screen(ctx, params):
        return None

    dispatcher = Dispatcher({GameState.WELCOME_SCREEN: functools.partial(show_welcome_screen, object())})
    dispatcher.enqueue(GameState.WELCOME_SCREEN)
    task = dispatcher._pop()
    assert task is not None
    assert task.handler_name == "show_welcome_screen"
