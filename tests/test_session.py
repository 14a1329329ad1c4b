"""End-to-end tests for a project session."""

import asyncio

import pytest

from draftstream.accumulator import ERROR_MESSAGE
from draftstream.core import ASSISTANT, USER
from draftstream.generator import EXPAND
from draftstream.session import ProjectSession


def _session(store, generator, settings):
    return ProjectSession("proj-1", store, generator, settings)


@pytest.mark.asyncio
async def test_submit_streams_and_stores_both_turns(store, scripted_generator, settings):
    gen = scripted_generator(["EXT. PLATFORM ", "<Thinking>open wide", "</Thinking> - NIGHT"])
    session = _session(store, gen, settings)

    seen = []
    turn = await session.submit("Open on the platform", on_update=lambda t: seen.append(t.response_text))

    assert turn.role == ASSISTANT
    assert turn.response_text == "EXT. PLATFORM - NIGHT"
    assert turn.reasoning_text == "open wide"
    assert turn.pending is False
    assert seen  # live updates were published

    records = store.records["proj-1"]
    assert [r.role for r in records] == [USER, ASSISTANT]
    assert records[0].content == "Open on the platform"
    assert records[1].content == "EXT. PLATFORM - NIGHT\n\n<Thinking>open wide</Thinking>"
    assert session.unsaved == []


@pytest.mark.asyncio
async def test_request_carries_history_and_metadata(seeded_store, scripted_generator, settings):
    gen = scripted_generator(["ok"])
    session = _session(seeded_store, gen, settings)
    await session.load()

    await session.submit("Now the chase", action=EXPAND)

    request = gen.requests[0]
    assert request.instruction == "Now the chase"
    assert request.action == EXPAND
    assert request.title == "Night Train"
    assert request.briefing["genre"] == "Thriller"
    assert request.context[0] == "user: Write a cold open on a night train"
    assert len(request.context) == 4


@pytest.mark.asyncio
async def test_load_rehydrates_and_does_not_restore(seeded_store, scripted_generator, settings):
    session = _session(seeded_store, scripted_generator([]), settings)
    await session.load()

    assert [t.id for t in session.turns] == ["msg-a", "msg-b", "msg-c", "msg-d"]
    assert session.turns[1].response_text == "INT. SLEEPER CAR - NIGHT"
    assert session.turns[1].reasoning_text == "Start with sound, then light."
    assert session.turns[3].response_text == "The brakes scream."
    assert session.metadata.title == "Night Train"
    assert session.unsaved == []

    await session.retry_unsaved()
    assert seeded_store.write_calls == 0


@pytest.mark.asyncio
async def test_reload_matches_live_state(store, scripted_generator, settings):
    gen = scripted_generator(["Cut to ", "<think>pace</think>", "black."])
    live = _session(store, gen, settings)
    turn = await live.submit("End the act")

    reloaded = _session(store, scripted_generator([]), settings)
    await reloaded.load()
    stored_turn = reloaded.turns[-1]
    assert (stored_turn.response_text, stored_turn.reasoning_text) == (turn.response_text, turn.reasoning_text)


@pytest.mark.asyncio
async def test_error_before_any_token_is_shown_but_not_stored(store, scripted_generator, settings):
    gen = scripted_generator(["never sent"], fail_after=0)
    session = _session(store, gen, settings)

    turn = await session.submit("Write the finale")

    assert turn.response_text == ERROR_MESSAGE
    assert turn.failed
    assert [r.role for r in store.records["proj-1"]] == [USER]
    assert session.unsaved == []


@pytest.mark.asyncio
async def test_timeout_ends_turn_with_error(store, scripted_generator, settings):
    settings.generation_timeout = 0.05
    gen = scripted_generator(["late"], delay=0.5)
    session = _session(store, gen, settings)
    turn = await session.submit("Hurry")
    assert turn.failed
    assert not session.busy


@pytest.mark.asyncio
async def test_failed_store_write_is_retried_once(store, scripted_generator, settings):
    gen = scripted_generator(["A full reply"])
    session = _session(store, gen, settings)
    store.fail_writes = 2  # both the user and the assistant write fail

    turn = await session.submit("Draft it")
    assert turn.response_text == "A full reply"
    assert len(session.unsaved) == 2

    assert await session.retry_unsaved() == 2
    assert await session.retry_unsaved() == 0
    assert session.unsaved == []
    assert len(store.records["proj-1"]) == 2


@pytest.mark.asyncio
async def test_blank_and_overlapping_submissions_are_ignored(store, scripted_generator, settings):
    gen = scripted_generator(["a", "b"], delay=0.05)
    session = _session(store, gen, settings)

    assert await session.submit("   ") is None

    first = asyncio.create_task(session.submit("one"))
    await asyncio.sleep(0.01)
    assert session.busy
    assert await session.submit("two") is None
    await first

    assert [t.response_text for t in session.turns if t.role == USER] == ["one"]


@pytest.mark.asyncio
async def test_turn_order_follows_submission(store, scripted_generator, settings):
    session = _session(store, scripted_generator(["fast"]), settings)
    await session.submit("first")
    session.generator = scripted_generator(["slow"], delay=0.02)
    await session.submit("second")
    roles = [t.role for t in session.turns]
    texts = [t.response_text for t in session.turns]
    assert roles == [USER, ASSISTANT, USER, ASSISTANT]
    assert texts == ["first", "fast", "second", "slow"]


@pytest.mark.asyncio
async def test_metadata_edits_are_coalesced(store, scripted_generator, settings):
    session = _session(store, scripted_generator([]), settings)
    session.update_metadata(title="One")
    session.update_metadata(title="Two", genre="Noir")
    await asyncio.sleep(settings.autosave_seconds * 4)
    assert [m.title for m in store.metadata_calls] == ["Two"]
    assert store.metadata["proj-1"].briefing["genre"] == "Noir"


@pytest.mark.asyncio
async def test_flush_metadata_and_toggle(store, scripted_generator, settings):
    session = _session(store, scripted_generator(["<think>why</think>Because."]), settings)
    turn = await session.submit("Explain")
    assert session.toggle_reasoning_visible(turn.id) is True

    session.update_metadata(theme="Trust")
    assert await session.flush_metadata() is True
    assert store.metadata["proj-1"].briefing["theme"] == "Trust"
    await session.close()


@pytest.mark.asyncio
async def test_unknown_action_is_rejected(store, scripted_generator, settings):
    session = _session(store, scripted_generator([]), settings)
    with pytest.raises(ValueError):
        await session.submit("x", action="rewrite")
