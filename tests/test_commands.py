# tests/test_commands.py

from __future__ import annotations

import json

import pytest

from dayline.cli.bootstrap import create_initial_state
from dayline.cli.commands import CommandRegistry, UsageError, registry
from dayline.core.state import AppState


@pytest.fixture()
def state(settings) -> AppState:
    settings.sources_path.write_text(
        json.dumps(
            {
                "routines": [{"id": "walk", "name": "Walk dog", "time_of_day": "07:30", "assignee": "alice"}],
                "events": [{"id": "e1", "title": "Dentist", "start": "2024-01-15T14:00:00"}],
            }
        ),
        "utf-8",
    )
    return create_initial_state(settings=settings)


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/bee y", emit=lambda _: None) == "h3"
    assert called == {"h2": 1, "h3": 1}


def test_command_registry_unknown_non_command_and_usage(state) -> None:
    reg = CommandRegistry()

    def needs_arg(state, args):
        raise UsageError("Usage: /x <arg>")

    reg.register("x", needs_arg, "x")

    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert reg.handle(state, "/x") == "Usage: /x <arg>"
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_done_and_today(state) -> None:
    assert registry.handle(state, "/done routine walk 2024-01-15") == "Marked done."

    out = registry.handle(state, "/today 2024-01-15") or ""
    assert "Timeline 2024-01-15" in out
    assert "1/2 done" in out
    assert "[x] 07:30 routine-walk Walk dog (@alice)" in out
    assert "event-e1 Dentist" in out

    only_alice = registry.handle(state, "/today 2024-01-15 alice") or ""
    assert "event-e1" not in only_alice


def test_defer_note_and_coverage_flow(state) -> None:
    assert registry.handle(state, "/defer event e1 2024-01-15 2024-01-16T09:00:00").startswith("Deferred")
    assert "event-e1" not in (registry.handle(state, "/today 2024-01-15") or "")

    reply = registry.handle(state, "/note routine walk 2024-01-15 leash is by the door") or ""
    assert reply.startswith("Note #")
    instance_id = reply.rsplit("#", 1)[1].rstrip(".")

    assert "leash is by the door" in (registry.handle(state, f"/notes {instance_id}") or "")

    cover = registry.handle(state, "/cover routine walk 2024-01-15") or ""
    request_id = cover.split("#")[1].split()[0]

    assert registry.handle(state, "/login bob") == "Signed in as bob."
    assert registry.handle(state, f"/respond {request_id} accept") == "Coverage accepted."
    assert "accepted" in (registry.handle(state, f"/coverage {instance_id}") or "")
    assert "covered_by=bob" in (registry.handle(state, f"/coverage {instance_id}") or "")


def test_bad_arguments_and_signed_out(state) -> None:
    assert "Unknown kind" in (registry.handle(state, "/done chore c1 2024-01-15") or "")
    assert "Bad date" in (registry.handle(state, "/done routine walk tomorrow") or "")
    assert (registry.handle(state, "/skip routine") or "").startswith("Usage:")

    registry.handle(state, "/logout")
    assert registry.handle(state, "/done routine walk 2024-01-15") == "Failed: Not authenticated"


def test_status_and_help(state) -> None:
    assert "User: alice" in (registry.handle(state, "/status") or "")
    help_text = registry.handle(state, "/help") or ""
    assert "/today" in help_text
    assert "/respond" in help_text
