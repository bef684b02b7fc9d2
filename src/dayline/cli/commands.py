# src/dayline/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable, Coroutine
from datetime import date, datetime
from typing import Any, TypeVar, cast

from dateutil.parser import isoparse

from ..core.state import AppState
from ..instances.instance_models import EntityKind
from ..timeline.timeline_models import DaySection, DayTimeline, TimelineItem

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

T = TypeVar("T")

logger = logging.getLogger(__name__)


class UsageError(ValueError):
    """Bad command arguments; the message is shown to the user as-is."""


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /today, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except UsageError as e:
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def _kind(raw: str) -> EntityKind:
    try:
        return EntityKind.parse(raw)
    except ValueError:
        raise UsageError(f"Unknown kind: {raw!r} (use routine or event).") from None


def _day(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise UsageError(f"Bad date: {raw!r} (expected YYYY-MM-DD).") from None


def _when(raw: str) -> datetime:
    try:
        return isoparse(raw)
    except ValueError:
        raise UsageError(f"Bad date-time: {raw!r} (expected ISO 8601).") from None


def _int(raw: str, what: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise UsageError(f"Bad {what}: {raw!r}.") from None


def _target(args: list[str], usage: str) -> tuple[EntityKind, str, date]:
    if len(args) < 3:
        raise UsageError(f"Usage: {usage}")
    return _kind(args[0]), args[1], _day(args[2])


def _result(state: AppState, ok: object, done: str) -> str:
    if ok:
        return done
    return f"Failed: {state.instances.last_error or 'unknown error'}"


def _ts(value: float | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value).astimezone().strftime("%Y-%m-%d %H:%M")


# ---- rendering ----

_SECTION_TITLES = {
    DaySection.ALL_DAY: "All day",
    DaySection.MORNING: "Morning",
    DaySection.AFTERNOON: "Afternoon",
    DaySection.EVENING: "Evening",
    DaySection.UNSCHEDULED: "Unscheduled",
}


def _render_item(item: TimelineItem) -> str:
    mark = {"completed": "x", "skipped": "-"}.get(item.status.value, " ")
    when = item.start.strftime("%H:%M") if (item.start is not None and not item.all_day) else "     "
    who = item.assignee or ", ".join(item.assignees)
    line = f"  [{mark}] {when} {item.key} {item.title}"
    if who:
        line += f" (@{who})"
    if item.instance is not None:
        line += f" #{item.instance.id}"
    return line


def render_timeline(timeline: DayTimeline, assignee: str | None = None) -> str:
    lines = [
        f"Timeline {timeline.day.isoformat()} (assignee: {assignee or 'all'}) "
        f"{timeline.completed_count}/{timeline.total_count} done"
    ]
    for section in DaySection:
        items = timeline.sections.get(section) or []
        if not items:
            continue
        lines.append(f"{_SECTION_TITLES[section]}:")
        lines.extend(_render_item(i) for i in items)
    if timeline.total_count == 0 and len(lines) == 1:
        lines.append("  (nothing scheduled)")
    return "\n".join(lines)


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    s = state.settings
    user = state.session.current_user_id() or "(signed out)"
    return (
        "Status:\n"
        f"  User: {user}\n"
        f"  Timezone: {getattr(s, 'timezone', None) or 'local'}\n"
        f"  Instance DB: {s.db_path} ({state.store.count_instances()} instances)\n"
        f"  Planner file: {s.sources_path}\n"
        f"  Carry-over days: {s.carry_over_days}"
    )


def cmd_login(state: AppState, args: list[str]) -> str:
    """
    /login <user_id>  -> act as this user
    """
    if not args:
        raise UsageError("Usage: /login <user_id>")
    state.session.sign_in(args[0])
    return f"Signed in as {args[0]}."


def cmd_logout(state: AppState, args: list[str]) -> str:
    state.session.sign_out()
    return "Signed out."


def cmd_today(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /today                       -> today's timeline, everyone
    /today 2024-01-15            -> that day
    /today 2024-01-15 alice      -> only items assigned to alice ("unassigned" works too)
    """
    day = _day(args[0]) if args else datetime.now(state.tz).date()
    assignee = args[1] if len(args) > 1 else None

    if emit:
        with contextlib.suppress(Exception):
            emit(f"[TIMELINE] Building {day.isoformat()}...")

    timeline = _run(state.timeline.build(day, assignee))
    return render_timeline(timeline, assignee)


def cmd_done(state: AppState, args: list[str]) -> str:
    kind, entity_id, day = _target(args, "/done <kind> <id> <date>")
    return _result(state, _run(state.instances.mark_done(kind, entity_id, day)), "Marked done.")


def cmd_undo(state: AppState, args: list[str]) -> str:
    kind, entity_id, day = _target(args, "/undo <kind> <id> <date>")
    return _result(state, _run(state.instances.undo_done(kind, entity_id, day)), "Back to pending.")


def cmd_skip(state: AppState, args: list[str]) -> str:
    kind, entity_id, day = _target(args, "/skip <kind> <id> <date>")
    return _result(state, _run(state.instances.skip(kind, entity_id, day)), "Skipped.")


def cmd_defer(state: AppState, args: list[str]) -> str:
    usage = "/defer <kind> <id> <date> <iso-datetime>"
    kind, entity_id, day = _target(args, usage)
    if len(args) < 4:
        raise UsageError(f"Usage: {usage}")
    target = _when(args[3])
    ok = _run(state.instances.defer(kind, entity_id, day, target))
    return _result(state, ok, f"Deferred to {target.isoformat()}.")


def cmd_assign(state: AppState, args: list[str]) -> str:
    """
    /assign <kind> <id> <date> <user>  -> assign this occurrence
    /assign <kind> <id> <date>         -> clear the override
    """
    kind, entity_id, day = _target(args, "/assign <kind> <id> <date> [user]")
    assignee = args[3] if len(args) > 3 else None
    ok = _run(state.instances.assign(kind, entity_id, day, assignee))
    return _result(state, ok, f"Assigned to {assignee}." if assignee else "Assignment cleared.")


def cmd_note(state: AppState, args: list[str]) -> str:
    usage = "/note <kind> <id> <date> <text...>"
    kind, entity_id, day = _target(args, usage)
    text = " ".join(args[3:]).strip()
    if not text:
        raise UsageError(f"Usage: {usage}")
    note = _run(state.delegation.add_note(kind, entity_id, day, text))
    if note is None:
        return _result(state, False, "")
    return f"Note #{note.id} added to instance #{note.instance_id}."


def cmd_notes(state: AppState, args: list[str]) -> str:
    if not args:
        raise UsageError("Usage: /notes <instance_id>")
    instance_id = _int(args[0], "instance id")
    notes = _run(state.delegation.get_notes(instance_id))
    if not notes:
        return f"No notes for instance #{instance_id}."
    lines = [f"Notes for instance #{instance_id}:"]
    for n in notes:
        lines.append(f"  #{n.id} [{_ts(n.created_at)}] {n.user_id}: {n.note}")
    return "\n".join(lines)


def cmd_unnote(state: AppState, args: list[str]) -> str:
    if not args:
        raise UsageError("Usage: /unnote <note_id>")
    ok = _run(state.delegation.delete_note(_int(args[0], "note id")))
    return _result(state, ok, "Note deleted.")


def cmd_cover(state: AppState, args: list[str]) -> str:
    kind, entity_id, day = _target(args, "/cover <kind> <id> <date>")
    req = _run(state.delegation.request_coverage(kind, entity_id, day))
    if req is None:
        return _result(state, False, "")
    return f"Coverage request #{req.id} opened on instance #{req.instance_id}."


def cmd_coverage(state: AppState, args: list[str]) -> str:
    if not args:
        raise UsageError("Usage: /coverage <instance_id>")
    instance_id = _int(args[0], "instance id")
    reqs = _run(state.delegation.get_coverage_requests(instance_id))
    if not reqs:
        return f"No coverage requests for instance #{instance_id}."
    lines = [f"Coverage requests for instance #{instance_id}:"]
    for r in reqs:
        who = f" covered_by={r.covered_by}" if r.covered_by else ""
        lines.append(f"  #{r.id} {r.status.value} by={r.requested_by}{who} at={_ts(r.requested_at)}")
    return "\n".join(lines)


def cmd_respond(state: AppState, args: list[str]) -> str:
    usage = "/respond <request_id> accept|decline"
    if len(args) < 2:
        raise UsageError(f"Usage: {usage}")
    request_id = _int(args[0], "request id")
    answer = args[1].lower()
    if answer not in ("accept", "decline"):
        raise UsageError(f"Usage: {usage}")
    accept = answer == "accept"
    ok = _run(state.delegation.respond_to_coverage(request_id, accept))
    return _result(state, ok, "Coverage accepted." if accept else "Coverage declined.")


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show user, paths and timeline settings.")
registry.register("login", cmd_login, help_text="Act as a user: /login <user_id>.")
registry.register("logout", cmd_logout, help_text="Sign out.")
registry.register(
    "today", cmd_today, help_text="Day timeline: /today [YYYY-MM-DD] [assignee|unassigned]."
)
registry.register("done", cmd_done, help_text="Mark done: /done <kind> <id> <date>.")
registry.register("undo", cmd_undo, help_text="Undo done: /undo <kind> <id> <date>.")
registry.register("skip", cmd_skip, help_text="Skip: /skip <kind> <id> <date>.")
registry.register(
    "defer", cmd_defer, help_text="Move one occurrence: /defer <kind> <id> <date> <iso-datetime>."
)
registry.register(
    "assign", cmd_assign, help_text="Assign one occurrence: /assign <kind> <id> <date> [user]."
)
registry.register("note", cmd_note, help_text="Add a note: /note <kind> <id> <date> <text...>.")
registry.register("notes", cmd_notes, help_text="List notes: /notes <instance_id>.")
registry.register("unnote", cmd_unnote, help_text="Delete your note: /unnote <note_id>.")
registry.register("cover", cmd_cover, help_text="Ask for coverage: /cover <kind> <id> <date>.")
registry.register("coverage", cmd_coverage, help_text="List coverage requests: /coverage <instance_id>.")
registry.register(
    "respond", cmd_respond, help_text="Answer coverage: /respond <request_id> accept|decline."
)
