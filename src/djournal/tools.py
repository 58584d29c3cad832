"""MCP tool definitions wrapping the journal engine."""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional

from .engine import JournalEngine
from .errors import (
    ConflictError,
    InvalidStateError,
    JournalError,
    NotFoundError,
    PayloadTooLargeError,
    ValidationError,
)
from .models import MARKDOWN, PDF, ExportArtifact, UserIdentity

logger = logging.getLogger(__name__)

DEFAULT_USER = "default"


def _object(properties: dict, required: Optional[list[str]] = None) -> dict:
    schema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _string(description: str) -> dict:
    return {"type": "string", "description": description}


FORMAT_PROPERTY = {
    "type": "string",
    "enum": [MARKDOWN, PDF],
    "description": "Export format (default: markdown)",
}


def make_tools(engine: JournalEngine) -> dict[str, dict]:
    """Create MCP tool definitions for the journal engine.

    Returns:
        Dict mapping tool names to their definitions.
    """

    tools = {}

    # ========== Daily state ==========
    tools["get_state"] = {
        "name": "get_state",
        "description": "Get today's journal state. Archives yesterday and starts a fresh day first if the date changed.",
        "inputSchema": _object({}),
    }

    tools["update_sleep"] = {
        "name": "update_sleep",
        "description": "Record last night's bedtime and/or this morning's wake time.",
        "inputSchema": _object({
            "previous_bedtime": _string("Bedtime, e.g. 23:30"),
            "wake_time": _string("Wake time, e.g. 07:15"),
        }),
    }

    tools["add_entry"] = {
        "name": "add_entry",
        "description": "Append a timestamped activity entry, optionally with a base64 image or data URL.",
        "inputSchema": _object({
            "text": _string("What happened"),
            "image": _string("Base64 image payload or data URL"),
        }, ["text"]),
    }

    tools["delete_entry"] = {
        "name": "delete_entry",
        "description": "Remove an activity entry from today.",
        "inputSchema": _object({"entry_id": _string("Entry id")}, ["entry_id"]),
    }

    # ========== Time-since trackers ==========
    tools["create_time_since_tracker"] = {
        "name": "create_time_since_tracker",
        "description": "Track the time elapsed since a date (e.g. last haircut). Persists across days.",
        "inputSchema": _object({
            "name": _string("Tracker name"),
            "reference_date": _string("YYYY-MM-DD or ISO datetime"),
        }, ["name", "reference_date"]),
    }

    tools["delete_time_since_tracker"] = {
        "name": "delete_time_since_tracker",
        "description": "Delete a time-since tracker.",
        "inputSchema": _object({"tracker_id": _string("Tracker id")}, ["tracker_id"]),
    }

    # ========== Duration timers ==========
    tools["create_duration_tracker"] = {
        "name": "create_duration_tracker",
        "description": "Create a stopwatch timer. Persists across days.",
        "inputSchema": _object({"name": _string("Timer name")}, ["name"]),
    }

    tools["delete_duration_tracker"] = {
        "name": "delete_duration_tracker",
        "description": "Delete a duration tracker.",
        "inputSchema": _object({"tracker_id": _string("Tracker id")}, ["tracker_id"]),
    }

    for action, description in (
        ("start_timer", "Start a timer. No effect if it is already running."),
        ("stop_timer", "Stop a running timer and add the run to its stored time."),
        ("reset_timer", "Stop a timer and zero its stored time."),
    ):
        tools[action] = {
            "name": action,
            "description": description,
            "inputSchema": _object({"tracker_id": _string("Timer id")}, ["tracker_id"]),
        }

    tools["set_manual_time"] = {
        "name": "set_manual_time",
        "description": "Overwrite a timer's stored time in milliseconds. The timer is left stopped.",
        "inputSchema": _object({
            "tracker_id": _string("Timer id"),
            "elapsed_ms": {"type": "integer", "minimum": 0, "description": "Elapsed milliseconds"},
        }, ["tracker_id", "elapsed_ms"]),
    }

    # ========== Custom counters ==========
    tools["create_custom_counter"] = {
        "name": "create_custom_counter",
        "description": "Create a daily counter. The name persists; the value restarts at zero each day.",
        "inputSchema": _object({"name": _string("Counter name")}, ["name"]),
    }

    for action, description in (
        ("delete_custom_counter", "Delete a counter and its definition."),
        ("increment_counter", "Add one to a counter."),
        ("decrement_counter", "Subtract one from a counter, never below zero."),
    ):
        tools[action] = {
            "name": action,
            "description": description,
            "inputSchema": _object({"counter_id": _string("Counter id")}, ["counter_id"]),
        }

    tools["set_counter_value"] = {
        "name": "set_counter_value",
        "description": "Set a counter to a non-negative integer.",
        "inputSchema": _object({
            "counter_id": _string("Counter id"),
            "value": {"type": "integer", "minimum": 0},
        }, ["counter_id", "value"]),
    }

    # ========== Fields ==========
    tools["list_template_fields"] = {
        "name": "list_template_fields",
        "description": "List field templates created empty on every new day.",
        "inputSchema": _object({}),
    }

    tools["create_template_field"] = {
        "name": "create_template_field",
        "description": "Register a field that appears, empty, on every day from now on.",
        "inputSchema": _object({"key": _string("Field name")}, ["key"]),
    }

    tools["delete_template_field"] = {
        "name": "delete_template_field",
        "description": "Delete a field template and remove it from today.",
        "inputSchema": _object({"template_id": _string("Template id")}, ["template_id"]),
    }

    tools["set_template_field_value"] = {
        "name": "set_template_field_value",
        "description": "Fill in today's value for a template field.",
        "inputSchema": _object({
            "key": _string("Field name"),
            "value": _string("Value for today"),
        }, ["key", "value"]),
    }

    tools["set_one_off_field"] = {
        "name": "set_one_off_field",
        "description": "Create or update a field that exists for today only.",
        "inputSchema": _object({
            "key": _string("Field name"),
            "value": _string("Value"),
        }, ["key"]),
    }

    tools["delete_one_off_field"] = {
        "name": "delete_one_off_field",
        "description": "Remove a one-off field from today.",
        "inputSchema": _object({"field_id": _string("Field id")}, ["field_id"]),
    }

    # ========== Tasks ==========
    tools["add_task"] = {
        "name": "add_task",
        "description": "Add a to-do item for today.",
        "inputSchema": _object({"text": _string("Task text")}, ["text"]),
    }

    for action, description in (
        ("toggle_task", "Flip a task between done and not done."),
        ("delete_task", "Remove a task from today."),
    ):
        tools[action] = {
            "name": action,
            "description": description,
            "inputSchema": _object({"task_id": _string("Task id")}, ["task_id"]),
        }

    # ========== Snapshots ==========
    tools["save_snapshot"] = {
        "name": "save_snapshot",
        "description": "Archive today's state now, replacing any snapshot already stored for today.",
        "inputSchema": _object({}),
    }

    tools["list_snapshots"] = {
        "name": "list_snapshots",
        "description": "List archived dates, newest first.",
        "inputSchema": _object({}),
    }

    tools["get_snapshot"] = {
        "name": "get_snapshot",
        "description": "Get the archived state for a date.",
        "inputSchema": _object({"date": _string("YYYY-MM-DD")}, ["date"]),
    }

    tools["delete_snapshot"] = {
        "name": "delete_snapshot",
        "description": "Delete the archived state for a date.",
        "inputSchema": _object({"date": _string("YYYY-MM-DD")}, ["date"]),
    }

    tools["get_retention"] = {
        "name": "get_retention",
        "description": "Show the snapshot retention policy.",
        "inputSchema": _object({}),
    }

    tools["set_retention"] = {
        "name": "set_retention",
        "description": "Change snapshot retention limits (0 disables a limit) and clean up immediately.",
        "inputSchema": _object({
            "max_days": {"type": "integer", "minimum": 0, "description": "Keep snapshots at most this many days old"},
            "max_count": {"type": "integer", "minimum": 0, "description": "Keep at most this many snapshots"},
        }),
    }

    # ========== Exports ==========
    tools["export_day"] = {
        "name": "export_day",
        "description": "Export one day as Markdown or PDF. 'today' archives the current day first.",
        "inputSchema": _object({
            "date": _string("YYYY-MM-DD or 'today' (default)"),
            "format": FORMAT_PROPERTY,
        }),
    }

    tools["export_range"] = {
        "name": "export_range",
        "description": "Export every archived day in an inclusive date range as one document.",
        "inputSchema": _object({
            "start_date": _string("YYYY-MM-DD"),
            "end_date": _string("YYYY-MM-DD"),
            "format": FORMAT_PROPERTY,
        }, ["start_date", "end_date"]),
    }

    tools["range_data"] = {
        "name": "range_data",
        "description": "Raw archived states in an inclusive date range.",
        "inputSchema": _object({
            "start_date": _string("YYYY-MM-DD"),
            "end_date": _string("YYYY-MM-DD"),
        }, ["start_date", "end_date"]),
    }

    # ========== Profile ==========
    tools["get_profile"] = {
        "name": "get_profile",
        "description": "Show the profile fields included in exports.",
        "inputSchema": _object({}),
    }

    tools["set_profile_field"] = {
        "name": "set_profile_field",
        "description": "Set a profile field shown at the top of exports.",
        "inputSchema": _object({
            "key": _string("Field name"),
            "value": _string("Value"),
        }, ["key", "value"]),
    }

    tools["delete_profile_field"] = {
        "name": "delete_profile_field",
        "description": "Remove a profile field.",
        "inputSchema": _object({"key": _string("Field name")}, ["key"]),
    }

    return tools


def _required(arguments: dict[str, Any], key: str) -> Any:
    if arguments.get(key) is None:
        raise ValidationError(f"Missing required argument: {key}")
    return arguments[key]


def _artifact_result(artifact: ExportArtifact) -> dict[str, Any]:
    result = {"success": True, **artifact.to_dict()}
    if artifact.content_type.startswith("text/"):
        result["content"] = artifact.content.decode("utf-8")
    else:
        result["content_base64"] = base64.b64encode(artifact.content).decode("ascii")
    return result


def _state_result(state, **extra) -> dict[str, Any]:
    return {"success": True, **extra, "state": state.to_dict()}


async def execute_tool(
    engine: JournalEngine,
    name: str,
    arguments: dict[str, Any],
    identity: Optional[UserIdentity] = None,
) -> dict[str, Any]:
    """Execute a journal tool and return the result.

    Args:
        engine: JournalEngine instance
        name: Tool name
        arguments: Tool arguments
        identity: The caller; defaults to the single local user

    Returns:
        Result dict with success status and data or error
    """
    if identity is None:
        identity = UserIdentity(user_id=DEFAULT_USER)
    user_id = identity.user_id
    days = engine.days
    trackers = engine.trackers

    try:
        # ========== Daily state ==========
        if name == "get_state":
            return _state_result(days.get_state(user_id))

        elif name == "update_sleep":
            return _state_result(days.update_sleep(
                user_id,
                previous_bedtime=arguments.get("previous_bedtime"),
                wake_time=arguments.get("wake_time"),
            ))

        elif name == "add_entry":
            return _state_result(days.add_entry(
                user_id, _required(arguments, "text"), arguments.get("image")
            ))

        elif name == "delete_entry":
            return _state_result(days.delete_entry(user_id, _required(arguments, "entry_id")))

        # ========== Trackers ==========
        elif name == "create_time_since_tracker":
            state, tracker_id = trackers.create_time_since_tracker(
                user_id, _required(arguments, "name"), _required(arguments, "reference_date")
            )
            return _state_result(state, tracker_id=tracker_id)

        elif name == "delete_time_since_tracker":
            return _state_result(trackers.delete_time_since_tracker(
                user_id, _required(arguments, "tracker_id")
            ))

        elif name == "create_duration_tracker":
            state, tracker_id = trackers.create_duration_tracker(user_id, _required(arguments, "name"))
            return _state_result(state, tracker_id=tracker_id)

        elif name == "delete_duration_tracker":
            return _state_result(trackers.delete_duration_tracker(
                user_id, _required(arguments, "tracker_id")
            ))

        elif name == "start_timer":
            return _state_result(trackers.start_timer(user_id, _required(arguments, "tracker_id")))

        elif name == "stop_timer":
            return _state_result(trackers.stop_timer(user_id, _required(arguments, "tracker_id")))

        elif name == "reset_timer":
            return _state_result(trackers.reset_timer(user_id, _required(arguments, "tracker_id")))

        elif name == "set_manual_time":
            return _state_result(trackers.set_manual_time(
                user_id, _required(arguments, "tracker_id"), _required(arguments, "elapsed_ms")
            ))

        elif name == "create_custom_counter":
            state, counter_id = trackers.create_custom_counter(user_id, _required(arguments, "name"))
            return _state_result(state, counter_id=counter_id)

        elif name == "delete_custom_counter":
            return _state_result(trackers.delete_custom_counter(
                user_id, _required(arguments, "counter_id")
            ))

        elif name == "increment_counter":
            return _state_result(trackers.increment_counter(user_id, _required(arguments, "counter_id")))

        elif name == "decrement_counter":
            return _state_result(trackers.decrement_counter(user_id, _required(arguments, "counter_id")))

        elif name == "set_counter_value":
            return _state_result(trackers.set_counter_value(
                user_id, _required(arguments, "counter_id"), arguments.get("value")
            ))

        # ========== Fields ==========
        elif name == "list_template_fields":
            templates = days.list_template_fields(user_id)
            return {"success": True, "templates": [t.to_dict() for t in templates]}

        elif name == "create_template_field":
            templates, state = days.create_template_field(user_id, _required(arguments, "key"))
            return _state_result(state, templates=[t.to_dict() for t in templates])

        elif name == "delete_template_field":
            templates, state = days.delete_template_field(user_id, _required(arguments, "template_id"))
            return _state_result(state, templates=[t.to_dict() for t in templates])

        elif name == "set_template_field_value":
            return _state_result(days.set_template_field_value(
                user_id, _required(arguments, "key"), arguments.get("value", "")
            ))

        elif name == "set_one_off_field":
            return _state_result(days.set_one_off_field(
                user_id, _required(arguments, "key"), arguments.get("value", "")
            ))

        elif name == "delete_one_off_field":
            return _state_result(days.delete_one_off_field(user_id, _required(arguments, "field_id")))

        # ========== Tasks ==========
        elif name == "add_task":
            return _state_result(days.add_task(user_id, _required(arguments, "text")))

        elif name == "toggle_task":
            return _state_result(days.toggle_task(user_id, _required(arguments, "task_id")))

        elif name == "delete_task":
            return _state_result(days.delete_task(user_id, _required(arguments, "task_id")))

        # ========== Snapshots ==========
        elif name == "save_snapshot":
            date = days.save_snapshot(user_id)
            return {"success": True, "date": date, "message": f"Snapshot saved for {date}"}

        elif name == "list_snapshots":
            days.check_date_transition(user_id)
            return {"success": True, "dates": engine.snapshots.list_dates(user_id)}

        elif name == "get_snapshot":
            days.check_date_transition(user_id)
            date = _required(arguments, "date")
            state = engine.snapshots.get(user_id, date)
            return {"success": True, "date": date, "data": state.to_dict()}

        elif name == "delete_snapshot":
            days.check_date_transition(user_id)
            date = _required(arguments, "date")
            remaining = engine.snapshots.delete_one(user_id, date)
            return {"success": True, "deleted": date, "dates": remaining}

        elif name == "get_retention":
            return {"success": True, **engine.snapshots.get_policy(user_id).to_dict()}

        elif name == "set_retention":
            days.check_date_transition(user_id)
            policy, remaining = engine.snapshots.set_policy(
                user_id,
                max_age_days=arguments.get("max_days"),
                max_count=arguments.get("max_count"),
            )
            return {"success": True, **policy.to_dict(), "dates": remaining}

        # ========== Exports ==========
        elif name == "export_day":
            artifact = engine.exports.export_day(
                identity,
                arguments.get("date") or "today",
                arguments.get("format") or MARKDOWN,
            )
            return _artifact_result(artifact)

        elif name == "export_range":
            artifact = engine.exports.export_range(
                identity,
                arguments.get("start_date"),
                arguments.get("end_date"),
                arguments.get("format") or MARKDOWN,
            )
            return _artifact_result(artifact)

        elif name == "range_data":
            days_data = engine.exports.range_data(
                identity, arguments.get("start_date"), arguments.get("end_date")
            )
            return {"success": True, "days": days_data}

        # ========== Profile ==========
        elif name == "get_profile":
            return {"success": True, "profile": engine.get_profile(user_id)}

        elif name == "set_profile_field":
            profile = engine.set_profile_field(
                user_id, _required(arguments, "key"), arguments.get("value", "")
            )
            return {"success": True, "profile": profile}

        elif name == "delete_profile_field":
            profile = engine.delete_profile_field(user_id, _required(arguments, "key"))
            return {"success": True, "profile": profile}

        else:
            return {
                "success": False,
                "error": f"Unknown tool: {name}",
            }

    except PayloadTooLargeError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "payload_too_large",
            "suggestion": "Attach a smaller or more compressed image",
        }

    except ValidationError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "validation_error",
            "suggestion": "Check the tool's input schema for required arguments and formats",
        }

    except NotFoundError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "not_found",
            "suggestion": "Use list_snapshots or get_state to see what exists",
        }

    except ConflictError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "conflict",
            "suggestion": "Choose a different name; this one is already taken",
        }

    except InvalidStateError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_state",
        }

    except JournalError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "journal_error",
        }

    except Exception as e:
        logger.exception("Tool %s failed", name)
        return {
            "success": False,
            "error": str(e),
            "error_type": "unexpected_error",
        }
