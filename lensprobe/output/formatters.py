import json
from typing import Any

from ..agent.types import AuthStatus, CodeLens, Snapshot


def lens_to_dict(lens: CodeLens) -> dict[str, Any]:
    result: dict[str, Any] = {
        "command": lens.command.command if lens.command else None,
        "title": lens.command.title if lens.command else "",
    }
    if lens.range is not None:
        result["line"] = lens.range.start.line + 1
        result["column"] = lens.range.start.character
    return result


def format_output(data: Any, output_format: str = "plain") -> str:
    if output_format == "json":
        return json.dumps(data, indent=2)
    return format_plain(data)


def format_plain(data: Any) -> str:
    if data is None:
        return ""

    if isinstance(data, str):
        return data

    if isinstance(data, dict):
        if "error" in data:
            return f"Error: {data['error']}"

        if "lenses" in data:
            return format_lenses_plain(data["lenses"], data.get("uri"))

        if "status" in data:
            return format_status_plain(data)

    if isinstance(data, list):
        return format_lenses_plain(data)

    return str(data)


def format_lenses_plain(lenses: list[dict[str, Any]], uri: str | None = None) -> str:
    if not lenses:
        return "No lenses"

    lines = []
    if uri:
        lines.append(uri)
    for lens in lenses:
        location = f"{lens['line']}:{lens['column']} " if "line" in lens else ""
        command = lens.get("command") or "<no command>"
        title = lens.get("title")
        lines.append(f"  {location}{command}" + (f"  {title}" if title else ""))
    return "\n".join(lines)


def format_status_plain(data: dict[str, Any]) -> str:
    user = f" as {data['username']}" if data.get("username") else ""
    endpoint = f" on {data['endpoint']}" if data.get("endpoint") else ""
    return f"{data['status']}{user}{endpoint}"


def snapshot_result(snapshot: Snapshot, uri: str | None = None) -> dict[str, Any]:
    return {"uri": uri, "lenses": [lens_to_dict(lens) for lens in snapshot]}


def status_result(status: AuthStatus) -> dict[str, Any]:
    return {
        "status": "authenticated" if status.is_authenticated else status.status,
        "endpoint": status.endpoint,
        "username": status.username,
    }
