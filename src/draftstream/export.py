"""Export a project conversation to Markdown and JSON formats."""

import json

from .core import ProjectMetadata, Turn


def turn_to_dict(turn: Turn) -> dict:
    """Convert a Turn dataclass to a JSON-serializable dict."""
    return {
        "id": turn.id,
        "role": turn.role,
        "response_text": turn.response_text,
        "reasoning_text": turn.reasoning_text,
        "reasoning_visible": turn.reasoning_visible,
        "pending": turn.pending,
        "error": turn.error,
        "created_at": turn.created_at.isoformat() if turn.created_at else None,
    }


def conversation_to_markdown(metadata: ProjectMetadata, turns: list[Turn]) -> str:
    """Export a project's metadata and turns as clean Markdown."""
    lines = [f"# {metadata.title or 'Untitled Project'}", ""]

    for key, value in metadata.briefing.items():
        if not value:
            continue
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        label = key.replace("_", " ").capitalize()
        lines.append(f"**{label}:** {value}")
    lines.extend(["", "---", ""])

    for turn in turns:
        if turn.pending:
            continue
        role_label = turn.role.capitalize()
        ts = f" ({turn.created_at.strftime('%Y-%m-%d %H:%M')})" if turn.created_at else ""
        lines.append(f"## {role_label}{ts}")
        lines.append("")
        lines.append(turn.response_text)
        if turn.reasoning_text:
            lines.extend([
                "",
                "<details><summary>Reasoning</summary>",
                "",
                turn.reasoning_text,
                "",
                "</details>",
            ])
        lines.extend(["", "---", ""])

    return "\n".join(lines)


def conversation_to_json(project_id: str, metadata: ProjectMetadata, turns: list[Turn]) -> str:
    """Export a project's metadata and turns as structured JSON."""
    data = {
        "project": {"id": project_id, **metadata.to_dict()},
        "turns": [turn_to_dict(t) for t in turns if not t.pending],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)
