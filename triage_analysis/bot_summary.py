"""Condensed bot-capability summary built from a bot-definition export.

The export is the platform's JSON dump of a bot: agents with rules and goal
steps, system agents, and the variables, inputs and skills that steps refer
to through inline tags. The summary lists every agent followed by a sorted
table describing each referenced tag.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from .constants import (
    BOT_JSON_SUFFIX,
    MISSING_DESCRIPTION,
    SECTION_SEPARATOR,
    LogMessage,
    TagType,
)

Reference = tuple[str, str]


def _items(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _section(data: Any, key: str) -> dict[str, Any]:
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, dict) else {}


def _text(value: Any, default: str = "") -> str:
    if not value:
        return default
    return value if isinstance(value, str) else str(value)


def _described(item: dict[str, Any], default_name: str) -> str:
    name = _text(item.get("name"), default_name)
    description = _text(item.get("description"))
    return f"{name} ({description})" if description else name


@dataclass
class LookupTables:
    """Descriptions of everything a goal step can reference, keyed by slug or id."""

    agent_variables: dict[str, str] = field(default_factory=dict)
    agent_inputs: dict[str, str] = field(default_factory=dict)
    skills: dict[str, str] = field(default_factory=dict)
    reference_variables: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_export(cls, data: dict[str, Any]) -> "LookupTables":
        tables = cls()

        for item in _items(data, "agentVariables"):
            slug = _text(item.get("slug"))
            if slug:
                tables.agent_variables[slug] = _described(item, "Unknown Variable")

        for item in _items(data, "agentInputs"):
            slug = _text(item.get("slug"))
            if slug:
                tables.agent_inputs[slug] = _described(item, "Unknown Input")

        for item in _items(data, "agentReferenceVariables"):
            ref_id = _text(item.get("_id"))
            ref_slug = _text(item.get("referencedSlug"))
            if ref_id and ref_slug:
                tables.reference_variables[ref_id] = (
                    tables.agent_variables.get(ref_slug)
                    or tables.agent_inputs.get(ref_slug)
                    or f"Reference to {ref_slug}"
                )

        for convo in _items(data, "dynamicConversation"):
            config = _section(_section(convo, "skills"), "config")
            for skill_slug in config:
                tables.skills[skill_slug] = skill_slug

        return tables

    def describe(self, tag_type: str, value: str) -> str:
        """Description of one referenced tag, searching every table as a last resort."""
        description = None
        if tag_type == TagType.AGENT_INPUT:
            description = self.agent_inputs.get(value)
        elif tag_type == TagType.AGENT_VARIABLE:
            description = self.agent_variables.get(value)
        elif tag_type == TagType.CALL_SKILL:
            description = self.skills.get(value, value)
        elif tag_type == TagType.GET_INPUT:
            description = self.agent_inputs.get(value) or self.agent_variables.get(value)

        return (
            description
            or self.agent_inputs.get(value)
            or self.agent_variables.get(value)
            or self.skills.get(value)
            or self.reference_variables.get(value)
            or MISSING_DESCRIPTION
        )


def render_editor_content(node: Any, references: set[Reference]) -> str:
    """Flatten rich-editor content into plain text.

    Paragraphs end with a newline, hard breaks become newlines and tags are
    rendered inline as `` [type: value] ``. Every tag seen is added to
    ``references``.
    """
    if isinstance(node, list):
        return "".join(render_editor_content(child, references) for child in node)
    if not isinstance(node, dict):
        return ""

    node_type = node.get("type")
    if node_type in ("doc", "paragraph"):
        text = render_editor_content(node.get("content") or [], references)
        return text + "\n" if node_type == "paragraph" else text
    if node_type == "text":
        return _text(node.get("text"))
    if node_type == "hardBreak":
        return "\n"
    if node_type == "tag":
        attrs = _section(node, "attrs")
        tag_type, value = attrs.get("tagSubType"), attrs.get("value")
        if not value:
            return ""
        references.add((str(tag_type), str(value)))
        return f" [{tag_type}: {value}] "
    return ""


def _instruction_text(
    instruction: dict[str, Any], references: set[Reference]
) -> str | None:
    if instruction.get("type") != "editorContent":
        return None
    return render_editor_content(instruction.get("value"), references)


def _heading(title: str, underline: str, width: int) -> str:
    return f"{title}\n{underline * width}\n"


def unwrap_export(raw: Any) -> dict[str, Any]:
    """Find the bot definition inside the export's ``data`` envelopes."""
    envelope = _section(raw, "data")
    core = _section(envelope, "data") or envelope or raw
    return core if isinstance(core, dict) else {}


def generate_bot_summary(raw: Any) -> str:
    """Render a bot-definition export as a capability summary.

    Args:
        raw: Decoded export, optionally wrapped in ``data`` or ``data.data``.

    Returns:
        str: Agent rules and goal steps, system-agent instructions and the
            descriptions of every referenced tag, sorted by (type, value).
    """
    data = unwrap_export(raw)
    lookups = LookupTables.from_export(data)
    references: set[Reference] = set()
    parts: list[str] = []

    for convo in _items(data, "dynamicConversation"):
        title = _text(convo.get("title"), "Untitled Agent")
        parts.append(_heading(f"Agent Name: {title}", "=", len(title) + 12) + "\n")

        parts.append(_heading("Rules:", "-", 6))
        for number, rule in enumerate(_items(convo, "rules"), start=1):
            parts.append(f"{number}. {_text(rule.get('instruction'))}\n")
        parts.append("\n")

        parts.append(_heading("Goal Steps:", "-", 11))
        for step in _items(_section(convo, "goal"), "steps"):
            text = _instruction_text(_section(step, "instruction"), references)
            if text is not None:
                parts.append(f"{text}\n")
        parts.append(SECTION_SEPARATOR)

    for agent in _items(data, "systemAgent"):
        title = _text(agent.get("title"), "System Agent")
        heading = _heading(f"System Agent Name: {title}", "=", len(title) + 20)
        parts.append(heading + "\n")
        parts.append(f"Trigger:\n{_text(agent.get('trigger'), 'No trigger defined.')}\n\n")
        parts.append(_heading("Instructions:", "-", 13))

        follow_up = _section(agent, "followUp")
        if follow_up.get("enabled"):
            text = _instruction_text(_section(follow_up, "instruction"), references)
            if text is not None:
                parts.append(f"Follow-Up Instruction:\n{text}\n")

        summarisation = _section(_section(agent, "summarisation"), "instruction")
        text = _instruction_text(summarisation, references)
        if text is not None:
            parts.append(f"Summarisation Content:\n{text}\n")
        parts.append(SECTION_SEPARATOR)

    parts.append(_heading("Reference Descriptions:", "-", 22))
    if not references:
        parts.append("No references found in steps.\n")
    for tag_type, value in sorted(references):
        parts.append(f"[{tag_type}] {value}: {lookups.describe(tag_type, value)}\n")

    return "".join(parts)


def load_bot_summary(path: Path | str) -> str:
    """Read the bot summary for a run.

    A ``.json`` file is treated as a bot-definition export and summarized;
    anything else is read as an already written summary.

    Raises:
        ValueError: A ``.json`` file does not contain valid JSON.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() != BOT_JSON_SUFFIX:
        return text

    summary = generate_bot_summary(json.loads(text))
    logger.info(LogMessage.BOT_SUMMARY_GENERATED.format(path, len(summary)))
    return summary
