"""Block Kit builders for rotation notifications and custom message templates.

Custom messages are Slack ``rich_text`` documents. They are parsed into a
small typed tree (text, mention and container nodes, with anything else
kept verbatim) and placeholders are substituted per node kind:

- ``{userId}`` and ``{rotaName}`` inside text nodes
- a user mention whose ``user_id`` is ``{userId}``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from rotabot.notifications.channels import NotificationMessage

if TYPE_CHECKING:
    from datetime import datetime

SKIP_ACTION_PREFIX = "skip_person_"
USER_PLACEHOLDER = "{userId}"
ROTA_PLACEHOLDER = "{rotaName}"


@dataclass(frozen=True)
class TemplateValues:
    """Values substituted into a custom message template."""

    user_id: str
    rota_name: str

    def substitute(self, text: str) -> str:
        return text.replace(USER_PLACEHOLDER, self.user_id).replace(
            ROTA_PLACEHOLDER, self.rota_name
        )


# -- Template tree ---------------------------------------------------------------


@dataclass
class TextNode:
    text: str
    extra: dict[str, Any] = field(default_factory=dict)

    def render(self, values: TemplateValues) -> dict[str, Any]:
        return {**self.extra, "type": "text", "text": values.substitute(self.text)}


@dataclass
class MentionNode:
    user_id: str
    extra: dict[str, Any] = field(default_factory=dict)

    def render(self, values: TemplateValues) -> dict[str, Any]:
        user_id = values.user_id if self.user_id == USER_PLACEHOLDER else self.user_id
        return {**self.extra, "type": "user", "user_id": user_id}


@dataclass
class ContainerNode:
    type: str
    elements: list[TemplateNode]
    extra: dict[str, Any] = field(default_factory=dict)

    def render(self, values: TemplateValues) -> dict[str, Any]:
        return {
            **self.extra,
            "type": self.type,
            "elements": [child.render(values) for child in self.elements],
        }


@dataclass
class RawNode:
    """Any node kind without placeholders (emoji, links, dividers...)."""

    data: dict[str, Any]

    def render(self, values: TemplateValues) -> dict[str, Any]:  # noqa: ARG002
        return dict(self.data)


TemplateNode = TextNode | MentionNode | ContainerNode | RawNode


def parse_node(data: dict[str, Any]) -> TemplateNode:
    """Convert a rich_text JSON node into its typed form."""
    node_type = data.get("type", "")
    if node_type == "text":
        extra = {k: v for k, v in data.items() if k not in ("type", "text")}
        return TextNode(text=str(data.get("text", "")), extra=extra)
    if node_type == "user":
        extra = {k: v for k, v in data.items() if k not in ("type", "user_id")}
        return MentionNode(user_id=str(data.get("user_id", "")), extra=extra)
    if isinstance(data.get("elements"), list):
        extra = {k: v for k, v in data.items() if k not in ("type", "elements")}
        children = [parse_node(child) for child in data["elements"] if isinstance(child, dict)]
        return ContainerNode(type=node_type, elements=children, extra=extra)
    return RawNode(data=data)


def render_template(template: dict[str, Any], values: TemplateValues) -> dict[str, Any]:
    """Return a copy of *template* with placeholders substituted."""
    return parse_node(template).render(values)


def has_content(template: dict[str, Any] | None) -> bool:
    return bool(template and template.get("elements"))


# -- Messages --------------------------------------------------------------------


def assignment_message(
    rota_name: str,
    member_id: str,
    *,
    assignment_id: str | None = None,
    member_count: int = 1,
    custom_message: dict[str, Any] | None = None,
) -> NotificationMessage:
    """Build the notification announcing *member_id* for *rota_name*.

    A "Skip Person" button is included when the assignment is known and the
    rotation has someone to skip to.
    """
    blocks: list[dict[str, Any]] = [
        {
            "type": "rich_text",
            "elements": [
                {
                    "type": "rich_text_section",
                    "elements": [
                        {
                            "type": "text",
                            "text": f"📅 {rota_name}\n\nAssigned: ",
                            "style": {"bold": True},
                        },
                        {"type": "user", "user_id": member_id},
                    ],
                }
            ],
        }
    ]

    if has_content(custom_message):
        values = TemplateValues(user_id=member_id, rota_name=rota_name)
        blocks.append({"type": "divider"})
        blocks.append(render_template(custom_message, values))

    if assignment_id and member_count > 1:
        blocks.append({
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "⏭️ Skip Person", "emoji": True},
                    "action_id": f"{SKIP_ACTION_PREFIX}{assignment_id}",
                    "value": assignment_id,
                }
            ],
        })

    return NotificationMessage(text=f"📅 {rota_name} - Assigned: <@{member_id}>", blocks=blocks)


def skipped_message(
    rota_name: str, skipped_member_id: str, actor_id: str, skipped_at: datetime
) -> NotificationMessage:
    """Build the struck-through replacement for a skipped assignment's message."""
    when = skipped_at.strftime("%b %d, %Y %I:%M %p %Z").strip()
    return NotificationMessage(
        text=f"~📅 {rota_name} - Assigned: <@{skipped_member_id}>~",
        blocks=[
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"~📅 {rota_name}~\n\n~Assigned: <@{skipped_member_id}>~",
                },
            },
            {
                "type": "context",
                "elements": [
                    {"type": "mrkdwn", "text": f"⏭️ Skipped by <@{actor_id}> on {when}"},
                ],
            },
        ],
    )


def parse_skip_action(action_id: str) -> str | None:
    """Return the assignment ID encoded in a skip button's action ID."""
    if not action_id.startswith(SKIP_ACTION_PREFIX):
        return None
    return action_id[len(SKIP_ACTION_PREFIX):] or None
