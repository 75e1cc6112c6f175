"""Key design for the single chats table.

Chats and their messages share one partition so that a single range
query returns a chat's metadata item followed by its messages::

    record       pk              sk                              gsi1pk          gsi1sk
    Chat         CHAT#<chatId>   METADATA                        USER#<userId>   CHAT#<updatedAt>
    ChatMessage  CHAT#<chatId>   MSG#<createdAt>#<messageId>     -               -

``METADATA`` sorts before every ``MSG#`` key, so the chat item always
comes first in its partition.  Message sort keys lead with the creation
timestamp for chronological order; the message id breaks ties between
messages created in the same instant.  The ``gsi1`` index lists a
user's chats ordered by last update.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

PARTITION_FIELD = "pk"
SORT_FIELD = "sk"
INDEX_PARTITION_FIELD = "gsi1pk"
INDEX_SORT_FIELD = "gsi1sk"

CHAT_PREFIX = "CHAT#"
USER_PREFIX = "USER#"
MESSAGE_PREFIX = "MSG#"
CHAT_METADATA_SK = "METADATA"

SEPARATOR = "#"


@dataclass(frozen=True)
class KeyTemplate:
    """A key attribute rendered from record attributes.

    ``template`` uses ``str.format`` fields named after the snake_case
    record attributes, for example ``"CHAT#{chat_id}"``.  A template
    without fields renders a constant.
    """

    field: str
    template: str
    composite: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        names = tuple(
            name for _, name, _, _ in string.Formatter().parse(self.template) if name
        )
        object.__setattr__(self, "composite", names)

    def render(self, values: Mapping[str, Any]) -> str:
        missing = [name for name in self.composite if values.get(name) in (None, "")]
        if missing:
            raise KeyError(f"{self.field} needs {', '.join(missing)}")
        return self.template.format(**{name: values[name] for name in self.composite})

    def prefix(self, values: Optional[Mapping[str, Any]] = None) -> str:
        """Render the template up to the first composite attribute not in ``values``.

        The result is meant for ``begins_with`` conditions, e.g. ``"MSG#"``
        for a message sort key when only the chat is known.
        """
        values = values or {}
        rendered = []
        for literal, name, _, _ in string.Formatter().parse(self.template):
            rendered.append(literal)
            if name is None:
                continue
            if values.get(name) in (None, ""):
                break
            rendered.append(str(values[name]))
        return "".join(rendered)


@dataclass(frozen=True)
class IndexKeys:
    """Partition and sort key templates for the table or a secondary index."""

    pk: KeyTemplate
    sk: KeyTemplate
    name: Optional[str] = None

    @property
    def attributes(self) -> frozenset[str]:
        return frozenset(self.pk.composite + self.sk.composite)

    def render(self, values: Mapping[str, Any]) -> dict[str, str]:
        return {self.pk.field: self.pk.render(values), self.sk.field: self.sk.render(values)}


CHAT_PRIMARY = IndexKeys(
    pk=KeyTemplate(PARTITION_FIELD, CHAT_PREFIX + "{chat_id}"),
    sk=KeyTemplate(SORT_FIELD, CHAT_METADATA_SK),
)
CHAT_BY_USER = IndexKeys(
    pk=KeyTemplate(INDEX_PARTITION_FIELD, USER_PREFIX + "{user_id}"),
    sk=KeyTemplate(INDEX_SORT_FIELD, CHAT_PREFIX + "{updated_at}"),
    name="gsi1",
)
MESSAGE_PRIMARY = IndexKeys(
    pk=KeyTemplate(PARTITION_FIELD, CHAT_PREFIX + "{chat_id}"),
    sk=KeyTemplate(SORT_FIELD, MESSAGE_PREFIX + "{created_at}" + SEPARATOR + "{message_id}"),
)
