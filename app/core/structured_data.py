"""Structured payload extraction from assistant replies.

The model embeds UI cards as fenced JSON blocks::

    ```json:task_suggestions
    {"type": "task_suggestions", "tasks": [...]}
    ```

At most one payload is kept per assistant message. Anything that does not
parse, or whose ``type`` is not a known discriminant, is treated as absent.
"""

import json
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.core.exceptions import MalformedStructuredDataError
from app.core.logging import get_logger

logger = get_logger(__name__)

_TAGGED_BLOCK = re.compile(r"```json:(\w+)\s*(.*?)```", re.DOTALL)
# Requires a newline after "json" so tagged blocks are not matched twice
_PLAIN_BLOCK = re.compile(r"```json[ \t]*\r?\n(.*?)```", re.DOTALL)


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class TaskSuggestionsPayload(_Payload):
    type: Literal["task_suggestions"]
    tasks: list[dict[str, Any]] = Field(default_factory=list)


class ScheduleSuggestionPayload(_Payload):
    type: Literal["schedule_suggestion"]
    assignments: list[dict[str, Any]] = Field(default_factory=list)


class CapacityOverviewPayload(_Payload):
    type: Literal["capacity_overview"]
    team: list[dict[str, Any]] = Field(default_factory=list)


class ProjectWizardSuggestionPayload(_Payload):
    type: Literal["project_wizard_suggestion"]
    projectName: str = ""
    detectedScope: str = ""
    suggestedEpics: list[str] = Field(default_factory=list)


class ProjectWizardProgressPayload(_Payload):
    type: Literal["project_wizard_progress"]
    step: str = "name"
    project: dict[str, Any] = Field(default_factory=dict)
    epics: list[dict[str, Any]] = Field(default_factory=list)
    dependencies: list[dict[str, Any]] = Field(default_factory=list)


class ProjectWizardReviewPayload(_Payload):
    type: Literal["project_wizard_review"]
    readyToCreate: bool = False


class ProjectCreatedPayload(_Payload):
    type: Literal["project_created"]
    projectId: str | None = None


StructuredPayload = Annotated[
    Union[
        TaskSuggestionsPayload,
        ScheduleSuggestionPayload,
        CapacityOverviewPayload,
        ProjectWizardSuggestionPayload,
        ProjectWizardProgressPayload,
        ProjectWizardReviewPayload,
        ProjectCreatedPayload,
    ],
    Field(discriminator="type"),
]

_payload_adapter: TypeAdapter = TypeAdapter(StructuredPayload)

PAYLOAD_TYPES = frozenset({
    "task_suggestions",
    "schedule_suggestion",
    "capacity_overview",
    "project_wizard_suggestion",
    "project_wizard_progress",
    "project_wizard_review",
    "project_created",
})


def parse_structured_block(raw: str, type_hint: str | None = None) -> dict[str, Any]:
    """
    Parse and validate one fenced block body.

    Args:
        raw: Text between the fence markers
        type_hint: Discriminant from a ``json:<type>`` tag, used when the object omits ``type``

    Returns:
        The validated payload as a plain dict (unknown extra keys preserved)

    Raises:
        MalformedStructuredDataError: On invalid JSON, non-object JSON or unknown type
    """
    try:
        parsed = json.loads(raw.strip())
    except json.JSONDecodeError as e:
        raise MalformedStructuredDataError(f"Invalid JSON in structured block: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedStructuredDataError("Structured block is not a JSON object")

    if type_hint and "type" not in parsed:
        parsed["type"] = type_hint

    try:
        payload = _payload_adapter.validate_python(parsed)
    except ValidationError as e:
        raise MalformedStructuredDataError(f"Unrecognized structured payload: {e}") from e

    return payload.model_dump(mode="json")


def extract_structured_data(content: str | None) -> dict[str, Any] | None:
    """
    Pull the first structured payload out of an assistant reply.

    Tries a tagged ``json:<type>`` block first, then an untagged ``json``
    block that carries a ``type`` field. Never raises.

    Args:
        content: Final assistant text

    Returns:
        Payload dict, or None when no valid block is present
    """
    if not content:
        return None

    tagged = _TAGGED_BLOCK.search(content)
    if tagged:
        try:
            return parse_structured_block(tagged.group(2), type_hint=tagged.group(1))
        except MalformedStructuredDataError as e:
            logger.debug(f"Ignoring tagged block: {e}")

    plain = _PLAIN_BLOCK.search(content)
    if plain:
        try:
            return parse_structured_block(plain.group(1))
        except MalformedStructuredDataError as e:
            logger.debug(f"Ignoring plain block: {e}")

    return None
