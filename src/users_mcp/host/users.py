"""User capabilities exposed by the host.

Resources:
    users://all                  All users as a JSON array
    users://{userId}/profile     One user, or {"error": "User not found"}

Tools:
    create-user                  Store a user from the given fields
    create-random-user           Ask the driver to invent a user, then store it

Prompts:
    generate-fake-user           Ask for a fake user with a given name
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from ..capabilities import (
    CapabilityRegistry,
    InputSchema,
    PromptArgument,
    ToolContext,
)
from ..errors import GenerationFailed, PersistenceFailed, RequestTimeout, ToolError
from ..protocol.types import ContentItem, PromptMessage, ToolAnnotations
from ..store import NewUser, UserStore

logger = logging.getLogger(__name__)

JSON_MIME = "application/json"

USER_NOT_FOUND = {"error": "User not found"}

RANDOM_USER_PROMPT = (
    "Generate fake user data. The user should have a realistic name, email, address, "
    "and phone number. Return this data as a JSON object with no other text or formatter "
    "so it can be used with JSON.parse."
)
RANDOM_USER_MAX_TOKENS = 1024

_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```$")


def strip_code_fence(text: str) -> str:
    """Remove a Markdown code-fence wrapper around generated text.

    Models often answer "```json\\n{...}\\n```" even when asked for bare
    JSON. This is a text-level workaround: a backend constrained to a
    response schema would make it unnecessary.
    """
    text = text.strip()
    text = _FENCE_OPEN.sub("", text, count=1)
    text = _FENCE_CLOSE.sub("", text, count=1)
    return text.strip()


def parse_generated_user(text: str) -> NewUser:
    """Parse generated text into user fields.

    Raises:
        ToolError: If the text is not a JSON object with the user fields
    """
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise ToolError(f"Generated text is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise ToolError("Generated JSON is not an object")
    try:
        return NewUser.model_validate(data)
    except ValidationError as e:
        raise ToolError(f"Generated user is missing fields: {e.error_count()} error(s)") from e


def _json_content(uri: str, payload: Any) -> list[ContentItem]:
    return [ContentItem.text_content(json.dumps(payload), uri=uri, mime_type=JSON_MIME)]


WRITE_HINTS = ToolAnnotations(
    read_only_hint=False,
    destructive_hint=False,
    idempotent_hint=False,
    open_world_hint=True,
)


def register_user_capabilities(registry: CapabilityRegistry, store: UserStore) -> CapabilityRegistry:
    """Register the user resources, tools and prompt on a registry.

    Args:
        registry: Registry to populate
        store: Backing user collection

    Returns:
        The same registry
    """

    @registry.resource(
        "users",
        "users://all",
        "Get all users data from the database",
        mime_type=JSON_MIME,
        title="Users",
    )
    async def read_all_users(uri: str, variables: dict[str, str]) -> list[ContentItem]:
        users = await store.list()
        return _json_content(uri, [u.model_dump() for u in users])

    @registry.resource(
        "user-details",
        "users://{userId}/profile",
        "Get a user's details from the database",
        mime_type=JSON_MIME,
        title="User Details",
    )
    async def read_user_profile(uri: str, variables: dict[str, str]) -> list[ContentItem]:
        try:
            user_id = int(variables["userId"])
        except ValueError:
            return _json_content(uri, USER_NOT_FOUND)
        user = await store.get(user_id)
        if user is None:
            return _json_content(uri, USER_NOT_FOUND)
        return _json_content(uri, user.model_dump())

    @registry.tool(
        "create-user",
        "Create a new user in the database",
        InputSchema.strings("name", "email", "address", "phone"),
        annotations=WRITE_HINTS.model_copy(update={"title": "Create User"}),
    )
    async def create_user(arguments: dict[str, Any], context: ToolContext) -> str:
        try:
            record = await store.append(NewUser.model_validate(arguments))
        except PersistenceFailed as e:
            logger.error(f"create-user failed: {e}")
            raise ToolError("Failed to save user") from e
        return f"User {record.id} created successfully"

    @registry.tool(
        "create-random-user",
        "Create a random user with fake data",
        annotations=WRITE_HINTS.model_copy(update={"title": "Create Random User"}),
    )
    async def create_random_user(arguments: dict[str, Any], context: ToolContext) -> str:
        if context.sampling is None:
            raise ToolError("Failed to generate user data")
        try:
            text = await context.sampling.generate_text(
                RANDOM_USER_PROMPT, max_tokens=RANDOM_USER_MAX_TOKENS
            )
            new_user = parse_generated_user(text)
        except (GenerationFailed, RequestTimeout, ToolError) as e:
            logger.warning(f"create-random-user: {e}")
            raise ToolError("Failed to generate user data") from e

        try:
            record = await store.append(new_user)
        except PersistenceFailed as e:
            logger.error(f"create-random-user failed to save: {e}")
            raise ToolError("Failed to save user") from e
        return f"User {record.id} created successfully"

    @registry.prompt(
        "generate-fake-user",
        "Generate a fake user based on a given name",
        [PromptArgument("name", "Name of the fake user")],
    )
    def generate_fake_user(arguments: dict[str, Any]) -> list[PromptMessage]:
        return [
            PromptMessage.user(
                f"Generate a fake user with the name {arguments['name']}. "
                "The user should have a realistic email, address, and phone number."
            )
        ]

    return registry


def build_registry(store: UserStore) -> CapabilityRegistry:
    """Build the host's registry at startup."""
    return register_user_capabilities(CapabilityRegistry(), store)
