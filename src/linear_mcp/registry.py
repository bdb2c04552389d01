"""Action registry and dispatcher.

The registry is built once at startup and only read afterwards, so
``dispatch`` can run concurrently for independent calls.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

from .actions import Action
from .errors import configuration_error, safe_error_to_envelope, unknown_operation_error, validation_error
from .results import Err
from .schema import describe_schema, validate_arguments

logger = logging.getLogger(__name__)

CALL_ENVELOPE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "args": {"type": "object", "default": {}},
    },
    "additionalProperties": False,
}


class ActionRegistry:
    """Maps operation names to actions and routes call envelopes."""

    def __init__(self, actions: Iterable[Action[Any]] = ()) -> None:
        self._actions: dict[str, Action[Any]] = {}
        for action in actions:
            self.register(action)

    def register(self, action: Action[Any]) -> None:
        """Register an action; duplicate names fail immediately."""
        if action.name in self._actions:
            raise configuration_error(f"Duplicate action name: {action.name}")
        self._actions[action.name] = action

    def get(self, name: str) -> Action[Any] | None:
        return self._actions.get(name)

    def names(self) -> list[str]:
        return list(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __len__(self) -> int:
        return len(self._actions)

    def __iter__(self) -> Iterator[Action[Any]]:
        return iter(self._actions.values())

    def list_operations(self) -> dict[str, Any]:
        """Describe every registered action for capability discovery."""
        return {
            "operations": [
                {
                    "name": action.name,
                    "description": action.description,
                    "inputSchema": action.input_schema,
                    "inputSchemaDescription": describe_schema(action.input_schema),
                }
                for action in self._actions.values()
            ]
        }

    async def dispatch(self, call: Any) -> dict[str, Any]:
        """Route a call envelope ``{"name", "args"}`` and return a response envelope.

        Never raises for bad input, unknown names, or handler failures.
        ``asyncio.CancelledError`` is not converted: a cancelled call propagates
        the cancellation to the transport instead of returning an envelope.
        """
        checked = validate_arguments(CALL_ENVELOPE_SCHEMA, call)
        if isinstance(checked, Err):
            return safe_error_to_envelope(validation_error(checked.error))

        name: str = checked.value["name"]
        action = self._actions.get(name)
        if action is None:
            logger.info("Unknown operation requested: %s", name)
            return unknown_operation_error(name, self.names())

        outcome = await action.execute(checked.value["args"])
        if isinstance(outcome, Err):
            return safe_error_to_envelope(outcome.error)
        return {"result": outcome.value}
