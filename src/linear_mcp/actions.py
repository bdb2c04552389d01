"""Schema-validated actions.

An action binds a name, a description and an input schema to an async
handler ``(context, args) -> result``. ``execute`` validates untrusted input
first and never lets a validation or handler failure escape as an exception:
it always returns ``Ok(value)`` or ``Err(SafeError)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from .errors import HANDLER_ERROR, SafeError, validation_error
from .results import Err, Ok, Result
from .schema import validate_arguments

logger = logging.getLogger(__name__)

C = TypeVar("C")

Handler = Callable[[C, Any], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class ActionMeta:
    """Static metadata describing an action.

    ``args_type`` (optional) is called with the validated mapping as keyword
    arguments, so handlers receive a typed value instead of a dict.
    """

    name: str
    description: str
    input_schema: dict[str, Any]
    args_type: Callable[..., Any] | None = None


@dataclass(frozen=True, slots=True)
class Action(Generic[C]):
    """An action bound to its context."""

    meta: ActionMeta
    context: C
    handler: Handler

    @property
    def name(self) -> str:
        return self.meta.name

    @property
    def description(self) -> str:
        return self.meta.description

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.meta.input_schema

    def _typed(self, validated: Any) -> Any:
        if self.meta.args_type is None:
            return validated
        return self.meta.args_type(**validated)

    async def execute(self, raw_args: Any) -> Result[Any, SafeError]:
        """Validate ``raw_args`` and run the handler."""
        checked = validate_arguments(self.meta.input_schema, raw_args)
        if isinstance(checked, Err):
            logger.info("Action %s rejected %s invalid field(s)", self.name, len(checked.error))
            return Err(validation_error(checked.error))

        try:
            args = self._typed(checked.value)
            value = await self.handler(self.context, args)
        except SafeError as err:
            logger.warning("Action %s failed: %s", self.name, err.message)
            return Err(err)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.exception("Action %s raised an unexpected error", self.name)
            return Err(SafeError(code=HANDLER_ERROR, message=str(exc) or "Action failed"))

        return Ok(value)


def create_action(meta: ActionMeta, context: C, handler: Handler) -> Action[C]:
    """Create an action with the given metadata, context and handler."""
    return Action(meta=meta, context=context, handler=handler)
