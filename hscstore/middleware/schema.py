"""
hscstore Schema Middleware - Synchronous Field Checks
=====================================================

Validates the would-be next state before a write reaches the layers below.
Each field may declare a required flag, an expected type and a custom predicate.

In the default (lenient) mode violations are reported through ``on_error`` and
the write still goes through. In strict mode the write is dropped.

```python
schema_middleware(
    schema={
        "count": FieldRule(type=int, validate=lambda v: v >= 0),
        "name": FieldRule(required=True, type=str),
    },
    on_error=lambda errors: print(errors),
    strict=True,
)
```
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, Union

from ..exceptions import ValidationError
from ..types import Creator, Middleware, PartialOrUpdater, State, StoreApi

logger = logging.getLogger(__name__)

SCHEMA_KEY = "_schema"


@dataclass(frozen=True)
class FieldRule:
    required: bool = False
    type: Optional[Union[Type, Tuple[Type, ...]]] = None
    validate: Optional[Callable[[Any], bool]] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class FieldError:
    key: str
    message: str


def validate_state(state: Mapping[str, Any], schema: Mapping[str, FieldRule]) -> List[FieldError]:
    """Check ``state`` against ``schema`` and return every violation found."""
    errors: List[FieldError] = []
    for key, rule in schema.items():
        value = state.get(key)

        if value is None:
            if rule.required:
                errors.append(FieldError(key, rule.error_message or f"{key} is required"))
            continue

        if rule.type is not None and not _is_instance(value, rule.type):
            expected = _type_name(rule.type)
            errors.append(
                FieldError(
                    key,
                    rule.error_message
                    or f"{key} should be of type {expected}, got {type(value).__name__}",
                )
            )
            continue

        if rule.validate is None:
            continue
        try:
            valid = rule.validate(value)
        except Exception as e:
            logger.debug(f"Validator of '{key}' raised: {e!r}")
            errors.append(
                FieldError(key, rule.error_message or f"{key} validator raised {type(e).__name__}: {e}")
            )
            continue
        if not valid:
            errors.append(FieldError(key, rule.error_message or f"{key} validation failed"))

    return errors


def _is_instance(value: Any, expected) -> bool:
    # bool is an int subclass, but a flag is not a count
    if isinstance(value, bool):
        types = expected if isinstance(expected, tuple) else (expected,)
        return bool in types
    return isinstance(value, expected)


def _type_name(expected) -> str:
    if isinstance(expected, tuple):
        return " | ".join(t.__name__ for t in expected)
    return expected.__name__


class SchemaValidator:
    """Exposed under ``_schema``; validates the live state on demand."""

    def __init__(self, api: StoreApi, schema: Mapping[str, FieldRule]):
        self._api = api
        self._schema: Dict[str, FieldRule] = dict(schema)

    def get_schema(self) -> Dict[str, FieldRule]:
        return dict(self._schema)

    def validate_state(self) -> List[FieldError]:
        return validate_state(self._api.get_state() or {}, self._schema)


def schema_middleware(
    schema: Mapping[str, FieldRule],
    on_error: Optional[Callable[[List[FieldError]], None]] = None,
    strict: bool = False,
) -> Middleware:
    """
    Create a middleware validating every write against ``schema``.

    Args:
        schema: Field name -> rule.
        on_error: Called with the list of violations whenever a check fails.
        strict: Drop writes that fail validation instead of applying them.
    """

    def report(errors: List[FieldError]) -> None:
        if on_error is not None:
            on_error(errors)
        else:
            logger.warning(str(ValidationError(errors)))

    def middleware(creator: Creator) -> Creator:
        def create(api: StoreApi) -> State:
            def validate_and_set(partial: PartialOrUpdater) -> None:
                current = api.get_state() or {}
                update = partial(current) if callable(partial) else partial
                if update is None:
                    return
                errors = validate_state({**current, **update}, schema)
                if errors:
                    report(errors)
                    if strict:
                        return
                api.set_state(update)

            state = creator(api.with_set_state(validate_and_set))

            initial_errors = validate_state(state, schema)
            if initial_errors:
                report(initial_errors)

            return {**state, SCHEMA_KEY: SchemaValidator(api, schema)}

        return create

    return middleware
