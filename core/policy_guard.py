from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Tuple

from core.errors import ConfigurationError
from core.values import deep_equal
from records.models import SYSTEM_FIELD_UPDATED, is_system_field

FollowUpAction = Callable[[Any], Any]


def is_follow_up_action(arg: Any) -> bool:
    """True for callables that can be invoked with a single update context."""

    if isinstance(arg, (str, bytes, type)) or not callable(arg):
        return False
    try:
        signature = inspect.signature(arg)
    except (TypeError, ValueError):
        # builtins without introspectable signatures
        return True
    try:
        signature.bind(None)
    except TypeError:
        return False
    return True


@dataclass(frozen=True)
class ProtectionPolicy:
    """Which attributes of a record may not change, and what runs after a commit.

    An empty ``protected`` tuple means every non-system attribute is protected.
    ``config_error`` holds a setup problem found while parsing; it is raised
    when the policy is evaluated, not when it is built.
    """

    protected: Tuple[str, ...] = ()
    on_success: Optional[FollowUpAction] = None
    config_error: Optional[str] = None

    @classmethod
    def of(cls, names: Iterable[str] = (), on_success: Optional[FollowUpAction] = None) -> "ProtectionPolicy":
        if isinstance(names, (str, bytes)):
            raise ConfigurationError(f"field names must be a collection of strings, not a bare {type(names).__name__}")
        names = tuple(names)
        for position, name in enumerate(names):
            if not isinstance(name, str):
                raise ConfigurationError(
                    f"invalid field name type {type(name).__name__} at position {position}"
                )
        if on_success is not None and not is_follow_up_action(on_success):
            raise ConfigurationError(f"invalid callback type {type(on_success).__name__}")
        return cls(protected=names, on_success=on_success)

    @property
    def protects_all(self) -> bool:
        return not self.protected

    def raise_for_config(self) -> None:
        if self.config_error is not None:
            raise ConfigurationError(f"make_immutable setup error: {self.config_error}")

    def effective_fields(self, schema_fields: Iterable[str]) -> List[str]:
        if self.protected:
            return list(self.protected)
        return [name for name in schema_fields if not is_system_field(name)]

    def first_changed_field(self, original, proposed, fields: Iterable[str]) -> Optional[str]:
        """Return the first protected field whose value differs, or None."""

        for name in fields:
            if deep_equal(original.get(name), proposed.get(name)):
                continue
            if name == SYSTEM_FIELD_UPDATED:
                continue
            return name
        return None


def parse_policy(*args: Any) -> ProtectionPolicy:
    """Build a policy from field names and at most one follow-up callable.

    Usage::

        parse_policy("name", "sku")          # only these fields
        parse_policy("name", notify)         # one field plus a callback
        parse_policy(notify)                 # all user fields plus a callback
        parse_policy()                       # all user fields
    """

    names: List[str] = []
    on_success: Optional[FollowUpAction] = None
    error: Optional[str] = None

    for position, arg in enumerate(args):
        if isinstance(arg, str):
            names.append(arg)
        elif is_follow_up_action(arg):
            if on_success is not None:
                error = "only one callback function can be provided"
                break
            on_success = arg
        else:
            error = f"invalid argument type {type(arg).__name__} at position {position}"
            break

    return ProtectionPolicy(protected=tuple(names), on_success=on_success, config_error=error)
