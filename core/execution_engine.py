from __future__ import annotations

from typing import Any, Callable, Iterable, List, Optional

from core.errors import CommitError, FetchError, FollowUpError, ImmutabilityViolation, PreconditionError
from core.policy_guard import ProtectionPolicy, parse_policy
from records.models import CollectionRef, Record, UpdateContext

FetchSnapshot = Callable[[CollectionRef, str], Any]
ListFieldNames = Callable[[CollectionRef], Iterable[str]]


def _declared_fields(collection: CollectionRef) -> Iterable[str]:
    return collection.fields


class UpdatePipeline:
    """Guards an update in three stages: validate, commit, follow-up.

    ``fetch_snapshot`` and ``list_field_names`` stand in for the persistence
    layer; the commit continuation is passed per update. Nothing here is
    cached between runs, so one pipeline can serve concurrent updates.
    """

    def __init__(
        self,
        policy: ProtectionPolicy,
        *,
        fetch_snapshot: FetchSnapshot,
        list_field_names: Optional[ListFieldNames] = None,
    ) -> None:
        self.policy = policy
        self.fetch_snapshot = fetch_snapshot
        self.list_field_names = list_field_names or _declared_fields

    def run(self, proposed: Optional[Record], commit: Callable[[], Any], *, context: Any = None) -> None:
        self.validate(proposed)
        self.commit(commit)
        self.follow_up(proposed if context is None else context)

    def validate(self, proposed: Optional[Record]) -> None:
        self.policy.raise_for_config()
        self._check_preconditions(proposed)
        original = self._fetch(proposed)
        fields = self._fields_to_check(proposed.collection)
        changed = self.policy.first_changed_field(original, proposed, fields)
        if changed is not None:
            raise ImmutabilityViolation(changed, proposed.id)

    def commit(self, commit: Callable[[], Any]) -> None:
        try:
            commit()
        except Exception as exc:  # noqa: BLE001
            raise CommitError(
                f"failed to commit record changes after immutability checks: {exc}", cause=exc
            ) from exc

    def follow_up(self, context: Any) -> None:
        action = self.policy.on_success
        if action is None:
            return
        try:
            result = action(context)
        except Exception as exc:  # noqa: BLE001
            raise FollowUpError(f"user callback failed AFTER record commit: {exc}", cause=exc) from exc
        if isinstance(result, BaseException):
            raise FollowUpError(f"user callback failed AFTER record commit: {result}", cause=result) from result

    @staticmethod
    def _check_preconditions(proposed: Optional[Record]) -> None:
        if proposed is None:
            raise PreconditionError("Record data is missing in the event.")
        collection = getattr(proposed, "collection", None)
        if collection is None or not getattr(collection, "id", None):
            raise PreconditionError("Record is not attached to a collection.")
        if not getattr(proposed, "id", None):
            raise PreconditionError("Record id is missing in the event.")

    def _fetch(self, proposed: Record) -> Any:
        collection = proposed.collection
        message = (
            f"Failed to fetch original record {proposed.id} from collection "
            f"{collection.name} for immutability check."
        )
        try:
            original = self.fetch_snapshot(collection, proposed.id)
        except Exception as exc:  # noqa: BLE001
            raise FetchError(f"{message} {exc}", cause=exc) from exc
        if original is None:
            raise FetchError(message)
        return original

    def _fields_to_check(self, collection: CollectionRef) -> List[str]:
        if not self.policy.protects_all:
            return list(self.policy.protected)
        try:
            schema_fields = list(self.list_field_names(collection))
        except Exception as exc:  # noqa: BLE001
            raise FetchError(f"Failed to list fields of collection {collection.name}: {exc}", cause=exc) from exc
        return self.policy.effective_fields(schema_fields)


def evaluate(
    policy: ProtectionPolicy,
    proposed: Optional[Record],
    *,
    fetch_snapshot: FetchSnapshot,
    commit: Callable[[], Any],
    list_field_names: Optional[ListFieldNames] = None,
    context: Any = None,
) -> None:
    """Check ``proposed`` against ``policy``, then commit and run the follow-up.

    Raises a ``GuardError`` subclass on failure and returns None otherwise.
    A ``FollowUpError`` means the update was already committed.
    """

    pipeline = UpdatePipeline(policy, fetch_snapshot=fetch_snapshot, list_field_names=list_field_names)
    pipeline.run(proposed, commit, context=context)


def policy_hook(policy: ProtectionPolicy) -> Callable[[UpdateContext], None]:
    """Wrap ``policy`` as an update hook that uses the context's record store."""

    def hook(context: UpdateContext) -> None:
        policy.raise_for_config()
        if context is None or context.record is None:
            raise PreconditionError("Record data is missing in the event.")
        if context.store is None:
            raise PreconditionError("App context is missing in the event.")
        evaluate(
            policy,
            context.record,
            fetch_snapshot=context.store.find_by_id,
            commit=context.next,
            list_field_names=context.store.schema_field_names,
            context=context,
        )

    hook.policy = policy  # type: ignore[attr-defined]
    return hook


def make_immutable(*args: Any) -> Callable[[UpdateContext], None]:
    """Return an update hook that rejects changes to protected fields.

    Accepts field names and at most one callback taking the update context.
    With no field names every non-system field is protected. Argument
    problems are reported when the hook runs.
    """

    return policy_hook(parse_policy(*args))
