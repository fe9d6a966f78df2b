from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping

from core.config_service import ConfigService
from core.errors import FollowUpError, GuardError, ImmutabilityViolation
from core.execution_engine import policy_hook
from core.logger import setup_logger, shorten_value
from core.policy_guard import ProtectionPolicy
from records.models import Record, UpdateContext
from records.store import RecordStore

UpdateHook = Callable[[UpdateContext], None]


class HookRegistry:
    """Dispatches record updates through the hooks bound to their collection.

    Hooks run in registration order. Each hook continues the chain by calling
    ``context.next()``; the end of the chain saves the record to the store.
    """

    def __init__(self, store: RecordStore, *, logger=None) -> None:
        self.store = store
        self.logger = logger
        self._hooks: Dict[str, List[UpdateHook]] = {}

    @classmethod
    def from_config(cls, store: RecordStore, config_service: ConfigService) -> "HookRegistry":
        """Build a registry with logging and per-collection guards taken from ``config_service``."""

        config = config_service.config
        logger = setup_logger(Path(config.app.log_path), level=config.app.log_level)
        registry = cls(store, logger=logger)
        registry.bind_policies(config_service.build_policies())
        registry._log(
            "info",
            "Guards loaded from %s for: %s",
            config_service.active_config_name(),
            ", ".join(sorted(config.collections)) or "-",
        )
        return registry

    def _log(self, level: str, msg: str, *args) -> None:
        if self.logger:
            getattr(self.logger, level)(msg, *args)

    def on_update(self, collection_name: str, hook: UpdateHook) -> UpdateHook:
        self._hooks.setdefault(collection_name, []).append(hook)
        return hook

    def bind_policies(self, policies: Mapping[str, ProtectionPolicy]) -> None:
        for collection_name, policy in policies.items():
            self.on_update(collection_name, policy_hook(policy))

    def hooks_for(self, collection_name: str) -> List[UpdateHook]:
        return list(self._hooks.get(collection_name, []))

    def update(self, record: Record) -> Record:
        hooks = self.hooks_for(record.collection.name) if record.collection else []

        def run(index: int) -> None:
            if index == len(hooks):
                self.store.save(record)
                return
            context = UpdateContext(record=record, store=self.store, proceed=lambda: run(index + 1))
            hooks[index](context)

        try:
            run(0)
        except ImmutabilityViolation as exc:
            self._log("info", "Update rejected: %s", exc.to_dict())
            raise
        except FollowUpError as exc:
            self._log("warning", "Record %s committed but follow-up failed: %s", record.id, exc)
            raise
        except GuardError as exc:
            self._log("error", "Update of record %s failed at %s stage: %s", record.id, exc.stage.value, exc)
            raise
        self._log("debug", "Record %s updated", record.id)
        return record

    def update_by_id(self, collection_name: str, record_id: str, changes: Mapping[str, Any]) -> Record:
        self._log("debug", "Updating %s/%s with %s", collection_name, record_id, shorten_value(dict(changes)))
        collection = self.store.collection(collection_name)
        current = self.store.find_by_id(collection, record_id)
        return self.update(current.merged(changes))
