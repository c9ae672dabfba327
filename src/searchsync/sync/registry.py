"""Registration of syncable record types and their hook options."""

import structlog
from pydantic import BaseModel

from searchsync.errors import UnknownRecordClass
from searchsync.store.schemas import SyncableRecord

logger = structlog.get_logger()


class HookOptions(BaseModel):
    """Lifecycle hook wiring for one record class.

    Attributes:
        auto_index_on_save: Index records after create/update.
        auto_remove_on_delete: Remove records from the index after delete.
            Disabling this lets orphans accumulate.
    """

    auto_index_on_save: bool = True
    auto_remove_on_delete: bool = True


class RegisteredClass:
    """A record type known to the engine.

    Attributes:
        model: Record type implementing the Syncable contract.
        hooks: Lifecycle hook options for the type.
    """

    def __init__(self, model: type[SyncableRecord], hooks: HookOptions) -> None:
        self.model = model
        self.hooks = hooks

    @property
    def record_class(self) -> str:
        """Class tag of the registered model."""
        return self.model.record_class


class SyncRegistry:
    """Startup-time catalogue of syncable record classes.

    A class tag is either registered or it is not; the engine rejects
    every operation on unregistered tags.
    """

    def __init__(self) -> None:
        self._classes: dict[str, RegisteredClass] = {}

    def register(
        self,
        model: type[SyncableRecord],
        hooks: HookOptions | None = None,
    ) -> RegisteredClass:
        """Register a record type.

        Registering the same tag twice replaces the earlier entry.

        Args:
            model: Record type with a non-empty ``record_class`` tag.
            hooks: Hook options, defaults to indexing and removal enabled.

        Returns:
            The registry entry.

        Raises:
            ValueError: If the model has no class tag.
        """
        if not model.record_class:
            raise ValueError(f"{model.__name__} has no record_class tag")

        entry = RegisteredClass(model, hooks or HookOptions())
        self._classes[model.record_class] = entry

        if not entry.hooks.auto_remove_on_delete:
            logger.warning("auto_remove_disabled", record_class=model.record_class)
        logger.debug(
            "record_class_registered",
            record_class=model.record_class,
            auto_index=entry.hooks.auto_index_on_save,
            auto_remove=entry.hooks.auto_remove_on_delete,
        )
        return entry

    def is_syncable(self, record_class: str) -> bool:
        """Whether a class tag has been registered."""
        return record_class in self._classes

    def get(self, record_class: str) -> RegisteredClass:
        """Look up a registered class.

        Raises:
            UnknownRecordClass: If the tag is not registered.
        """
        try:
            return self._classes[record_class]
        except KeyError:
            raise UnknownRecordClass(record_class) from None

    @property
    def record_classes(self) -> list[str]:
        """Registered class tags in registration order."""
        return list(self._classes)
