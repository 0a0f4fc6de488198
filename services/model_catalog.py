"""
Model catalog.
Resolves model ids to descriptors once, when the model list is loaded.
"""
from typing import Iterable, Optional

from models.chat_models import ModelDescriptor
from services.cloud_service import CloudService
from services.model_runtime import LocalModelRuntime
from utils.errors import TransportError, UnknownModelError
from utils.logger import app_logger


class ModelCatalog:
    """Known local and cloud models keyed by id."""

    def __init__(self, descriptors: Iterable[ModelDescriptor] = ()):
        self._models: dict[str, ModelDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: ModelDescriptor) -> None:
        self._models[descriptor.id] = descriptor

    def list(self) -> list[ModelDescriptor]:
        return list(self._models.values())

    def get(self, model_id: str) -> Optional[ModelDescriptor]:
        return self._models.get(model_id)

    def resolve(self, model_id: str) -> ModelDescriptor:
        descriptor = self._models.get(model_id)
        if descriptor is None:
            raise UnknownModelError(f"Unknown model '{model_id}'")
        return descriptor

    async def refresh(self, runtime: LocalModelRuntime, cloud: Optional[CloudService] = None) -> None:
        """
        Reload descriptors from the local runtime and the cloud endpoint.
        A failing source keeps its previously known models.
        """
        loaded: dict[str, ModelDescriptor] = {}
        failed_kinds = set()

        try:
            for descriptor in await runtime.list_models():
                loaded[descriptor.id] = descriptor
        except Exception as e:
            app_logger.error(f"Failed to list local models: {e}")
            failed_kinds.add("local")

        if cloud is not None and cloud.configured:
            try:
                for descriptor in await cloud.fetch_models():
                    loaded[descriptor.id] = descriptor
            except TransportError as e:
                app_logger.error(f"Failed to list cloud models: {e}")
                failed_kinds.add("cloud")

        for descriptor in self._models.values():
            if descriptor.kind in failed_kinds:
                loaded.setdefault(descriptor.id, descriptor)

        self._models = loaded
        app_logger.info(f"Model catalog loaded: {len(self._models)} model(s)")
