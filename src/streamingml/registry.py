"""Registry of named models and the schema compatibility guard.

Models are keyed by ``(scope, name)``. The registry is owned by a pipeline
and passed explicitly; there is no process-wide instance.
"""

from __future__ import annotations

import logging
import threading

from streamingml.base import AMRulesConfig, ModelNotTrainedError, SchemaMismatchError
from streamingml.model import AdaptiveModelRulesModel


logger = logging.getLogger(__name__)

ModelKey = tuple[str, str]


def format_key(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


class ModelRegistry:
    """Thread-safe registry of models keyed by scope and name.

    Lookups of existing models do not take the lock; creating a new model
    happens exactly once per key under the lock.

    Example:
        registry = ModelRegistry()
        model = registry.get_or_create("app", "price", feature_count=4)

        # Later, from a prediction site
        model = registry.require_initialized("app", "price")
    """

    def __init__(self) -> None:
        self._models: dict[ModelKey, AdaptiveModelRulesModel] = {}
        self._lock = threading.RLock()

    def get_or_create(
        self,
        scope: str,
        name: str,
        feature_count: int,
        config: AMRulesConfig | None = None,
    ) -> AdaptiveModelRulesModel:
        """Return the model for a key, creating it on first use.

        Args:
            scope: Owning pipeline scope
            name: Model name
            feature_count: Number of features the caller declares
            config: Hyperparameters used when the model is created

        Raises:
            InvalidHyperparameterError: If feature_count is below one
            SchemaMismatchError: If the model exists with another feature count
        """
        key = (scope, name)
        model = self._models.get(key)
        if model is None:
            with self._lock:
                model = self._models.get(key)
                if model is None:
                    model = AdaptiveModelRulesModel(
                        name, feature_count, config=config, scope=scope
                    )
                    self._models[key] = model
                    logger.info(
                        "Created model %s with %d features",
                        model.key,
                        feature_count,
                    )
                    return model
        self._check_compatible(model, feature_count)
        return model

    @staticmethod
    def _check_compatible(model: AdaptiveModelRulesModel, feature_count: int) -> None:
        if not model.is_valid_stream_header(feature_count):
            raise SchemaMismatchError(
                f"Model [{model.key}] expects {model.feature_count} features, "
                f"but {feature_count} features were given",
                model_name=model.key,
                expected=model.feature_count,
                found=feature_count,
            )

    def get(self, scope: str, name: str) -> AdaptiveModelRulesModel:
        """Get a model by key.

        Raises:
            KeyError: If no model exists for the key
        """
        try:
            return self._models[(scope, name)]
        except KeyError:
            raise KeyError(
                f"Model '{format_key(scope, name)}' not found. "
                f"Available: {[format_key(*k) for k in self.list_models()]}"
            ) from None

    def require_initialized(self, scope: str, name: str) -> AdaptiveModelRulesModel:
        """Get a model that has been trained at least once.

        Raises:
            ModelNotTrainedError: If the model is missing or untrained
        """
        key = format_key(scope, name)
        model = self._models.get((scope, name))
        if model is None or not model.is_initialized:
            raise ModelNotTrainedError(
                f"Model [{key}] needs to be trained before it can predict",
                model_name=key,
            )
        return model

    def contains(self, scope: str, name: str) -> bool:
        return (scope, name) in self._models

    def list_models(self, scope: str | None = None) -> list[ModelKey]:
        with self._lock:
            return [k for k in self._models if scope is None or k[0] == scope]

    def remove(self, scope: str, name: str) -> bool:
        """Drop a model. Returns whether it existed."""
        with self._lock:
            return self._models.pop((scope, name), None) is not None

    def close_scope(self, scope: str) -> int:
        """Drop every model of a scope and return how many were dropped."""
        with self._lock:
            keys = [k for k in self._models if k[0] == scope]
            for key in keys:
                del self._models[key]
        if keys:
            logger.info("Closed scope %s (%d models)", scope, len(keys))
        return len(keys)

    def close(self) -> None:
        """Drop every model."""
        with self._lock:
            self._models.clear()

    clear = close

    def __contains__(self, key: ModelKey) -> bool:
        return key in self._models

    def __len__(self) -> int:
        return len(self._models)
