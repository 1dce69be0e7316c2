"""Source registry: build listing sources from ``search.sources`` config."""

from __future__ import annotations

import importlib
import inspect
from typing import TYPE_CHECKING, Any, Mapping

from GKWatch.core.errors import SourceConfigError
from GKWatch.sources.base import CallableSource

if TYPE_CHECKING:
    from GKWatch.config import SourceSpec
    from GKWatch.services.search import ListingSource

_BUILTIN_ADAPTERS: dict[str, str] = {
    "http_json": "GKWatch.sources.http:HttpJsonSource",
}


def resolve_adapter(path: str) -> Any:
    """Import the object named by ``module:attr`` (or a builtin alias).

    Raises:
        SourceConfigError: If the path is malformed or cannot be imported.
    """
    target = _BUILTIN_ADAPTERS.get(path, path)
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise SourceConfigError(f"Adapter path must look like 'module:attr', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as error:
        raise SourceConfigError(f"Cannot import adapter module {module_name!r}: {error}") from error
    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as error:
            raise SourceConfigError(f"Adapter {target!r} has no attribute {part!r}") from error
    return obj


def build_source(name: str, adapter: str, options: Mapping[str, Any] | None = None) -> ListingSource:
    """Build one listing source.

    A class (or any factory taking ``name`` plus options) is instantiated;
    a plain function is wrapped in ``CallableSource``.

    Args:
        name: Source name as configured.
        adapter: ``module:attr`` path.
        options: Keyword arguments for the adapter factory.

    Returns:
        ListingSource: Ready-to-use source.

    Raises:
        SourceConfigError: If the adapter cannot be loaded or built.
    """
    obj = resolve_adapter(adapter)
    options = dict(options or {})
    if inspect.isclass(obj):
        try:
            return obj(name, **options)
        except (TypeError, ValueError) as error:
            raise SourceConfigError(f"Cannot build source {name!r} from {adapter!r}: {error}") from error
    if callable(obj):
        if options:
            raise SourceConfigError(f"Function adapter {adapter!r} for source {name!r} does not take options")
        return CallableSource(name=name, func=obj, accepts_options=_accepts_options(obj))
    raise SourceConfigError(f"Adapter {adapter!r} for source {name!r} is not callable")


def build_sources(specs: Mapping[str, SourceSpec]) -> tuple[ListingSource, ...]:
    """Build every configured source in config order, enabled or not."""
    return tuple(build_source(name, spec.adapter, spec.options) for name, spec in specs.items())


def _accepts_options(func: Any) -> bool:
    try:
        params = inspect.signature(func).parameters
    except (TypeError, ValueError):
        return False
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values()):
        return True
    return "strict" in params and "filters" in params
