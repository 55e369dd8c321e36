"""Thumbnail/full-size asset pipeline for a static photo portfolio."""


from typing import TYPE_CHECKING, Any

__all__ = ["AppConfig", "Pipeline", "classify", "load_config"]

if TYPE_CHECKING:  # pragma: no cover - for static type checkers only
    from .config import AppConfig, load_config
    from .naming import classify
    from .pipeline import Pipeline


def __getattr__(name: str) -> Any:
    if name in ("AppConfig", "load_config"):
        from . import config as _config

        value = getattr(_config, name)
    elif name == "classify":
        from .naming import classify as value
    elif name == "Pipeline":
        from .pipeline import Pipeline as value
    else:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    globals()[name] = value
    return value
