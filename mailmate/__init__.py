"""MailMate - multi-account mail classification and aggregation"""

from __future__ import annotations

__version__ = "1.0.0"


def __getattr__(name: str):
    """
    Lazy imports so lightweight modules can be imported without the Google stack.
    """
    if name == "MailPipeline":
        from mailmate.pipeline.service import MailPipeline

        return MailPipeline
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["MailPipeline", "__version__"]
