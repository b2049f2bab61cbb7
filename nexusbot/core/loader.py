"""
Component loader for pluggable collaborators.

The transport provider and the message handler are external to the
connection core and are named in configuration as ``"package.module:attr"``
references. This module resolves those references at startup.

Responsibilities
----------------
- Parse and import ``module:attr`` references (dotted attrs allowed)
- Validate that the resolved object is callable
- Raise `ConfigurationError` with an actionable suggestion on failure
"""

from __future__ import annotations

import importlib
from typing import Any

from nexusbot.core.exceptions import ConfigurationError
from nexusbot.core.logging.logger import get_logger

logger = get_logger(__name__)


_SUGGESTIONS = {
    "ModuleNotFoundError": "Check that the package is installed and the module path is correct.",
    "ImportError": "Check that all dependencies of the module are installed.",
    "AttributeError": "Verify the attribute after ':' exists in the module.",
    "ValueError": "Use the form 'package.module:attribute'.",
}


def load_object(reference: str, *, config_key: str) -> Any:
    """
    Import and return the object named by ``reference``.

    Parameters
    ----------
    reference:
        ``"package.module:attribute"``; the attribute part may be dotted
        (``"pkg.mod:Factory.create"``).
    config_key:
        Configuration key the reference came from, used in errors.

    Raises
    ------
    ConfigurationError
        If the reference is malformed, cannot be imported, or is not callable.
    """
    try:
        module_name, sep, attr_path = reference.partition(":")
        if not sep or not module_name or not attr_path:
            raise ValueError(f"'{reference}' is not of the form 'package.module:attribute'")

        target: Any = importlib.import_module(module_name)
        for part in attr_path.split("."):
            target = getattr(target, part)

    except (ImportError, AttributeError, ValueError) as exc:
        suggestion = _SUGGESTIONS.get(type(exc).__name__, "Check the configured reference.")
        logger.error(
            "Failed to load configured component",
            extra={
                "config_key": config_key,
                "reference": reference,
                "error": str(exc),
                "error_type": type(exc).__name__,
                "suggestion": suggestion,
            },
        )
        raise ConfigurationError(config_key, f"{exc}. {suggestion}") from exc

    if not callable(target):
        raise ConfigurationError(config_key, f"'{reference}' is not callable")

    logger.debug(
        "Loaded configured component",
        extra={"config_key": config_key, "reference": reference},
    )
    return target
