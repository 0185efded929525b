"""
premium_engines.tracer -- PREMIUM_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` wraps an engine function and emits one structured
    record per call: engine name and version, a fingerprint of selected
    inputs, the outcome, and the wall time spent.

Architecture position:
    Engines -- infrastructure support for the calculation layer.  Logs
    under ``premium_kernel.engines.tracer`` so tracing can be switched off
    (see ``premium_config.apply_logging``) without silencing the engines.

Invariants enforced:
    - The fingerprint depends only on the values of the named arguments,
      never on how they were passed (positionally or by keyword).
    - The wrapped function's result and exceptions pass through unchanged.

Failure modes:
    - A fingerprint field the call does not bind is hashed as ``null``.
    - Values of unknown types are hashed through ``str()``.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any

_logger = logging.getLogger("premium_kernel.engines.tracer")

TRACE_MESSAGE = "PREMIUM_ENGINE_TRACE"


@functools.singledispatch
def _canonical(value: Any) -> str:
    return str(value)


@_canonical.register(type(None))
def _(value) -> str:
    return "null"


@_canonical.register(Enum)
def _(value) -> str:
    return f"{type(value).__name__}.{value.name}"


@_canonical.register(datetime)
def _(value) -> str:
    return value.isoformat()


@_canonical.register(dict)
def _(value) -> str:
    return "{" + ",".join(f"{k}:{_canonical(v)}" for k, v in sorted(value.items())) + "}"


@_canonical.register(list)
@_canonical.register(tuple)
def _(value) -> str:
    return "[" + ",".join(_canonical(v) for v in value) + "]"


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-char SHA-256 prefix over ``field=value`` pairs of the named fields."""
    digest = hashlib.sha256()
    for name in fingerprint_fields:
        digest.update(f"{name}={_canonical(arguments.get(name))}|".encode())
    return digest.hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorate an engine function with PREMIUM_ENGINE_TRACE logging.

    Args:
        engine_name: Engine identifier, e.g. ``"allocation"``.
        engine_version: Version of the engine's rules, e.g. ``"1.0"``.
        fingerprint_fields: Parameter names whose values go into the
            input fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            outcome = "ok"
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                outcome = getattr(exc, "code", type(exc).__name__)
                raise
            finally:
                _logger.info(TRACE_MESSAGE, extra={
                    "trace_type": TRACE_MESSAGE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "outcome": outcome,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                    "function": func.__qualname__,
                })

        return wrapper

    return decorator
