"""Dis extension: periodic register dumps through the logging module.

Logs A, C and D plus the byte under C every ``DIS_TRACE_EVERY`` steps
(default 1000), and logs the final status once the machine halts.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from extensions import DisExtensionError, ExtensionAPI, StepContext

DIS_EXTENSION_NAME = "tracer"
DIS_EXTENSION_API_VERSION = 1

logger = logging.getLogger("dis.ext.tracer")


def _trace_every() -> int:
    raw = os.environ.get("DIS_TRACE_EVERY", "1000")
    try:
        every = int(raw)
    except ValueError:
        raise DisExtensionError(f"DIS_TRACE_EVERY must be an integer, got {raw!r}")
    if every < 1:
        raise DisExtensionError(f"DIS_TRACE_EVERY must be >= 1, got {every}")
    return every


def _dump(machine: Any, ctx: StepContext) -> None:
    logger.info(
        "step %d: %s (%d) -> A=%d C=%d D=%d",
        ctx.step_index,
        ctx.op or "NOP",
        ctx.command,
        ctx.a,
        ctx.c,
        ctx.d,
    )


def _on_halt(machine: Any, status: Any) -> None:
    logger.info("halted after %d steps: %s", machine.steps, status)


def dis_register(ext: ExtensionAPI) -> None:
    ext.every_n_steps(_trace_every(), _dump, name="register_dump")
    ext.on_event("on_halt", _on_halt)
