"""The Dis virtual machine: three registers and one memory for code and data."""
from __future__ import annotations
import json
import logging
import sys
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from extensions import HookRegistry, RuntimeServices, StepContext
from lexer import SYMBOLS, DisError
from ring import DEFAULT_RING, Ring

logger = logging.getLogger(__name__)


class DisRuntimeError(DisError):
    """Raised for host-side faults: a bad memory image or a failing hook."""


class StatusKind(Enum):
    RUNNING = "running"
    HALTED_BY_HALT_COMMAND = "haltedByHaltCommand"
    HALTED_BY_EOF_WRITE = "haltedByEofWrite"
    NO_IO_INFINITE_LOOP = "noIoInfiniteLoop"
    WRITE_ERROR = "writeError"
    READ_ERROR = "readError"


@dataclass(frozen=True)
class VmStatus:
    kind: StatusKind
    cause: Optional[BaseException] = None

    @property
    def is_running(self) -> bool:
        return self.kind is StatusKind.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.kind is not StatusKind.RUNNING

    @property
    def is_error(self) -> bool:
        return self.kind in (StatusKind.WRITE_ERROR, StatusKind.READ_ERROR)

    @classmethod
    def write_error(cls, cause: BaseException) -> "VmStatus":
        return cls(StatusKind.WRITE_ERROR, cause)

    @classmethod
    def read_error(cls, cause: BaseException) -> "VmStatus":
        return cls(StatusKind.READ_ERROR, cause)

    def __str__(self) -> str:
        if self.cause is None:
            return self.kind.value
        return f"{self.kind.value}({self.cause.__class__.__name__}: {self.cause})"


RUNNING = VmStatus(StatusKind.RUNNING)
HALTED_BY_HALT_COMMAND = VmStatus(StatusKind.HALTED_BY_HALT_COMMAND)
HALTED_BY_EOF_WRITE = VmStatus(StatusKind.HALTED_BY_EOF_WRITE)
NO_IO_INFINITE_LOOP = VmStatus(StatusKind.NO_IO_INFINITE_LOOP)


# Command byte -> instruction tag. '_' decodes to no operation, as does
# every byte that is not listed.
OPCODES: Dict[int, Optional[str]] = {
    ord(ch): (None if name == "NOP" else name) for ch, name in SYMBOLS.items()
}


def decode(command: int) -> Optional[str]:
    return OPCODES.get(command)


InputProvider = Callable[[], Optional[int]]
OutputSink = Callable[[int], None]


def stdin_byte_reader(stream: Any = None) -> InputProvider:
    def _read() -> int:
        source = stream if stream is not None else sys.stdin.buffer
        chunk = source.read(1)
        if not chunk:
            raise EOFError("end of input")
        return chunk[0]

    return _read


def stdout_byte_writer(stream: Any = None) -> OutputSink:
    def _write(value: int) -> None:
        sink = stream if stream is not None else sys.stdout.buffer
        sink.write(bytes((value,)))
        sink.flush()

    return _write


@dataclass
class TraceEntry:
    step_index: int
    state_id: str
    c: int
    d: int
    a: int
    command: int
    op: Optional[str]


class TraceLogger:
    def __init__(self, depth: int) -> None:
        self.depth = depth
        self.entries: Deque[TraceEntry] = deque(maxlen=depth if depth > 0 else 0)

    @property
    def enabled(self) -> bool:
        return self.depth > 0

    def record(self, *, step_index: int, c: int, d: int, a: int, command: int, op: Optional[str]) -> TraceEntry:
        entry = TraceEntry(
            step_index=step_index,
            state_id=f"s_{step_index:06d}",
            c=c,
            d=d,
            a=a,
            command=command,
            op=op,
        )
        self.entries.append(entry)
        return entry


class Machine:
    def __init__(
        self,
        *,
        ring: Ring = DEFAULT_RING,
        input_provider: Optional[InputProvider] = None,
        output_sink: Optional[OutputSink] = None,
        trace_depth: int = 0,
        idle_limit: Optional[int] = None,
        services: Optional[RuntimeServices] = None,
    ) -> None:
        if idle_limit is not None and idle_limit < 1:
            raise DisRuntimeError(f"idle_limit must be >= 1, got {idle_limit}")
        self.ring = ring
        self.input_provider = input_provider or stdin_byte_reader()
        self.output_sink = output_sink or stdout_byte_writer()
        self.services = services or RuntimeServices()
        self.hook_registry: HookRegistry = self.services.hook_registry

        # Accumulator, program counter, data pointer.
        self.a: int = 0
        self.c: int = 0
        self.d: int = 0
        self.memory: NDArray[Any] = ring.zeros()
        self.status: VmStatus = RUNNING

        self.steps: int = 0
        self.idle_limit = idle_limit
        self.idle_steps: int = 0
        self.logger = TraceLogger(trace_depth)

        self._handlers: Dict[str, Callable[[], bool]] = {
            "HALT": self._halt,
            "LOAD": self._load,
            "ROT": self._rot,
            "JMP": self._jmp,
            "WRITE": self._write,
            "OPR": self._opr,
            "READ": self._read,
        }

    def load(self, image: Sequence[int]) -> None:
        """Replace memory with ``image`` (zero-filled) and start over.

        Registers, status, step counters and the trace are reset, so a
        machine that already halted can run a fresh image.
        """
        ring = self.ring
        values = [int(value) for value in image]
        if len(values) > ring.END:
            raise DisRuntimeError(f"Memory image has {len(values)} cells; at most {ring.END} fit")
        for index, value in enumerate(values):
            if not ring.is_valid(value):
                raise DisRuntimeError(f"Memory image cell {index} holds {value}, outside [0, {ring.MAX}]")
        self.memory = ring.zeros()
        self.memory[: len(values)] = np.asarray(values, dtype=ring.dtype)
        self.a = self.c = self.d = 0
        self.status = RUNNING
        self.steps = 0
        self.idle_steps = 0
        self.logger.entries.clear()

    def step(self) -> VmStatus:
        if self.status.is_terminal:
            return self.status
        ring = self.ring
        c, d = self.c, self.d
        command = int(self.memory[c])
        op = decode(command)
        step_index = self.steps
        self.steps += 1
        transferred = False
        if op is not None:
            transferred = self._handlers[op]()

        if self.logger.enabled:
            self.logger.record(step_index=step_index, c=c, d=d, a=self.a, command=command, op=op)

        if transferred:
            self.idle_steps = 0
        else:
            self.idle_steps += 1

        if self.status.is_running:
            if self.idle_limit is not None and self.idle_steps >= self.idle_limit:
                self._set_status(NO_IO_INFINITE_LOOP)
            else:
                self.c = ring.successor(self.c)
                self.d = ring.successor(self.d)

        if self.hook_registry.has_step_rules():
            ctx = StepContext(step_index=step_index, command=command, op=op, a=self.a, c=self.c, d=self.d)
            try:
                self.hook_registry.after_step(self, ctx)
            except DisRuntimeError:
                raise
            except Exception as exc:
                raise DisRuntimeError(f"Extension step rule failed: {exc}") from exc
        return self.status

    def run(self, max_steps: Optional[int] = None) -> VmStatus:
        self._emit_event("program_start", self)
        taken = 0
        while self.status.is_running:
            if max_steps is not None and taken >= max_steps:
                logger.debug("step budget of %d exhausted at C=%d", max_steps, self.c)
                break
            self.step()
            taken += 1
        self._emit_event("program_end", self, self.status)
        return self.status

    def registers(self) -> Dict[str, int]:
        return {"a": self.a, "c": self.c, "d": self.d}

    def _set_status(self, status: VmStatus) -> None:
        self.status = status
        logger.debug("status -> %s after %d steps (C=%d D=%d A=%d)", status, self.steps, self.c, self.d, self.a)
        self._emit_event("on_halt", self, status)

    def _emit_event(self, event: str, *args: Any, **kwargs: Any) -> None:
        try:
            self.hook_registry.emit(event, *args, **kwargs)
        except DisRuntimeError:
            raise
        except Exception as exc:
            raise DisRuntimeError(f"Extension hook '{event}' failed: {exc}") from exc

    # ---- instructions ----
    # Each returns True when a byte actually crossed an I/O channel.

    def _store(self, z: int) -> None:
        self.a = z
        self.memory[self.d] = z

    def _halt(self) -> bool:
        self._set_status(HALTED_BY_HALT_COMMAND)
        return False

    def _load(self) -> bool:
        self.d = int(self.memory[self.d])
        return False

    def _rot(self) -> bool:
        self._store(self.ring.rotate_right(int(self.memory[self.d])))
        return False

    def _jmp(self) -> bool:
        self.c = int(self.memory[self.d])
        return False

    def _opr(self) -> bool:
        self._store(self.ring.digit_subtract(self.a, int(self.memory[self.d])))
        return False

    def _write(self) -> bool:
        if self.a == self.ring.MAX:
            self._set_status(HALTED_BY_EOF_WRITE)
            return False
        try:
            self.output_sink(self.a % 256)
        except Exception as exc:
            logger.warning("write failed at C=%d: %s", self.c, exc)
            self._set_status(VmStatus.write_error(exc))
            return False
        return True

    def _read(self) -> bool:
        try:
            value = self.input_provider()
        except EOFError:
            value = None
        except Exception as exc:
            logger.warning("read failed at C=%d: %s", self.c, exc)
            self.a = self.ring.MAX
            self._set_status(VmStatus.read_error(exc))
            return False
        if value is None:
            self.a = self.ring.MAX
            return False
        self.a = self.ring.reduce(value)
        return True


class StatusFormatter:
    def __init__(self, machine: Machine) -> None:
        self.machine = machine

    def format_text(self, verbose: bool = False) -> str:
        machine = self.machine
        lines = ["Trace (most recent step last):"]
        if not machine.logger.entries:
            lines.append("  <no trace recorded>")
        for entry in machine.logger.entries:
            symbol = chr(entry.command) if entry.command in OPCODES else "?"
            lines.append(
                f"  {entry.state_id}  C={entry.c} D={entry.d} A={entry.a}  {symbol!r} ({entry.command}) {entry.op or 'NOP'}"
            )
        if verbose:
            regs = ", ".join(f"{k.upper()}={v}" for k, v in machine.registers().items())
            lines.append(f"  Registers: {regs}  Steps: {machine.steps}")
        lines.append(f"VmStatus: {machine.status}")
        return "\n".join(lines)

    def to_json(self) -> str:
        machine = self.machine
        status = machine.status
        trace: List[Dict[str, Any]] = [
            {
                "step_index": entry.step_index,
                "state_id": entry.state_id,
                "c": entry.c,
                "d": entry.d,
                "a": entry.a,
                "command": entry.command,
                "op": entry.op,
            }
            for entry in machine.logger.entries
        ]
        data = {
            "status": {
                "kind": status.kind.value,
                "cause": None if status.cause is None else f"{status.cause.__class__.__name__}: {status.cause}",
            },
            "registers": machine.registers(),
            "steps": machine.steps,
            "trace": trace,
        }
        return json.dumps(data, indent=2)
