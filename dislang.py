"""Dis entry point: load a program, wire stdin/stdout, run to a halt."""
from __future__ import annotations
import argparse
import logging
import sys
from typing import List, Optional

from extensions import DisExtensionError, load_runtime_services
from lexer import DisParseError, assemble
from ring import DEFAULT_RING, DisConfigError, Ring
from vm import DisRuntimeError, Machine, StatusFormatter, StatusKind

logger = logging.getLogger("dislang")

EXIT_CODES = {
    StatusKind.HALTED_BY_HALT_COMMAND: 0,
    StatusKind.HALTED_BY_EOF_WRITE: 0,
    StatusKind.READ_ERROR: 1,
    StatusKind.WRITE_ERROR: 1,
    StatusKind.NO_IO_INFINITE_LOOP: 2,
    StatusKind.RUNNING: 3,
}

TRACE_DEPTH = 16


def _build_ring(args: argparse.Namespace) -> Ring:
    if args.base is None and args.digits is None and args.dtype is None:
        return DEFAULT_RING
    return Ring(
        args.dtype or DEFAULT_RING.dtype,
        DEFAULT_RING.base if args.base is None else args.base,
        DEFAULT_RING.digits if args.digits is None else args.digits,
    )


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Dis reference interpreter")
    parser.add_argument("program", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Log machine activity and keep a step trace")
    parser.add_argument("-k", "--idle-limit", dest="idle_limit", type=int, default=None, metavar="STEPS", help="Stop with noIoInfiniteLoop after STEPS steps without I/O")
    parser.add_argument("--max-steps", dest="max_steps", type=int, default=None, help="Stop after this many steps even if still running")
    parser.add_argument("--base", type=int, default=None, help="Ring base (default 3)")
    parser.add_argument("--digits", type=int, default=None, help="Digits per cell (default 10)")
    parser.add_argument("--dtype", default=None, help="Unsigned numpy dtype for cells (default uint16)")
    parser.add_argument("--ext", dest="extensions", action="append", default=[], help="Load an extension module (.py); repeatable")
    parser.add_argument("--status-json", action="store_true", help="Also emit a JSON status report")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "rb") as handle:
                raw = handle.read()
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1
        # One character per byte; only ASCII bytes can be commands.
        source_text = raw.decode("latin-1")

    try:
        ring = _build_ring(args)
        services = load_runtime_services(args.extensions)
        image = assemble(source_text, filename, ring)
        try:
            machine = Machine(
                ring=ring,
                trace_depth=TRACE_DEPTH if (args.verbose or args.status_json) else 0,
                idle_limit=args.idle_limit,
                services=services,
            )
        except MemoryError as exc:
            raise DisConfigError(f"cannot allocate {ring.END} cells of {ring.dtype.name} for {ring!r}") from exc
        machine.load(image)
        logger.debug("loaded %d cells from %s into %r", len(image), filename, ring)
        status = machine.run(max_steps=args.max_steps)
    except DisParseError as error:
        print(f"ParseError: {error}", file=sys.stderr)
        return 1
    except DisConfigError as error:
        print(f"ConfigError: {error}", file=sys.stderr)
        return 1
    except DisExtensionError as error:
        print(f"ExtensionError: {error}", file=sys.stderr)
        return 1
    except DisRuntimeError as error:
        print(f"RuntimeError: {error}", file=sys.stderr)
        return 1

    formatter = StatusFormatter(machine)
    if status.kind not in (StatusKind.HALTED_BY_HALT_COMMAND, StatusKind.HALTED_BY_EOF_WRITE):
        print(formatter.format_text(verbose=args.verbose), file=sys.stderr)
    if args.status_json:
        print(formatter.to_json(), file=sys.stderr)
    return EXIT_CODES[status.kind]


if __name__ == "__main__":
    raise SystemExit(run_cli())
