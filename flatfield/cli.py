import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .core.errors import ConfigError
from .core.flattener import SEPARATOR, Flattener, create_keyed_value
from .core.loader import (
    discover_parser_plugins,
    discover_sink_plugins,
    select_sink_plugins,
)
from .core.models import DEFAULT_DEPTH_LIMIT, DEFAULT_ROOT_FIELD, FlattenerConfig
from .core.reporting import Reporter
from .core.scanner import DirectoryScanner, SingleFileScanner, configure_logging
from .core.utils import DEFAULT_MAX_BYTES


def _add_flattener_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--root-field", default=DEFAULT_ROOT_FIELD, help=f"Field receiving raw leaf values (default '{DEFAULT_ROOT_FIELD}').")
    p.add_argument("--keyed-field", default=None, help="Field receiving path\\0value keyed values (default '<root-field>._keyed').")
    p.add_argument("--depth-limit", type=int, default=DEFAULT_DEPTH_LIMIT, help=f"Maximum object nesting depth (default {DEFAULT_DEPTH_LIMIT}).")
    p.add_argument("--ignore-above", type=int, default=None, help="Drop leaf values longer than this many characters (default: keep all).")
    p.add_argument("--null-value", default=None, help="Index JSON null leaves as this string (default: skip nulls).")


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="flatfield",
        description="Flatten JSON/YAML documents into root and keyed index fields.",
    )
    sub = p.add_subparsers(dest="mode", required=True)

    # dir mode
    d = sub.add_parser("dir", help="Flatten every document under a directory.")
    d.add_argument("path", type=Path, help="Directory to walk recursively.")
    d.add_argument("--sink", default="fields", help="Comma-delimited sinks to activate (e.g., 'fields,terms') or 'all'.")
    d.add_argument("--out", type=Path, default=Path("./flatfield_output"), help="Output directory.")
    d.add_argument("--workers", type=int, default=8, help="Number of worker threads.")
    d.add_argument("--include", default="*", help="Glob(s) to include, comma-separated.")
    d.add_argument("--exclude", default=".git,.venv,node_modules,venv,.tox,.mypy_cache,.pytest_cache,__pycache__", help="Dir names to exclude, comma-separated.")
    d.add_argument("--max-file-size", type=int, default=5_000_000, help="Max file size in bytes to read (default 5MB).")
    d.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    d.add_argument("--verbose", action="store_true", help="Enable verbose logging output.")
    _add_flattener_arguments(d)

    # file mode
    f = sub.add_parser("file", help="Flatten the documents of a single file.")
    f.add_argument("path", type=Path, help="File to flatten.")
    f.add_argument("--sink", default="fields", help="Comma-delimited sinks to activate or 'all'.")
    f.add_argument("--out", type=Path, default=Path("./flatfield_output"), help="Output directory.")
    f.add_argument("--max-file-size", type=int, default=DEFAULT_MAX_BYTES, help="Max file size in bytes to read (default 20MB).")
    f.add_argument("--verbose", action="store_true", help="Enable verbose logging output.")
    _add_flattener_arguments(f)

    # keyed mode
    k = sub.add_parser("keyed", help="Print the keyed value matching KEY and VALUE at query time.")
    k.add_argument("key", help="Dotted path, e.g. 'user.address.city'.")
    k.add_argument("value", help="Leaf value.")
    k.add_argument("--raw", action="store_true", help="Write the separator as a real NUL byte instead of '\\0'.")

    return p


def build_flattener(args: argparse.Namespace) -> Flattener:
    options = dict(
        root_field_name=args.root_field,
        keyed_field_name=args.keyed_field,
        depth_limit=args.depth_limit,
        null_value=args.null_value,
    )
    if args.ignore_above is not None:
        options["ignore_above"] = args.ignore_above
    return Flattener(FlattenerConfig(**options))


def run_dir(args: argparse.Namespace) -> int:
    try:
        flattener = build_flattener(args)
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    sink_plugins = discover_sink_plugins()
    activated = select_sink_plugins(sink_plugins, args.sink)
    if not activated:
        print("No sinks selected. Exiting.", file=sys.stderr)
        return 2

    out_dir = args.out
    out_dir.mkdir(parents=True, exist_ok=True)

    scanner = DirectoryScanner(
        root=args.path,
        parser_plugins=discover_parser_plugins(),
        sink_plugins=activated,
        flattener=flattener,
        include_globs=[g.strip() for g in args.include.split(",") if g.strip()],
        exclude_dirs=[e.strip() for e in args.exclude.split(",") if e.strip()],
        max_file_size=args.max_file_size,
        workers=args.workers,
        logger=configure_logging(verbose=args.verbose),
        verbose=args.verbose,
        show_progress=not args.no_progress,
    )
    scanner.scan()

    Reporter(out_dir).write_all(activated)
    return 0


def run_file(args: argparse.Namespace) -> int:
    try:
        flattener = build_flattener(args)
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    sink_plugins = discover_sink_plugins()
    activated = select_sink_plugins(sink_plugins, args.sink)
    if not activated:
        print("No sinks selected. Exiting.", file=sys.stderr)
        return 2

    out_dir = args.out
    out_dir.mkdir(parents=True, exist_ok=True)

    scanner = SingleFileScanner(
        file_path=args.path,
        parser_plugins=discover_parser_plugins(),
        sink_plugins=activated,
        flattener=flattener,
        max_file_size=args.max_file_size,
        logger=configure_logging(verbose=args.verbose),
        verbose=args.verbose,
    )
    scanner.scan()

    Reporter(out_dir).write_all(activated)
    return 0


def run_keyed(args: argparse.Namespace) -> int:
    keyed = create_keyed_value(args.key, args.value)
    if args.raw:
        sys.stdout.write(keyed + "\n")
    else:
        print(keyed.replace(SEPARATOR, "\\0"))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if args.mode == "dir":
        return run_dir(args)
    elif args.mode == "file":
        return run_file(args)
    elif args.mode == "keyed":
        return run_keyed(args)
    else:
        parser.print_help()
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
