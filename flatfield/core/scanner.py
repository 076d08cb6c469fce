from __future__ import annotations

import fnmatch
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

try:
    from tqdm import tqdm
except ImportError:  # pragma: no cover - progress bar is optional
    tqdm = None  # type: ignore

from .errors import FlattenError
from .flattener import Flattener
from .models import FlattenedDocument, RejectedDocument
from .utils import DEFAULT_MAX_BYTES
from ..parsers.base import ParserPlugin
from ..sinks.base import SinkPlugin


DEFAULT_LOGGER_NAME = "flatfield"
SLOW_SCAN_THRESHOLD_SECONDS = 2.0


def configure_logging(verbose: bool = False, logger_name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Configure and return the package logger.

    This helper ensures the scanners have a configured logger even in script
    usage where ``logging.basicConfig`` was not called. Set ``verbose`` to
    elevate the log level to INFO.
    """

    logger = logging.getLogger(logger_name)
    level = logging.INFO if verbose else logging.WARNING
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s")
        )
        logger.addHandler(handler)

    return logger


def choose_parser(parser_plugins: Dict[str, ParserPlugin], path: Path) -> Optional[ParserPlugin]:
    ext = path.suffix.lower().lstrip(".")
    for plugin in parser_plugins.values():
        if ext in plugin.SUPPORTED_EXTENSIONS:
            return plugin
    return None


def flatten_file(
    path: Path,
    parser: ParserPlugin,
    flattener: Flattener,
    sink_plugins: Dict[str, SinkPlugin],
    logger: logging.Logger,
    *,
    verbose: bool = False,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> Tuple[int, int]:
    """Flatten every document of ``path`` and feed the results to the sinks.

    A document that fails to flatten is rejected on its own; the rest of the
    file is still processed. Returns ``(flattened, rejected)`` counts.
    """
    flattened = rejected = 0
    errors = (FlattenError,) + tuple(parser.ERRORS)
    for doc in parser.documents(path, max_bytes):
        try:
            fields = flattener.parse(doc.cursor)
            doc.cursor.finish()
        except errors as exc:
            rejection = RejectedDocument(
                file_path=doc.file_path,
                line_num=doc.line_num,
                error=str(exc),
                reason=type(exc).__name__,
            )
            for plugin in sink_plugins.values():
                plugin.process_rejection(rejection)
            rejected += 1
            logger.warning(
                "Rejected document %s:%d (%s): %s",
                doc.file_path,
                doc.line_num,
                rejection.reason,
                exc,
                exc_info=verbose,
            )
            continue

        result = FlattenedDocument(file_path=doc.file_path, line_num=doc.line_num, fields=fields)
        for plugin in sink_plugins.values():
            plugin.process_document(result)
        flattened += 1
    return flattened, rejected


class DirectoryScanner:
    def __init__(
        self,
        root: Path,
        parser_plugins: Dict[str, ParserPlugin],
        sink_plugins: Dict[str, SinkPlugin],
        flattener: Flattener,
        include_globs: List[str],
        exclude_dirs: List[str],
        max_file_size: int = 5_000_000,
        workers: int = 8,
        *,
        logger: Optional[logging.Logger] = None,
        verbose: bool = False,
        show_progress: bool = True,
        progress_desc: str = "Flattening files",
    ) -> None:
        self.root = root
        self.parser_plugins = parser_plugins
        self.sink_plugins = sink_plugins
        self.flattener = flattener
        self.include_globs = include_globs
        self.exclude_dirs = set(exclude_dirs)
        self.max_file_size = max_file_size
        self.workers = workers
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild(self.__class__.__name__.lower())
        self.verbose = verbose
        if verbose:
            self.logger.setLevel(logging.INFO)
        self.show_progress = bool(show_progress)
        self.progress_desc = progress_desc
        self.documents_flattened = 0
        self.documents_rejected = 0
        self._progress_bar = None
        self._progress_lock = threading.Lock()
        self._counts_lock = threading.Lock()
        self._slow_log_threshold = SLOW_SCAN_THRESHOLD_SECONDS

    def _is_excluded(self, path: Path) -> bool:
        try:
            parts = path.relative_to(self.root).parts[:-1]
        except ValueError:
            parts = path.parts[:-1]
        return any(part in self.exclude_dirs for part in parts)

    def _iter_files(self) -> Iterator[Path]:
        for p in sorted(self.root.rglob("*")):
            if p.is_dir() or self._is_excluded(p):
                continue
            if not any(fnmatch.fnmatch(p.name, pat) for pat in self.include_globs):
                continue
            if choose_parser(self.parser_plugins, p) is None:
                if self.logger.isEnabledFor(logging.DEBUG):
                    self.logger.debug("No parser for %s; skipping", p)
                continue
            try:
                if p.stat().st_size <= self.max_file_size:
                    yield p
                elif self.verbose:
                    self.logger.info("Skipping %s: larger than %d bytes", p, self.max_file_size)
            except OSError as exc:
                if self.verbose:
                    self.logger.warning("Unable to stat %s: %s", p, exc)
                continue

    def scan(self) -> None:
        files = list(self._iter_files())
        total_files = len(files)

        if self.verbose:
            self.logger.info("Discovered %d file(s) to flatten", total_files)

        for plugin in self.sink_plugins.values():
            plugin.begin(self.flattener.config)

        if not total_files:
            for plugin in self.sink_plugins.values():
                plugin.end()
            return

        progress_bar = None
        if self.show_progress and tqdm is not None:
            progress_bar = tqdm(total=total_files, desc=self.progress_desc, unit="file")
        elif self.show_progress and tqdm is None:
            self.logger.info("tqdm is not installed; progress bar disabled")

        futures = {}
        executor = ThreadPoolExecutor(max_workers=self.workers)
        try:
            self._progress_bar = progress_bar
            futures = {executor.submit(self._scan_file, path): path for path in files}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    future.result()
                except Exception as exc:
                    if self.verbose:
                        self.logger.exception("Error flattening %s", path)
                    else:
                        self.logger.warning("Error flattening %s: %s", path, exc)
                finally:
                    if progress_bar is not None:
                        progress_bar.update(1)
        except KeyboardInterrupt:
            if self.verbose:
                self.logger.info("Scan interrupted by user; shutting down workers")
            raise
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
            if progress_bar is not None:
                progress_bar.close()
            self._progress_bar = None
            for plugin in self.sink_plugins.values():
                plugin.end()

        if self.verbose:
            self.logger.info(
                "Flattened %d document(s), rejected %d",
                self.documents_flattened,
                self.documents_rejected,
            )

    def _scan_file(self, path: Path) -> None:
        parser = choose_parser(self.parser_plugins, path)
        parser_name = parser.__class__.__name__
        display_path = self._format_display_path(path)
        self._update_current_file_display(display_path, parser_name)

        for plugin in self.sink_plugins.values():
            plugin.begin_file(path)

        flattened = rejected = 0
        start_time = time.perf_counter()
        try:
            flattened, rejected = flatten_file(
                path,
                parser,
                self.flattener,
                self.sink_plugins,
                self.logger,
                verbose=self.verbose,
                max_bytes=self.max_file_size,
            )
        finally:
            for plugin in self.sink_plugins.values():
                plugin.end_file(path)
            with self._counts_lock:
                self.documents_flattened += flattened
                self.documents_rejected += rejected
            duration = time.perf_counter() - start_time
            self._maybe_log_slow_file(display_path, duration, flattened + rejected, parser_name)

    def _format_display_path(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.root))
        except ValueError:
            return str(path)

    def _update_current_file_display(self, display_path: str, parser_name: str) -> None:
        label = display_path
        if len(label) > 60:
            label = f"...{label[-57:]}"
        if self._progress_bar is not None:
            with self._progress_lock:
                self._progress_bar.set_postfix_str(label, refresh=False)
                self._progress_bar.refresh()
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug("Processing %s (parser=%s)", display_path, parser_name)
        elif self.verbose:
            self.logger.info("Processing %s", display_path)

    def _maybe_log_slow_file(
        self,
        display_path: str,
        duration: float,
        document_count: int,
        parser_name: str,
    ) -> None:
        if not self.logger.isEnabledFor(logging.DEBUG):
            return
        if duration < self._slow_log_threshold:
            return

        reason = "many documents" if document_count >= 5_000 else "parser workload"
        self.logger.debug(
            "Slow flattening of %s took %.2fs (%s). documents=%d, parser=%s",
            display_path,
            duration,
            reason,
            document_count,
            parser_name,
        )


class SingleFileScanner:
    def __init__(
        self,
        file_path: Path,
        parser_plugins: Dict[str, ParserPlugin],
        sink_plugins: Dict[str, SinkPlugin],
        flattener: Flattener,
        max_file_size: int = DEFAULT_MAX_BYTES,
        *,
        logger: Optional[logging.Logger] = None,
        verbose: bool = False,
    ) -> None:
        self.file_path = file_path
        self.max_file_size = max_file_size
        self.parser_plugins = parser_plugins
        self.sink_plugins = sink_plugins
        self.flattener = flattener
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild(self.__class__.__name__.lower())
        self.verbose = verbose
        if verbose:
            self.logger.setLevel(logging.INFO)
        self.documents_flattened = 0
        self.documents_rejected = 0
        self.skipped = False

    def _too_large(self) -> bool:
        try:
            size = self.file_path.stat().st_size
        except OSError:
            return False
        if size <= self.max_file_size:
            return False
        self.logger.warning(
            "Skipping %s: %d bytes exceeds the limit of %d bytes", self.file_path, size, self.max_file_size
        )
        return True

    def scan(self) -> None:
        parser = choose_parser(self.parser_plugins, self.file_path)
        # an explicitly named file without a known extension is read as JSON
        if parser is None:
            parser = self.parser_plugins["json"]

        for plugin in self.sink_plugins.values():
            plugin.begin(self.flattener.config)
            plugin.begin_file(self.file_path)

        try:
            if self._too_large():
                self.skipped = True
                return
            self.documents_flattened, self.documents_rejected = flatten_file(
                self.file_path,
                parser,
                self.flattener,
                self.sink_plugins,
                self.logger,
                verbose=self.verbose,
                max_bytes=self.max_file_size,
            )
        except Exception as exc:
            if self.verbose:
                self.logger.exception("Failed while flattening %s", self.file_path)
            else:
                self.logger.warning("Failed while flattening %s: %s", self.file_path, exc)
        finally:
            for plugin in self.sink_plugins.values():
                plugin.end_file(self.file_path)
                plugin.end()
