import os
import asyncio
import logging
import threading
from datetime import datetime
from typing import Any, Dict, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .context import default_context_extender
from .settings import Config, DEFAULT_TRANSFORMED_EXTENSIONS, normalize_extension
from .sync import Synchronizer
from .transform import create_markdown_parser, default_transformers


def create_config(settings: Dict[str, Any], markdown=None) -> Config:
    """
    Build a Config from merged settings.

    The markdown parser and the transformers built around it are created here
    and owned by the resulting Config.
    """
    if not settings.get('input'):
        raise ValueError("No input directory given (--input or 'input' setting)")
    if not settings.get('output'):
        raise ValueError("No output directory given (--output or 'output' setting)")

    extensions = set(DEFAULT_TRANSFORMED_EXTENSIONS)
    extensions.update(normalize_extension(ext) for ext in settings.get('extensions') or [])

    return Config(
        input_path=os.path.abspath(os.path.expanduser(settings['input'])),
        output_path=os.path.abspath(os.path.expanduser(settings['output'])),
        watch=bool(settings.get('watch', False)),
        debug=bool(settings.get('debug', False)),
        minify=bool(settings.get('minify', False)),
        open_tag=settings.get('open_tag') or '<%',
        close_tag=settings.get('close_tag') or '%>',
        transformed_extensions=frozenset(extensions),
        transformers=default_transformers(markdown or create_markdown_parser()),
        context_extenders=(default_context_extender,),
        ignore_prefix=settings.get('ignore_prefix', '_') or '',
        meta_filename=settings.get('meta_file') or 'meta.json',
        max_include_depth=int(settings.get('max_include_depth', 64)),
    )


class RebuildHandler(FileSystemEventHandler):
    """
    Flags a pending rebuild for changes in the input tree.

    Only created, modified, deleted and moved events count. A sync pass
    opens and closes input files itself.
    """

    def __init__(self, output_path: str, pending: threading.Event, log_dir: Optional[str] = None):
        self.ignored_paths = [os.path.abspath(output_path)]
        if log_dir:
            self.ignored_paths.append(os.path.abspath(log_dir))
        self.pending = pending

    def on_created(self, event):
        self._schedule_rebuild(event.src_path)

    def on_modified(self, event):
        self._schedule_rebuild(event.src_path)

    def on_deleted(self, event):
        self._schedule_rebuild(event.src_path)

    def on_moved(self, event):
        self._schedule_rebuild(event.src_path, event.dest_path)

    def _schedule_rebuild(self, *paths):
        # Writes into an output tree or log directory nested in the input tree are not changes
        if all(not path or self._is_ignored(path) for path in paths):
            return
        self.pending.set()

    def _is_ignored(self, path) -> bool:
        path = os.path.abspath(os.fsdecode(path))
        return any(path == root or path.startswith(root + os.sep) for root in self.ignored_paths)


class Tinsel:
    def __init__(self, config: Config, log_dir: Optional[str] = 'logs'):
        if not os.path.exists(config.input_path):
            raise FileNotFoundError(f"Input directory {config.input_path} does not exist.")
        if not os.path.isdir(config.input_path):
            raise NotADirectoryError(f"Input path {config.input_path} is not a directory.")

        self.config = config
        self.log_dir = log_dir
        self.passes_completed = 0
        self.passes_failed = 0
        self.pending = threading.Event()
        self.setup_logging()
        self.synchronizer = Synchronizer(config)

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Tinsel')
        self.logger.setLevel(logging.DEBUG if self.config.debug else logging.INFO)

        if not self.logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.DEBUG if self.config.debug else logging.INFO)
            console_handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(console_handler)

            # File handler for all logs
            if self.log_dir:
                os.makedirs(self.log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('tinsel_%Y-%m-%d_%H-%M-%S.log')
                file_handler = logging.FileHandler(os.path.join(self.log_dir, log_filename))
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(
                    logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
                self.logger.addHandler(file_handler)

    def build(self) -> bool:
        """Run one sync pass. Errors are logged, not raised."""
        try:
            asyncio.run(self.synchronizer.run())
        except Exception as e:
            self.passes_failed += 1
            self.logger.error(f"Build failed: {e}")
            self.logger.debug("Build failure details", exc_info=True)
            return False
        self.passes_completed += 1
        return True

    def watch(self, stop_event: Optional[threading.Event] = None, poll_interval: float = 0.5):
        """
        Rebuild whenever the input tree changes, until interrupted.

        Changes arriving while a pass runs set a single pending flag, so a
        burst of changes results in one more pass, never overlapping passes.
        """
        stop_event = stop_event or threading.Event()
        observer = Observer()
        observer.schedule(RebuildHandler(self.config.output_path, self.pending, self.log_dir),
                          self.config.input_path, recursive=True)
        observer.start()
        self.logger.info(f"Watching {self.config.input_path} for changes. Press Ctrl+C to stop.")

        try:
            while not stop_event.is_set():
                if self.pending.wait(timeout=poll_interval):
                    self.pending.clear()
                    self.build()
        except KeyboardInterrupt:
            self.logger.info("Stopping file watcher...")
        finally:
            observer.stop()
            observer.join()

    def run(self) -> int:
        """Build once, then keep watching if configured. Returns the exit status."""
        self.logger.info(f"Building {self.config.input_path} into {self.config.output_path}")
        succeeded = self.build()
        if self.config.watch:
            self.watch()
            return 0
        return 0 if succeeded else 1
