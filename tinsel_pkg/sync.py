"""
Synchronization of the output tree with the input tree.
"""

import logging
import os
import shutil
import time

from .context import Context
from .errors import SyncIOError, TransformError
from .pipeline import transform


class Synchronizer:
    """
    Mirrors ``config.input_path`` into ``config.output_path``.

    Transformable files are recomputed on every pass because their output
    depends on arbitrary code and includes. Other files are copied only when
    the input is newer than the output. Output entries without an input
    counterpart are deleted, and empty output directories are pruned.
    """

    def __init__(self, config):
        self.config = config
        self.logger = logging.getLogger('Tinsel.Synchronizer')
        self.reset_stats()

    def reset_stats(self):
        self.transformed = 0
        self.copied = 0
        self.deleted = 0
        self.pruned = 0

    def is_ignored(self, name: str) -> bool:
        return bool(self.config.ignore_prefix) and name.startswith(self.config.ignore_prefix)

    def is_transformable(self, path: str) -> bool:
        ext = os.path.splitext(path)[1].lower()
        return ext in self.config.transformed_extensions

    async def run(self):
        """Run one full sync pass."""
        start_time = time.time()
        self.reset_stats()
        self._make_dirs(self.config.output_path)
        await self.sync_directory(self.config.input_path, self.config.output_path)
        self.prune_empty_directories(self.config.output_path)
        self.logger.info(
            f"Sync pass completed in {time.time() - start_time:.6f} seconds "
            f"({self.transformed} transformed, {self.copied} copied, "
            f"{self.deleted} deleted, {self.pruned} pruned).")

    async def sync_directory(self, input_dir: str, output_dir: str):
        input_names = sorted(self._list_dir(input_dir))
        keep = {name for name in input_names if not self.is_ignored(name)}

        for name in sorted(self._list_dir(output_dir)):
            if name not in keep:
                self.remove(os.path.join(output_dir, name))

        for name in input_names:
            if name not in keep:
                continue
            input_path = os.path.join(input_dir, name)
            output_path = os.path.join(output_dir, name)
            if os.path.isdir(input_path):
                if os.path.exists(output_path) and not os.path.isdir(output_path):
                    self.remove(output_path)
                self._make_dirs(output_path)
                await self.sync_directory(input_path, output_path)
            elif os.path.isfile(input_path):
                if os.path.isdir(output_path):
                    self.remove(output_path)
                if self.is_transformable(input_path):
                    await self.transform_file(input_path, output_path)
                else:
                    self.copy_file(input_path, output_path)

    async def transform_file(self, input_path: str, output_path: str):
        """Run a file through the pipeline and write the result."""
        try:
            with open(input_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (IOError, OSError, UnicodeDecodeError) as e:
            raise SyncIOError(input_path, f"Failed to read file: {e}") from e

        context = Context(input_path, output_path, content, is_include=False, include_depth=0)
        output = await transform(self.config, context)

        final_path = context.output_path
        if os.path.dirname(os.path.abspath(final_path)) != os.path.dirname(os.path.abspath(output_path)):
            raise TransformError(input_path, f"Output path {final_path} leaves directory {os.path.dirname(output_path)}")

        self.logger.info(f"{input_path} > {final_path}")
        try:
            with open(final_path, 'w', encoding='utf-8') as f:
                f.write(output)
        except (IOError, OSError) as e:
            raise SyncIOError(final_path, f"Failed to write file: {e}") from e
        self.transformed += 1

    def copy_file(self, input_path: str, output_path: str):
        """Copy a static file unless the output is at least as new."""
        try:
            if os.path.exists(output_path) and os.path.getmtime(input_path) <= os.path.getmtime(output_path):
                return
            self.logger.info(f"{input_path} > {output_path}")
            shutil.copy2(input_path, output_path)
        except (IOError, OSError) as e:
            raise SyncIOError(input_path, f"Failed to copy file: {e}") from e
        self.copied += 1

    def remove(self, path: str):
        """Delete a stale output file or directory tree."""
        self.logger.debug(f"Removing stale output: {path}")
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.unlink(path)
        except (IOError, OSError) as e:
            raise SyncIOError(path, f"Failed to remove: {e}") from e
        self.deleted += 1

    def prune_empty_directories(self, directory: str):
        """Remove output directories left empty, deepest first."""
        for name in self._list_dir(directory):
            full_path = os.path.join(directory, name)
            if os.path.isdir(full_path) and not os.path.islink(full_path):
                self.prune_empty_directories(full_path)
                if not os.listdir(full_path):
                    try:
                        os.rmdir(full_path)
                    except OSError as e:
                        raise SyncIOError(full_path, f"Failed to remove empty directory: {e}") from e
                    self.pruned += 1

    def _list_dir(self, directory: str):
        try:
            return os.listdir(directory)
        except (IOError, OSError) as e:
            raise SyncIOError(directory, f"Failed to list directory: {e}") from e

    def _make_dirs(self, directory: str):
        try:
            os.makedirs(directory, exist_ok=True)
        except (IOError, OSError) as e:
            raise SyncIOError(directory, f"Failed to create directory: {e}") from e
