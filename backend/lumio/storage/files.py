"""
Temporary upload files.

Each job owns exactly one file `<upload_dir>/<job_id>_<safe name>` from
submit until its terminal outcome. Blocking disk I/O runs in the default
executor.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class UploadFileStore:

    def __init__(self, upload_dir: str | os.PathLike[str]) -> None:
        self._root = Path(upload_dir)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, job_id: str, safe_name: str) -> Path:
        return self._root / f"{job_id}_{safe_name}"

    async def write(self, job_id: str, safe_name: str, data: bytes) -> Path:
        path = self.path_for(job_id, safe_name)

        def _write() -> None:
            self._root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.get_running_loop().run_in_executor(None, _write)
        logger.debug("Upload stored | path=%s bytes=%d", path, len(data))
        return path

    async def read(self, path: str | os.PathLike[str]) -> bytes:
        return await asyncio.get_running_loop().run_in_executor(None, Path(path).read_bytes)

    async def delete(self, path: str | os.PathLike[str]) -> bool:
        """Remove the file; a missing file is not an error."""
        def _unlink() -> bool:
            try:
                Path(path).unlink()
                return True
            except FileNotFoundError:
                return False

        removed = await asyncio.get_running_loop().run_in_executor(None, _unlink)
        if removed:
            logger.debug("Upload deleted | path=%s", path)
        return removed
