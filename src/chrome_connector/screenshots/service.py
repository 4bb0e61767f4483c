"""Screenshot persistence and housekeeping."""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SCREENSHOT_FILE_PATTERN = re.compile(r'^screenshot_.*\.(png|jpeg)$')


class ScreenshotStore:
    """
    Writes captured screenshots to a directory and manages the files there.
    Only files named ``screenshot_*.png`` or ``screenshot_*.jpeg`` are considered.
    """

    def __init__(self, directory: str | Path):
        """
        Initialize screenshot store.

        Args:
            directory: Directory to save screenshots to. Created on first save.
        """
        self.directory = Path(directory).expanduser()
        self._counter = itertools.count()

    def _next_path(self, format: str) -> Path:
        stamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S%fZ')
        return self.directory / f'screenshot_{stamp}_{next(self._counter)}.{format}'

    def save_bytes(self, image: bytes, format: str = 'png') -> Path:
        """Write raw image bytes and return the file path."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._next_path(format)
        path.write_bytes(image)
        logger.debug(f'Screenshot saved to {path}')
        return path

    def save(self, screenshot_b64: str, format: str = 'png') -> Path:
        """Decode a base64 screenshot and write it to disk."""
        return self.save_bytes(self.decode_to_bytes(screenshot_b64), format)

    async def save_async(self, image: bytes, format: str = 'png') -> Path:
        """Write raw image bytes without blocking the event loop."""
        return await asyncio.to_thread(self.save_bytes, image, format)

    def _screenshot_files(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        return [path for path in self.directory.iterdir() if SCREENSHOT_FILE_PATTERN.match(path.name)]

    def cleanup_old_screenshots(self, days_old: float = 7) -> int:
        """Delete screenshots last modified more than ``days_old`` days ago."""
        cutoff = time.time() - days_old * 24 * 60 * 60
        deleted = 0
        for path in self._screenshot_files():
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted += 1
                    logger.info(f'Deleted old screenshot: {path.name}')
            except OSError as e:
                logger.warning(f'Could not remove {path}: {e}')

        logger.info(f'Cleanup completed: {deleted} files deleted')
        return deleted

    def get_recent_screenshots(self, limit: int = 10) -> list[Path]:
        """Most recently modified screenshots first."""
        stamped = []
        for path in self._screenshot_files():
            try:
                stamped.append((path.stat().st_mtime, path))
            except OSError:
                continue
        stamped.sort(key=lambda item: item[0], reverse=True)
        return [path for _, path in stamped[:limit]]

    def get_directory_info(self) -> dict[str, Any]:
        files = []
        total_size = 0
        for path in self._screenshot_files():
            try:
                stat = path.stat()
            except OSError:
                continue
            total_size += stat.st_size
            files.append((stat.st_mtime, path.name))
        files.sort()

        info: dict[str, Any] = {
            'path': str(self.directory),
            'totalFiles': len(files),
            'totalSize': total_size,
        }
        if files:
            info['oldestFile'] = files[0][1]
            info['newestFile'] = files[-1][1]
        return info

    @staticmethod
    def decode_to_bytes(screenshot_b64: str) -> bytes:
        """Decode base64 screenshot to bytes."""
        return base64.b64decode(screenshot_b64)

    @staticmethod
    def encode_bytes(image_bytes: bytes) -> str:
        """Encode bytes to base64 string."""
        return base64.b64encode(image_bytes).decode('utf-8')
