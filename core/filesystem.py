"""
Async filesystem accessor shared by strategies and deployers.

Every call runs its blocking pathlib/shutil work in a worker thread so
independent reads can be fanned out with asyncio.gather. Only genuine I/O
errors raise; callers check exists() before reading.
"""

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Any, List, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class FileSystemAccessor:
    """Existence checks, text/JSON read-write and recursive listing."""

    async def exists(self, path: PathLike) -> bool:
        return await asyncio.to_thread(Path(path).exists)

    async def is_directory(self, path: PathLike) -> bool:
        return await asyncio.to_thread(Path(path).is_dir)

    async def is_file(self, path: PathLike) -> bool:
        return await asyncio.to_thread(Path(path).is_file)

    async def list_directory(self, path: PathLike) -> List[str]:
        """Entry names of a directory, sorted."""
        def _list():
            return sorted(entry.name for entry in Path(path).iterdir())
        return await asyncio.to_thread(_list)

    async def read_file(self, path: PathLike) -> str:
        try:
            return await asyncio.to_thread(Path(path).read_text, encoding='utf-8')
        except OSError as e:
            logger.error("Failed to read file %s: %s", path, e)
            raise

    async def read_json(self, path: PathLike) -> Any:
        content = await self.read_file(path)
        return json.loads(content)

    async def write_file(self, path: PathLike, content: str):
        def _write():
            target = Path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding='utf-8')
        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            logger.error("Failed to write file %s: %s", path, e)
            raise

    async def write_json(self, path: PathLike, data: Any):
        await self.write_file(path, json.dumps(data, indent=2) + '\n')

    async def ensure_dir(self, path: PathLike):
        await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)

    async def get_all_files(self, directory: PathLike) -> List[str]:
        """Absolute paths of every file below directory, sorted."""
        def _walk():
            root = Path(directory).resolve()
            return sorted(str(p) for p in root.rglob('*') if p.is_file())
        return await asyncio.to_thread(_walk)

    async def remove(self, path: PathLike) -> bool:
        """Remove a file or directory tree. Returns False if nothing was there."""
        def _remove():
            target = Path(path)
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
                return True
            if target.exists() or target.is_symlink():
                target.unlink()
                return True
            return False
        return await asyncio.to_thread(_remove)

    async def copy(self, source: PathLike, destination: PathLike):
        """Copy a file or a directory tree, creating parent directories."""
        def _copy():
            src, dst = Path(source), Path(destination)
            dst.parent.mkdir(parents=True, exist_ok=True)
            if src.is_dir():
                shutil.copytree(src, dst)
            else:
                shutil.copy2(src, dst)
        await asyncio.to_thread(_copy)

    async def move(self, source: PathLike, destination: PathLike):
        """Move a file or directory tree, creating parent directories."""
        def _move():
            dst = Path(destination)
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(dst))
        await asyncio.to_thread(_move)
