from pathlib import Path

import aiofiles
import aiofiles.os


async def write_to_file(fname: str | Path, contents: str | bytes) -> None:
    """Write ``contents`` to ``fname``, creating missing parent directories."""
    await aiofiles.os.makedirs(Path(fname).parent, exist_ok=True)
    if isinstance(contents, str):
        async with aiofiles.open(fname, "w") as f:
            await f.write(contents)
    elif isinstance(contents, bytes):
        async with aiofiles.open(fname, "bw") as f:
            await f.write(contents)
    else:
        raise TypeError(
            f"Invalid type of contents: {type(contents)}, expected string or bytes"
        )


async def read_file(fname: str | Path) -> str | None:
    """Return the contents of ``fname`` or ``None`` if it does not exist."""
    if not await aiofiles.os.path.exists(fname):
        return None
    async with aiofiles.open(fname, "r") as f:
        return await f.read()
