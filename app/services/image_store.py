import os
import tempfile

from loguru import logger

from app.core.errors import ImageNotFound


class LocalImageStore:
    """
    Output store for compressed images, backed by a directory.

    put() overwrites by name and returns the public URL under which the
    retrieval endpoint serves the file.
    """

    def __init__(self, root_dir: str, public_base_url: str, route_prefix: str = "/compressed"):
        self.root_dir = root_dir
        self.public_base_url = public_base_url.rstrip("/")
        self.route_prefix = "/" + route_prefix.strip("/")
        os.makedirs(self.root_dir, exist_ok=True)

    def _path_for(self, name: str) -> str:
        # Only bare file names are addressable
        if not name or name in (".", "..") or os.path.basename(name) != name or "\\" in name:
            raise ImageNotFound(name)
        return os.path.join(self.root_dir, name)

    def reference_for(self, name: str) -> str:
        return f"{self.public_base_url}{self.route_prefix}/{name}"

    def put(self, name: str, data: bytes) -> str:
        path = self._path_for(name)
        fd, tmp_path = tempfile.mkstemp(dir=self.root_dir, prefix=".tmp_", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Stored {name} ({len(data)} bytes)")
        return self.reference_for(name)

    def get(self, name: str) -> bytes:
        path = self._path_for(name)
        if not os.path.isfile(path):
            raise ImageNotFound(name)
        with open(path, "rb") as f:
            return f.read()
