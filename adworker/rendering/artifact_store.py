from pathlib import Path

EXTENSIONS = {"html": "html", "png": "png"}


def rendering_file_path(
    root: Path, platform: str, ad_id: int, target: str, render_type: str
) -> Path:
    """Build path to a rendering: {root}/{platform}/{ad_id}/{target}.{html|png}"""
    return root / platform / str(ad_id) / f"{target}.{EXTENSIONS[render_type]}"


class ArtifactStore:
    """Writes rendered ad content to the local filesystem."""

    RENDERINGS_ROOT = Path("/app/files/renderings")

    def __init__(self, root: Path | None = None) -> None:
        self._root = root if root is not None else self.RENDERINGS_ROOT

    def save(
        self,
        platform: str,
        ad_id: int,
        target: str,
        render_type: str,
        content: bytes,
    ) -> Path:
        """Write content and return its path. Existing files are overwritten."""
        path = rendering_file_path(self._root, platform, ad_id, target, render_type)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    @staticmethod
    def storage_url(path: Path) -> str:
        return path.resolve().as_uri()
