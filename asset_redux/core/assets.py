from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Tuple

from PIL import Image

from .logger import get_logger
from .paths import is_supported_image

if TYPE_CHECKING:  # pragma: no cover
    from .scheduling import Scheduler

log = get_logger(__name__)


@dataclass(eq=False)
class Texture:
    """A decoded bitmap owned by exactly one cache entry.

    Compared by identity; ``destroy()`` releases the pixel buffer and is
    safe to call more than once.
    """

    name: str
    path: str
    image: Image.Image
    destroyed: bool = field(default=False, init=False)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self.image.close()


@dataclass(eq=False)
class Sprite:
    """A full-rect sprite over a texture, pivot centred."""

    name: str
    texture: Texture
    rect: Tuple[int, int, int, int]
    pivot: Tuple[float, float] = (0.5, 0.5)
    pixels_per_unit: float = 100.0

    @property
    def path(self) -> str:
        return self.texture.path

    @property
    def destroyed(self) -> bool:
        return self.texture.destroyed

    def destroy(self) -> None:
        self.texture.destroy()


def make_sprite(name: str, texture: Texture, pixels_per_unit: float = 100.0) -> Sprite:
    return Sprite(
        name=name,
        texture=texture,
        rect=(0, 0, texture.width, texture.height),
        pixels_per_unit=pixels_per_unit,
    )


def _svg_to_png_bytes(svg_path: Path, width: int = 512, height: int = 512) -> bytes:
    """Rasterize an SVG file with cairosvg."""
    import cairosvg  # type: ignore

    return cairosvg.svg2png(
        url=str(svg_path),
        output_width=width,
        output_height=height,
    )


class AssetLoader:
    """Decodes image files into :class:`Texture` objects. Keeps no cache."""

    def __init__(self, svg_size: Tuple[int, int] = (512, 512)):
        self.svg_size = svg_size

    def decode(self, path: str) -> Optional[Image.Image]:
        """Return an RGBA image for *path*, or None when it cannot be decoded."""
        p = Path(path)
        if not p.is_file():
            log.warning(f"[AssetLoader] Missing image file: {path}")
            return None
        if not is_supported_image(p):
            log.warning(f"[AssetLoader] Unsupported image format: {p.suffix}")
            return None
        try:
            if p.suffix.lower() == ".svg":
                data = _svg_to_png_bytes(p, *self.svg_size)
            else:
                data = p.read_bytes()
            with Image.open(BytesIO(data)) as img:
                img.load()
                return img.convert("RGBA")
        except Exception as exc:
            log.error(f"[AssetLoader] Failed to decode {path}: {exc}")
            return None

    def load_texture(self, path: str) -> Optional[Texture]:
        image = self.decode(path)
        if image is None:
            return None
        return Texture(name=Path(path).stem, path=path, image=image)

    def load_texture_async(
        self,
        path: str,
        scheduler: "Scheduler",
        callback: Callable[[Optional[Texture]], None],
    ) -> None:
        """Decode off the interception path; *callback* runs on the host thread."""
        scheduler.submit(lambda: self.load_texture(path), callback)
