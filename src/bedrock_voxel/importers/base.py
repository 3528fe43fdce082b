"""
Model Source Interface

Every import path turns a file into the shared intermediate Mesh. Variants
differ only in parsing; everything after load() is format-agnostic.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple, Union
import logging

from PIL import Image

from ..coordinates import SourceConvention
from ..errors import ModelImportError
from ..mesh import Mesh

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class MeshSource(ABC):
    """
    Base class for model file readers.

    Subclasses declare the file extensions they handle, the coordinate
    convention their format is usually authored in and whether its texture
    coordinates start at the bottom-left corner (and so need a V flip).
    """

    extensions: Tuple[str, ...] = ()
    default_convention: SourceConvention = SourceConvention.Y_UP_RIGHT_HANDED
    uv_origin_bottom_left: bool = True

    def load(self, path: PathLike) -> Mesh:
        """
        Read a model file into a Mesh.

        Args:
            path: Model file path

        Returns:
            Combined mesh of every part in the file

        Raises:
            ModelImportError: If the file is missing or cannot be parsed
        """
        path = Path(path)
        if not path.exists():
            raise ModelImportError(f"Model not found: {path}")

        try:
            mesh = self._read(path)
        except ModelImportError:
            raise
        except (OSError, ValueError, KeyError, IndexError) as e:
            raise ModelImportError(f"{path.name}: {e}") from e

        logger.debug(
            "Loaded %s: %d vertices, %d triangles",
            path.name, mesh.vertex_count, mesh.triangle_count
        )
        return mesh

    @abstractmethod
    def _read(self, path: Path) -> Mesh:
        """Parse the file; called only for existing paths."""

    def load_texture(self, path: PathLike) -> Optional[Image.Image]:
        """
        Find the model's base color texture, if it has one.

        Args:
            path: Model file path

        Returns:
            RGBA image, or None when the model carries no usable texture
        """
        return None

    @staticmethod
    def _open_image(source) -> Optional[Image.Image]:
        try:
            with Image.open(source) as img:
                return img.convert("RGBA")
        except (OSError, ValueError) as e:
            logger.warning("Could not read texture %s: %s", source, e)
            return None
