"""
Exception Hierarchy

Every error raised by the conversion core derives from BedrockVoxelError and
from the builtin exception that best describes it, so callers can catch either
the package-wide base or a familiar builtin.

- OptionsValidationError: bad caller options, raised before any geometry work
- MeshIntegrityError: malformed mesh buffers (fatal)
- InternalInvariantError: a pipeline bug, e.g. a non-positive box size (fatal)
- GridTooLargeError: the dense voxel grid would exceed the configured budget
- ModelImportError / ExportError: failures of the I/O shell around the core
"""

from typing import Iterable, List


class BedrockVoxelError(Exception):
    """Base class for all bedrock_voxel errors."""


class OptionsValidationError(BedrockVoxelError, ValueError):
    """One or more conversion options are outside their contract."""

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("Invalid conversion options: " + "; ".join(self.errors))


class MeshIntegrityError(BedrockVoxelError, ValueError):
    """Mesh buffers are inconsistent (bad lengths or out-of-range indices)."""


class InternalInvariantError(BedrockVoxelError, AssertionError):
    """The pipeline produced output that violates its own guarantees."""


class GridTooLargeError(BedrockVoxelError, MemoryError):
    """The voxel grid for this mesh and resolution exceeds the cell budget."""

    def __init__(self, shape, max_cells: int):
        self.shape = tuple(int(s) for s in shape)
        self.max_cells = max_cells
        cells = self.shape[0] * self.shape[1] * self.shape[2]
        super().__init__(
            f"Voxel grid {self.shape[0]}x{self.shape[1]}x{self.shape[2]} "
            f"({cells} cells) exceeds limit of {max_cells}; "
            "lower the resolution or the scale"
        )


class ModelImportError(BedrockVoxelError, IOError):
    """A model file could not be read or parsed."""

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"Import failed: {cause}")


class ExportError(BedrockVoxelError, IOError):
    """Output files could not be written."""

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"Export failed: {cause}")
