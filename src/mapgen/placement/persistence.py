"""Mask persistence: save and load placement results."""

import json
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import structlog
from PIL import Image

from .pipeline import PlacementMask, PlacementResult

logger = structlog.get_logger()

MASK_PREFIX = "mask__"


def save_masks(path: Path, result: PlacementResult) -> None:
    """Save every mask of a result to one compressed .npz file.

    Args:
        path: Output path (should end with .npz).
        result: Placement result to save. Its seed and grid go into the
            metadata.
    """
    grid = result.grid
    metadata = {
        "version": 1,
        "seed": result.seed,
        "width": grid.width,
        "height": grid.height,
        "grid_size": grid.grid_size,
        "object_types": sorted(result.masks),
        "warnings": result.warnings,
        "failures": result.failures,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }

    arrays = {
        f"{MASK_PREFIX}{object_type}": mask.cells
        for object_type, mask in result.masks.items()
    }
    np.savez_compressed(
        path,
        metadata=np.frombuffer(json.dumps(metadata).encode("utf-8"), dtype=np.uint8),
        **arrays,
    )

    logger.info(
        "masks_saved",
        path=str(path),
        masks=len(arrays),
        size_kb=round(path.stat().st_size / 1024, 1),
    )


def load_masks(path: Path) -> tuple[dict[str, PlacementMask], dict]:
    """Load masks saved by save_masks.

    Args:
        path: Path to .npz file.

    Returns:
        Tuple of (masks by object type, metadata dict).

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file format is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Mask file not found: {path}")

    with np.load(path) as data:
        if "metadata" not in data:
            raise ValueError("Invalid mask file: missing 'metadata'")
        metadata = json.loads(data["metadata"].tobytes().decode("utf-8"))

        masks = {}
        for key in data.files:
            if not key.startswith(MASK_PREFIX):
                continue
            object_type = key[len(MASK_PREFIX):]
            masks[object_type] = PlacementMask(
                object_type=object_type,
                cells=data[key].astype(np.uint8),
                width=metadata["width"],
                height=metadata["height"],
                grid_size=metadata["grid_size"],
            )

    logger.info("masks_loaded", path=str(path), masks=len(masks))
    return masks, metadata


def mask_image(mask: PlacementMask) -> Image.Image:
    """Render a mask as a grayscale image, one pixel per cell.

    Placeable cells are white. Row 0 of the grid is the top of the image.
    """
    return Image.fromarray((mask.cells * 255).astype(np.uint8))


def save_mask_images(output_dir: Path, result: PlacementResult) -> list[Path]:
    """Write one ``<object_type>_mask.png`` per mask.

    Returns:
        Paths of the written images, sorted by object type.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for object_type in sorted(result.masks):
        path = output_dir / f"{object_type}_mask.png"
        mask_image(result.masks[object_type]).save(path)
        paths.append(path)

    logger.info("mask_images_saved", directory=str(output_dir), images=len(paths))
    return paths
