"""Writing of aligned band images."""

import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def write_image(image: np.ndarray, output_dir: Union[str, Path], filename: str) -> Optional[Path]:
    """
    Write an aligned image under its original file name.

    Write failures are logged and reported by returning None.
    """
    output_path = Path(output_dir) / filename
    try:
        ok = cv2.imwrite(str(output_path), image)
    except cv2.error as e:
        logger.error(f"Failed to save {output_path}: {e}")
        return None

    if not ok:
        logger.error(f"Failed to save {output_path}")
        return None

    logger.debug(f"Saved {output_path}")
    return output_path
