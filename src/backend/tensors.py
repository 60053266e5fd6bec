"""Image decoding and rank normalization of pixel arrays.

Decoded images are ``uint8`` arrays laid out as height x width x channels.
Animated formats decode to their first frame with an extra leading
batch dimension of size one.
"""
import io
import logging
from dataclasses import dataclass
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from src.backend.exceptions import DecodeError
from src.config.settings import IMAGE_CHANNELS

logger = logging.getLogger(__name__)

# Formats decoded as a batch of frames even when they hold a single frame
BATCHED_FORMATS = {"GIF"}


@dataclass(frozen=True)
class ThreeDimensional:
    """Pixels shaped (height, width, channels)."""
    pixels: np.ndarray


@dataclass(frozen=True)
class BatchOfOne:
    """Pixels shaped (1, height, width, channels)."""
    pixels: np.ndarray


PixelTensor = Union[ThreeDimensional, BatchOfOne]


def decode_image(data: bytes, channels: int = IMAGE_CHANNELS) -> np.ndarray:
    """Decode image bytes into a pixel array.

    Pixels are converted to RGB, so grayscale images are replicated
    across channels and alpha is dropped.

    Args:
        data: Raw image file contents
        channels: Requested channel count; only 3 is supported

    Returns:
        Array shaped (H, W, 3) for still images or (1, H, W, 3) for
        animated formats, holding the first frame

    Raises:
        DecodeError: If the bytes are empty, malformed or not an image
    """
    if channels != 3:
        raise ValueError(f"Only 3-channel decoding is supported, got {channels}")
    if not data:
        raise DecodeError("Uploaded file is empty.")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
            if image.mode != "RGB":
                logger.debug(f"Converting {image_format} image from mode {image.mode} to RGB")

            if image_format in BATCHED_FORMATS:
                # Only the first frame of an animation is classified
                image.seek(0)
                pixels = np.array(image.convert("RGB"))[np.newaxis]
            else:
                pixels = np.array(image.convert("RGB"))
    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Unsupported or malformed image: {e}") from e
    except (OSError, ValueError, SyntaxError) as e:
        # Truncated or corrupt data surfaces while loading pixel data
        raise DecodeError(f"Could not decode image: {e}") from e

    return pixels


def as_pixel_tensor(pixels: np.ndarray) -> PixelTensor:
    """Tag a decoded array with its rank.

    Raises:
        DecodeError: If the array is neither (H, W, 3) nor (1, H, W, 3)
    """
    if pixels.shape[-1:] != (IMAGE_CHANNELS,):
        raise DecodeError(f"Unsupported image shape {tuple(pixels.shape)}.")
    if pixels.ndim == 3:
        return ThreeDimensional(pixels)
    if pixels.ndim == 4 and pixels.shape[0] == 1:
        return BatchOfOne(pixels)
    if pixels.ndim == 4:
        raise DecodeError(
            f"Batches of {pixels.shape[0]} images are not supported."
        )
    raise DecodeError(f"Unsupported image shape {tuple(pixels.shape)}.")


def to_three_dimensional(tensor: PixelTensor) -> np.ndarray:
    """Return the (H, W, C) pixels of either tensor variant."""
    if isinstance(tensor, BatchOfOne):
        return tensor.pixels[0]
    return tensor.pixels
