"""In-memory image generation for tests."""
import io

from PIL import Image


def make_image_bytes(image_format: str = "PNG", mode: str = "RGB", size=(16, 12), color=(200, 40, 10)) -> bytes:
    """Encode a solid-color image in memory."""
    if mode == "L":
        color = color[0]
    elif mode == "RGBA":
        color = tuple(color) + (128,)
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


def make_animated_gif(colors, size=(16, 12)) -> bytes:
    """Encode a GIF with one frame per color."""
    frames = [Image.new("RGB", size, color) for color in colors]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:], duration=100, loop=0)
    return buffer.getvalue()
