"""
Screen Capture
Captures the desktop for the vision collaborator (observation only).

The bitmap comes from the DesktopController; this module resizes it for the
vision API and encodes it as base64 PNG.
"""
import asyncio
import base64
import io
import logging
import time
from dataclasses import dataclass

from PIL import Image

from common import constants
from common.errors import ScreenCaptureError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Screenshot:
    """
    Encoded screenshot plus metadata.

    Attributes:
        image: Base64-encoded image (resized for the vision API)
        format: Image format of `image`
        width/height: Real screen dimensions (coordinates refer to these)
        timestamp: Capture time (epoch seconds)
    """
    image: str
    format: str
    width: int
    height: int
    timestamp: float

    @property
    def dimensions(self) -> dict:
        return {"width": self.width, "height": self.height}


class ScreenCapture:
    """Screen capture utility for vision-based planning."""

    def __init__(self, controller, max_width: int = constants.SCREENSHOT_MAX_WIDTH):
        """
        Initialize screen capture.

        Args:
            controller: Object exposing screenshot() and screen_size()
            max_width: Images wider than this are downscaled (aspect ratio kept)
        """
        self.controller = controller
        self.max_width = max_width
        logger.info(f"ScreenCapture initialized (max_width={max_width})")

    async def capture(self) -> Screenshot:
        """
        Capture the current screen.

        Raises:
            ScreenCaptureError: If the capture primitive fails
        """
        try:
            return await asyncio.to_thread(self._capture_sync)
        except Exception as e:
            logger.error(f"Screen capture failed: {e}", exc_info=True)
            raise ScreenCaptureError(f"Failed to capture screen: {e}") from e

    def _capture_sync(self) -> Screenshot:
        image = self.controller.screenshot()
        width, height = self.controller.screen_size()
        encoded = image_to_base64(self._fit(image))
        logger.info(f"Captured screen {width}x{height} (image {image.size[0]}x{image.size[1]})")
        return Screenshot(image=encoded, format="png", width=width, height=height, timestamp=time.time())

    def _fit(self, image: Image.Image) -> Image.Image:
        width, height = image.size
        if width <= self.max_width:
            return image
        new_height = max(1, round(height * self.max_width / width))
        logger.debug(f"Downscaling capture from {width}x{height} to {self.max_width}x{new_height}")
        return image.resize((self.max_width, new_height), Image.Resampling.LANCZOS)


def image_to_base64(image: Image.Image) -> str:
    """
    Convert PIL Image to base64 PNG string.

    Args:
        image: PIL Image

    Returns:
        Base64-encoded image string
    """
    if image.mode != "RGB":
        image = image.convert("RGB")

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("utf-8")
