"""Centralized configuration settings for the image description service."""
import os
from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# FastAPI configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "3000"))

# Upload staging
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(PROJECT_ROOT / "uploads")))
UPLOAD_FIELD = "image"  # Multipart field carrying the image

# Model configuration
# Any torchvision classification model name and a matching weights enum entry
MODEL_NAME = os.getenv("MODEL_NAME", "mobilenet_v2")
MODEL_WEIGHTS = os.getenv("MODEL_WEIGHTS", "MobileNet_V2_Weights.IMAGENET1K_V2")
TOP_K = int(os.getenv("TOP_K", "3"))  # Number of predictions returned per image
IMAGE_CHANNELS = 3  # Images are always decoded to RGB

# Empty string means auto-detect (CUDA > MPS > CPU)
DEVICE = os.getenv("DEVICE", "")

# Load the model at startup instead of on the first request
PRELOAD_MODEL = os.getenv("PRELOAD_MODEL", "false").lower() in ("1", "true", "yes")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
