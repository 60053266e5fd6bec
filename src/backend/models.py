"""Pre-trained image classifier and the shared model handle."""
import logging
import threading
from typing import Callable, List, Optional, Sequence

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F
from torchvision.models import get_model, get_weight

from src.backend.exceptions import ClassificationError, ModelUnavailableError
from src.backend.schemas import Prediction
from src.config.settings import DEVICE, MODEL_NAME, MODEL_WEIGHTS, TOP_K

logger = logging.getLogger(__name__)


def get_device() -> str:
    """Determine the best available device for inference.

    Priority: DEVICE setting > CUDA (NVIDIA) > MPS (Apple Silicon) > CPU
    """
    if DEVICE:
        return DEVICE
    if torch.cuda.is_available():
        return "cuda"
    elif hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
        return "mps"
    else:
        return "cpu"


class ImageClassifier:
    """Maps an RGB pixel array to its most probable categories.

    Args:
        model: Classification network producing one logit per category
        categories: Category names, indexed like the model outputs
        transform: Inference transform applied to a (3, H, W) uint8 tensor
        device: Device the model lives on
    """

    def __init__(
        self,
        model: nn.Module,
        categories: Sequence[str],
        transform: Callable[[torch.Tensor], torch.Tensor],
        device: str = "cpu",
    ):
        self.model = model.to(device)
        self.model.eval()
        self.categories = list(categories)
        self.transform = transform
        self.device = device

    def preprocess(self, pixels: np.ndarray) -> torch.Tensor:
        """Turn (H, W, 3) pixels into a (1, 3, h, w) model input."""
        # HWC to CHW
        image_tensor = torch.from_numpy(np.ascontiguousarray(pixels)).permute(2, 0, 1)
        image_tensor = self.transform(image_tensor)
        return image_tensor.unsqueeze(0).to(self.device)

    def classify(self, pixels: np.ndarray, top_k: int = TOP_K) -> List[Prediction]:
        """Classify a single image.

        Args:
            pixels: Image array shaped (H, W, 3)
            top_k: Number of predictions to return, at most one per category

        Returns:
            Predictions ordered by descending probability

        Raises:
            ClassificationError: If preprocessing or inference fails
        """
        if pixels.ndim != 3:
            raise ClassificationError(f"Expected a 3-dimensional image, got shape {tuple(pixels.shape)}")

        try:
            inputs = self.preprocess(pixels)
            with torch.no_grad():
                outputs = self.model(inputs)
                probabilities = F.softmax(outputs, dim=1)[0]
                k = min(top_k, probabilities.shape[0])
                values, indices = torch.topk(probabilities, k)
        except RuntimeError as e:
            logger.error(f"Inference failed: {e}")
            raise ClassificationError(f"Error classifying image: {e}") from e

        return [
            Prediction(className=self.categories[index], probability=min(max(value, 0.0), 1.0))
            for value, index in zip(values.tolist(), indices.tolist())
        ]


def load_classifier(
    model_name: str = MODEL_NAME,
    weights_name: str = MODEL_WEIGHTS,
    device: Optional[str] = None,
) -> ImageClassifier:
    """Build a pre-trained torchvision classifier.

    Weights are downloaded to the torch hub cache on first use.

    Args:
        model_name: torchvision model builder name, e.g. "mobilenet_v2"
        weights_name: Weights enum entry, e.g. "MobileNet_V2_Weights.IMAGENET1K_V2"
        device: Device to load the model on. If None, picks the best available.

    Returns:
        Classifier in evaluation mode
    """
    if device is None:
        device = get_device()

    weights = get_weight(weights_name)
    model = get_model(model_name, weights=weights)

    return ImageClassifier(
        model=model,
        categories=weights.meta["categories"],
        transform=weights.transforms(),
        device=device,
    )


class ClassifierHandle:
    """Process-wide classifier, loaded once on first use.

    Concurrent first callers wait for a single load. A failed load is not
    remembered as a classifier, so the next call tries again.
    """

    def __init__(self, loader: Callable[[], ImageClassifier] = load_classifier):
        self._loader = loader
        self._classifier: Optional[ImageClassifier] = None
        self._lock = threading.Lock()
        self.last_error: Optional[str] = None

    @property
    def is_loaded(self) -> bool:
        return self._classifier is not None

    def get(self) -> ImageClassifier:
        """Return the shared classifier, loading it if needed.

        Raises:
            ModelUnavailableError: If the model cannot be loaded
        """
        classifier = self._classifier
        if classifier is not None:
            return classifier

        with self._lock:
            if self._classifier is None:
                try:
                    logger.info(f"Loading {MODEL_NAME} classifier")
                    self._classifier = self._loader()
                except Exception as e:
                    self.last_error = str(e)
                    logger.error(f"Error loading model: {e}")
                    raise ModelUnavailableError(f"Model unavailable: {e}") from e
                self.last_error = None
                logger.info("Model loaded successfully")
            return self._classifier


classifier_handle = ClassifierHandle()


def get_classifier_handle() -> ClassifierHandle:
    """FastAPI dependency returning the shared classifier handle."""
    return classifier_handle
