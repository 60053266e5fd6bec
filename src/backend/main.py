"""FastAPI backend describing uploaded images with a pre-trained classifier."""
import logging
from typing import List, Union

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from starlette.datastructures import UploadFile as StarletteUploadFile

from src.backend.exceptions import ImageServiceError, MissingInputError
from src.backend.models import ClassifierHandle, classifier_handle, get_classifier_handle
from src.backend.schemas import HealthResponse, Prediction
from src.backend.tensors import as_pixel_tensor, decode_image, to_three_dimensional
from src.backend.uploads import read_upload, staged_upload
from src.config.settings import (
    API_HOST,
    API_PORT,
    IMAGE_CHANNELS,
    LOG_LEVEL,
    PRELOAD_MODEL,
    TOP_K,
    UPLOAD_DIR,
    UPLOAD_FIELD,
)

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(title="Image Description API", version="1.0.0")


@app.on_event("startup")
async def prepare_on_startup():
    """Create the upload directory and optionally warm up the model."""
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    if PRELOAD_MODEL:
        try:
            await run_in_threadpool(classifier_handle.get)
        except ImageServiceError:
            logger.warning("Model preload failed. It will be retried on the first request.")
    logger.info(f"Server running on port {API_PORT}")


@app.exception_handler(ImageServiceError)
async def image_service_error_handler(request: Request, exc: ImageServiceError):
    """Render service errors as plain text."""
    logger.warning(f"{request.method} {request.url.path} failed with {exc.status_code}: {exc.message}")
    return PlainTextResponse(exc.message, status_code=exc.status_code)


@app.get("/health", response_model=HealthResponse)
async def health_check(handle: ClassifierHandle = Depends(get_classifier_handle)):
    """Health check endpoint."""
    if handle.is_loaded:
        return HealthResponse(
            status="healthy",
            message="API is running and model is loaded"
        )
    if handle.last_error:
        return HealthResponse(
            status="degraded",
            message=f"Model failed to load: {handle.last_error}"
        )
    return HealthResponse(
        status="idle",
        message="API is running. Model loads on the first request."
    )


@app.post("/describe-image", response_model=List[Prediction])
async def describe_image(
    image: Union[UploadFile, str, None] = File(None),
    handle: ClassifierHandle = Depends(get_classifier_handle),
):
    """Classify an uploaded image.

    Args:
        image: Uploaded image file; a plain text value counts as missing
        handle: Shared classifier handle

    Returns:
        Predictions ordered by descending probability
    """
    if not isinstance(image, StarletteUploadFile) or not image.filename:
        raise MissingInputError()

    async with staged_upload(image, UPLOAD_DIR, UPLOAD_FIELD) as upload:
        contents = await run_in_threadpool(read_upload, upload)
        pixels = await run_in_threadpool(decode_image, contents, IMAGE_CHANNELS)
        tensor = as_pixel_tensor(pixels)

        classifier = await run_in_threadpool(handle.get)
        predictions = await run_in_threadpool(
            classifier.classify, to_three_dimensional(tensor), TOP_K
        )

    if predictions:
        top = predictions[0]
        logger.info(f"Top prediction for '{upload.filename}': {top.className} ({top.probability:.3f})")
    return predictions


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)
