from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.responses import Response
from fastapi.middleware.cors import CORSMiddleware
import numpy as np
import cv2
import traceback
import logging
from typing import Dict, Any

from setscan.classification import load_keras_classifier
from setscan.config import Settings
from setscan.drawing import draw_sets_on_image
from setscan.pipeline import FrameProcessor, FrameResult

# Configure logging for better debugging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(title="Set Card Scanner API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

settings = Settings.from_env()

# Shared service state; the classifier stays None in synthetic mode
state: Dict[str, Any] = {
    "classifier": None,
    "processor": FrameProcessor(detector_config=settings.detector,
                                synthetic_seed=settings.synthetic_seed,
                                force_synthetic=settings.synthetic_mode),
}


@app.on_event("startup")
async def startup_event():
    """
    Load the card classifier. If it cannot be loaded the service still starts
    and answers in synthetic mode.
    """
    if settings.synthetic_mode:
        logger.info("Synthetic mode forced by configuration, not loading classifier")
        return

    logger.info(f"Loading classifier from {settings.classifier_model_path}...")
    try:
        state["classifier"] = load_keras_classifier(settings.classifier_model_path)
        state["processor"].classifier = state["classifier"]
        logger.info("Classifier loaded successfully")
    except Exception as e:
        logger.error(f"Error loading classifier: {str(e)}")
        logger.error(traceback.format_exc())
        logger.warning("Falling back to synthetic mode")


@app.get("/")
async def root():
    """Root endpoint that confirms the API is running."""
    return {"message": "Set Card Scanner API is running"}


@app.get("/health")
async def health_check():
    """Report whether frames go through the model or the synthetic fallback."""
    mode = "synthetic" if state["processor"].synthetic else "model"
    return {"status": "healthy", "mode": mode}


async def _decode_upload(file: UploadFile) -> np.ndarray:
    if not (file.content_type and file.content_type.startswith('image/')):
        raise HTTPException(status_code=400, detail="File must be an image")

    contents = await file.read()
    nparr = np.frombuffer(contents, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    del contents
    del nparr

    if image is None:
        raise HTTPException(status_code=400, detail="Could not decode image")
    return image


async def _process(image: np.ndarray) -> FrameResult:
    result = await state["processor"].process_frame(image)
    if result is None:
        raise HTTPException(status_code=429, detail="Previous frame still processing")
    return result


@app.post("/analyze")
async def analyze(file: UploadFile = File(...)):
    """
    Detect, classify and solve the cards in an uploaded image.

    Returns:
        dict: Cards, valid sets with their explanation, and timing
    """
    image = await _decode_upload(file)
    try:
        result = await _process(image)
        return result.to_dict()
    except HTTPException:
        raise
    except Exception as e:
        error_details = f"Error: {str(e)}\n{traceback.format_exc()}"
        logger.error(error_details)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/detect_sets")
async def detect_sets(file: UploadFile = File(...)):
    """
    Process an uploaded image and return it annotated with the valid sets.

    Returns:
        Response: JPEG image with annotated sets
    """
    image = await _decode_upload(file)
    try:
        result = await _process(image)
        annotated_image = draw_sets_on_image(image, result)

        encode_params = [cv2.IMWRITE_JPEG_QUALITY, settings.jpeg_quality]
        success, encoded_image = cv2.imencode('.jpg', annotated_image, encode_params)
        if not success:
            raise HTTPException(status_code=500, detail="Failed to encode image")

        return Response(content=encoded_image.tobytes(), media_type="image/jpeg",
                        headers={"X-Sets-Found": str(len(result.sets))})
    except HTTPException:
        raise
    except Exception as e:
        error_details = f"Error: {str(e)}\n{traceback.format_exc()}"
        logger.error(error_details)
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    # Use workers=1 to avoid loading the model multiple times
    uvicorn.run(app, host="0.0.0.0", port=settings.port, workers=1)
