"""
FastAPI Backend Server for Gene Guard
Ranks rare, damaging variants from an uploaded VCF and asks an LLM for a risk report
"""

import logging
import os
import tempfile
from datetime import datetime
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends, FastAPI, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from prompts.prompt_composer import compose_prompt, load_template
from services.report_client import ReportClient, build_report_client
from settings import get_settings
from vcf_filter import analyze

# ═══════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════
VALID_EXTENSIONS = (".vcf", ".txt")
VALID_MIME_TYPES = ("text/plain",)

settings = get_settings()

# ═══════════════════════════════════════════════════════════════
# LOGGING SETUP
# ═══════════════════════════════════════════════════════════════
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("gene-guard-api")

# ═══════════════════════════════════════════════════════════════
# FASTAPI APP SETUP
# ═══════════════════════════════════════════════════════════════
app = FastAPI(
    title="Gene Guard API",
    description="Rare variant ranking with LLM risk narrative",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ═══════════════════════════════════════════════════════════════
# DEPENDENCIES
# ═══════════════════════════════════════════════════════════════
@lru_cache(maxsize=1)
def get_prompt_template() -> str:
    return load_template(settings.genai_prompt, settings.prompt_template_path)


@lru_cache(maxsize=1)
def get_report_client() -> ReportClient:
    return build_report_client(settings)


# Resolved inside the handler, once the upload has passed the filters
def report_client_provider() -> Callable[[], ReportClient]:
    return get_report_client


def prompt_template_provider() -> Callable[[], str]:
    return get_prompt_template

# ═══════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════
@app.get("/health")
async def health():
    """Health check endpoint"""
    model = settings.gemini_model if settings.llm_provider == "gemini" else settings.ollama_model
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "llm_provider": settings.llm_provider,
        "llm_model": model,
    }

# ═══════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════
def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def is_allowed_upload(filename: str, content_type: Optional[str]) -> bool:
    """Accept plain-text uploads or names ending in .vcf/.txt"""
    if content_type in VALID_MIME_TYPES:
        return True
    return filename.lower().endswith(VALID_EXTENSIONS)


def save_temp_upload(content: bytes, filename: str) -> str:
    suffix = os.path.splitext(filename)[1] or ".vcf"
    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=suffix)
    try:
        tmp.write(content)
    finally:
        tmp.close()
    return tmp.name


def read_upload_text(file_path: str) -> str:
    with open(file_path, "r", encoding="utf-8", errors="replace") as fh:
        return fh.read()

# ═══════════════════════════════════════════════════════════════
# API ENDPOINTS
# ═══════════════════════════════════════════════════════════════
@app.post("/api/predict")
async def predict(
    file: Optional[UploadFile] = File(None),
    report_client_factory: Callable[[], ReportClient] = Depends(report_client_provider),
    template_factory: Callable[[], str] = Depends(prompt_template_provider),
):
    """
    Rank the uploaded VCF's variants and generate an AI risk report

    Parameters:
    - file: .vcf or .txt (text/plain), up to MAX_UPLOAD_BYTES

    Response:
    - 200 {aiAnalysis, processedVariantsInput, identifiedGenesForPrompt}
    - 400 when the upload is missing/invalid or no variant passes the filters
    - 413 when the upload is too large
    - 500 when report generation fails
    """
    if file is None or not file.filename:
        return error_response(400, "No file uploaded")

    logger.info(f"New prediction request - {file.filename} ({file.content_type})")

    if not is_allowed_upload(file.filename, file.content_type):
        return error_response(400, "Only .vcf or .txt files allowed")

    content = await file.read(settings.max_upload_bytes + 1)
    if len(content) > settings.max_upload_bytes:
        logger.warning(f"Rejected {file.filename}: exceeds {settings.max_upload_bytes} bytes")
        return error_response(413, "File too large")

    file_path = save_temp_upload(content, file.filename)
    logger.info(f"Temp file created at {file_path}")

    try:
        result = analyze(read_upload_text(file_path))

        if result.error:
            logger.info(f"{file.filename}: {result.error}")
            return error_response(400, result.error)

        prompt = compose_prompt(
            template_factory(),
            result,
            age=settings.patient_age,
            gender=settings.patient_gender,
        )

        report_client = report_client_factory()
        ai_analysis = await run_in_threadpool(report_client.generate, prompt)

        logger.info(f"{file.filename}: report generated for {len(result.variants)} variants")
        return {
            "aiAnalysis": ai_analysis,
            "processedVariantsInput": [v.to_dict() for v in result.variants],
            "identifiedGenesForPrompt": result.genes,
        }

    except Exception as e:
        logger.error(f"Prediction failed for {file.filename}: {e}", exc_info=True)
        return error_response(500, str(e))

    finally:
        try:
            if os.path.exists(file_path):
                os.remove(file_path)
                logger.debug(f"Cleaned up temp file: {file_path}")
        except OSError as e:
            logger.warning(f"Failed to clean temp file: {e}")

# ═══════════════════════════════════════════════════════════════
# STARTUP/SHUTDOWN
# ═══════════════════════════════════════════════════════════════
@app.on_event("startup")
async def startup():
    logger.info("🚀 Gene Guard API starting...")
    logger.info(f"LLM provider: {settings.llm_provider}")
    if settings.llm_provider == "gemini" and not settings.gemini_api_key:
        logger.error("GEMINI_API_KEY missing")

@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 API shutting down...")

# ═══════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════
if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting uvicorn server on 0.0.0.0:{settings.port}")
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info",
        access_log=True
    )
