import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("docker-example")

app = FastAPI()


@app.get("/demo")
def demo():
    try:
        return {"message": "Request received. Docker functioning normally."}
    except Exception:
        logger.exception("demo handler failed")
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.get("/", response_class=PlainTextResponse)
def root():
    logger.info("GET /")
    return "OK"


@app.get("/health", response_class=PlainTextResponse)
def health():
    logger.info("GET /health")
    return "OK"
