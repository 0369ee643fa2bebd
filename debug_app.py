# debug_app.py
import uvicorn

from src.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host="127.0.0.1",
        port=8000,
        reload=False,   # single process: in-memory locks are per process
        log_level=settings.LOG_LEVEL.lower(),
    )
