# api/main.py
import logging
import os
import re
from logging.handlers import RotatingFileHandler

_TOKEN_PATTERNS = [
    re.compile(r'("token"\s*:\s*")[^"]+(")', re.IGNORECASE),
    re.compile(r"(token=)[^&\s]+()", re.IGNORECASE),
    re.compile(r"(Authorization:\s*(?:token|Bearer)\s+)\S+()", re.IGNORECASE),
    re.compile(r"(api_key=)[^&\s]+()", re.IGNORECASE),
]

class _RedactTokenFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        for pat in _TOKEN_PATTERNS:
            msg = pat.sub(r"\1[REDACTED]\2", msg)
        record.msg = msg
        record.args = ()
        return True

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.chat import router as chat_router
from api.routes.digest import router as digest_router
from repochat_app.config import load_config, load_env

# --- Config and secrets ---
_config = load_config()
load_env()

# --- Logging setup (reads from config.toml) ---
_log_cfg = _config.get("logging", {})
_log_dir = _log_cfg.get("log_dir", "logs")
_log_file = _log_cfg.get("log_file", "api.log")
_log_level = _log_cfg.get("level", "INFO")

os.makedirs(_log_dir, exist_ok=True)

_max_bytes = _log_cfg.get("max_log_bytes", 150_000)   # ~1000 lines at ~150 chars/line
_backup_count = _log_cfg.get("backup_count", 5)

_handlers = [
    RotatingFileHandler(
        os.path.join(_log_dir, _log_file),
        maxBytes=_max_bytes,
        backupCount=_backup_count,
    ),
    logging.StreamHandler(),
]
# Root-logger filters do not see records propagated from module loggers
for _handler in _handlers:
    _handler.addFilter(_RedactTokenFilter())

logging.basicConfig(
    level=getattr(logging, _log_level, logging.INFO),
    format="%(asctime)s %(levelname)-5s %(name)s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=_handlers,
)

app = FastAPI(title="REPOCHAT_API", version="1.0.0")
app.state.config = _config

# CORS for the chat frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=_config.get("server", {}).get("cors_origins", ["http://localhost:3000"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(digest_router, prefix="/api/v1", tags=["Digest"])
app.include_router(chat_router, prefix="/api/v1", tags=["Chat"])


@app.get("/api/v1/health")
async def health_check():
    return {"status": "healthy", "service": "REPOCHAT_API"}

def main():
    import argparse
    import uvicorn
    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, default=8001)
    parser.add_argument("--host", default=None)  # None = auto from APP_ENV
    args = parser.parse_args()

    is_prod = os.getenv("APP_ENV", "dev") == "prod"
    host = args.host or ("0.0.0.0" if is_prod else "127.0.0.1")

    kwargs = {"host": host, "port": args.port, "workers": 2 if is_prod else 1}
    if not is_prod:
        kwargs["reload"] = True

    uvicorn.run("api.main:app", **kwargs)

if __name__ == "__main__":
    main()
