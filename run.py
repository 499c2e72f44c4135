import os
from datetime import datetime

import uvicorn
from dotenv import load_dotenv

# Load .env file
load_dotenv()

from app.config import APP_NAME, APP_HOST, APP_PORT

LOGS_DIR = os.path.join(os.path.dirname(__file__), "logs")


def make_log_path() -> str:
    """logs/attendance_log_<timestamp>.log, creating logs/ if needed"""
    os.makedirs(LOGS_DIR, exist_ok=True)
    log_datetime = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    return os.path.join(LOGS_DIR, f"attendance_log_{log_datetime}.log")


def build_log_config(log_path: str) -> dict:
    """
    Uvicorn dict config: console output plus a copy of every uvicorn,
    access and application record in the log file.
    """
    file_handler = {
        "class": "logging.FileHandler",
        "formatter": "file_format",
        "filename": log_path,
        "encoding": "utf-8",
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(asctime)s - %(levelprefix)s %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "use_colors": False,
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(asctime)s - %(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s',
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "use_colors": False,
            },
            "app_format": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "file_format": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
            "app_console": {
                "class": "logging.StreamHandler",
                "formatter": "app_format",
                "stream": "ext://sys.stdout",
            },
            "file": file_handler,
        },
        "loggers": {
            "uvicorn": {"handlers": ["default", "file"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["default", "file"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access", "file"], "level": "INFO", "propagate": False},
            # Check-in outcomes, device resets, scheduler jobs
            "app": {"handlers": ["app_console", "file"], "level": "INFO", "propagate": False},
            "apscheduler": {"handlers": ["app_console", "file"], "level": "WARNING", "propagate": False},
        },
    }


if __name__ == "__main__":
    log_path = make_log_path()

    print("=" * 60)
    print(f"{APP_NAME} Starting...")
    print(f"Log file: {log_path}")
    print("=" * 60)

    uvicorn.run(
        "main:app",
        host=APP_HOST,
        port=APP_PORT,
        workers=1,
        log_config=build_log_config(log_path),
        access_log=True,
    )
