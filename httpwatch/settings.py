"""
This module contains the default configuration settings for the HttpWatch service.
It defines paths, polling and shutdown timings, logging locations and the
built-in application sections. Values can be overridden through environment
variables (a `.env` file is honored) and through the appsettings JSON files.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent  # Project Root
LOGS_DIR = pathlib.Path(os.getenv("HTTPWATCH_LOGS_DIR", str(BASE_DIR / "logs")))

#* --- Configuration Files ---
APPSETTINGS_PATH = pathlib.Path(os.getenv("HTTPWATCH_APPSETTINGS", str(BASE_DIR / "appsettings.json")))
APPSETTINGS_LOCAL_NAME = "appsettings.Local.json"

#* --- Supervisor Settings ---
POLL_INTERVAL_SECONDS = float(os.getenv("HTTPWATCH_POLL_INTERVAL", "30"))
STOP_TIMEOUT_SECONDS = float(os.getenv("HTTPWATCH_STOP_TIMEOUT", "5"))
KILL_GRACE_SECONDS = 2.0       # wait after a forced kill
SHUTDOWN_TIMEOUT_SECONDS = float(os.getenv("HTTPWATCH_SHUTDOWN_TIMEOUT", "10"))

#* --- Health Probe Settings ---
DEV_SERVER_PROBE_TIMEOUT = 10.0  # seconds
INTERPRETER_PROBE_TIMEOUT = 5.0  # seconds

#* --- Application Defaults ---
DEFAULT_TARGET_IP = "127.0.0.1"
DEV_SERVER_DEFAULT_PORT = 3000
INTERPRETER_DEFAULT_PORT = 9001
DEV_SERVER_DEFAULT_COMMAND = "npm"
DEV_SERVER_DEFAULT_ARGUMENTS = "run dev"
INTERPRETER_DEFAULT_MODULE = "http.server"

# Section name -> recipe kind for the applications known out of the box.
BUILTIN_APPLICATIONS = {
    "PythonHttpServer": "interpreter",
    "NodeJsDevServer": "dev_server",
}

#* --- Logging ---
LOG_FILE_PATH = LOGS_DIR / "service-http-check.log"
LOG_RETENTION_DAYS = 31

#* --- MODIFIABLE SETTINGS (Changeable through appsettings.json) ---
# Maps the JSON key to the settings attribute it overrides.
MODIFIABLE_SETTINGS = {
    "PollIntervalSeconds": "POLL_INTERVAL_SECONDS",
    "StopTimeoutSeconds": "STOP_TIMEOUT_SECONDS",
    "KillGraceSeconds": "KILL_GRACE_SECONDS",
    "ShutdownTimeoutSeconds": "SHUTDOWN_TIMEOUT_SECONDS",
    "LogFilePath": "LOG_FILE_PATH",
    "LogRetentionDays": "LOG_RETENTION_DAYS",
}
