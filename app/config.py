"""
Journal Entry MF Adjustment - Configuration
"""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

# Staging area for uploads and generated workbooks
DATA_DIR = Path(os.environ.get("JE_DATA_DIR", BASE_DIR / "tmp"))
UPLOAD_DIR = DATA_DIR / "uploads"
OUTPUT_DIR = DATA_DIR / "outputs"

APP_VERSION = "1.0.0"

LOG_LEVEL = os.environ.get("JE_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
