"""
Configuration settings for the Onsite Atlas badge designer.
"""
import os
import tempfile

# Backend API
API_BASE_URL = os.environ.get("ATLAS_API_URL", "http://localhost:5000/api")
API_TOKEN = os.environ.get("ATLAS_API_TOKEN", "")
API_TIMEOUT = float(os.environ.get("ATLAS_API_TIMEOUT", 30))

# Badge geometry
PIXELS_PER_INCH = 100  # reference DPI for element positions
POINTS_PER_INCH = 72

# Designer
DRAG_THRESHOLD_PX = float(os.environ.get("ATLAS_DRAG_THRESHOLD", 3))

# Printing
MAX_BATCH_PRINT = int(os.environ.get("ATLAS_MAX_BATCH_PRINT", 100))
EXPORT_DIR = os.environ.get(
    "ATLAS_EXPORT_DIR", os.path.join(tempfile.gettempdir(), "atlas_badges")
)

# Web server
PORT = int(os.environ.get("PORT", 5050))
FLASK_DEBUG = os.environ.get("FLASK_DEBUG", "0") == "1"

LOG_LEVEL = os.environ.get("ATLAS_LOG_LEVEL", "INFO")
