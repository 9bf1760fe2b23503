"""Runtime settings, read once from the environment."""

import os

# Debug output directory (None = disabled)
DEBUG_DIR = os.environ.get('QR_DEBUG_DIR') or None

# 'otsu' (global) or 'adaptive' (Gaussian, for unevenly lit photos)
BINARIZER = os.environ.get('QR_BINARIZER', 'otsu')

LOG_LEVEL = os.environ.get('QR_LOG_LEVEL', 'WARNING').upper()

WEB_HOST = os.environ.get('QR_WEB_HOST', '0.0.0.0')
WEB_PORT = int(os.environ.get('QR_WEB_PORT', '8080'))
MAX_UPLOAD_BYTES = int(float(os.environ.get('QR_MAX_UPLOAD_MB', '16')) * 1024 * 1024)
