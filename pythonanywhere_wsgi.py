# PythonAnywhere WSGI Configuration
# ──────────────────────────────────
# Web tab → WSGI configuration file → replace contents with this.
#
# Set UPLOADS_DIR / BACKUPS_DIR in .env to folders outside the source tree
# so blobs survive redeploys.

import sys
import os

# ── Set your PythonAnywhere username here ──────────────────────────────
USERNAME = "portal"

project_home = f"/home/{USERNAME}/student-portal"
if project_home not in sys.path:
    sys.path.insert(0, project_home)

from dotenv import load_dotenv
load_dotenv(os.path.join(project_home, ".env"))

from run import app as application  # noqa
