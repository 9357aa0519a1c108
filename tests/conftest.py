from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Must be set before tourops is imported: the engine and media root are module level.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TOUROPS_MEDIA_ROOT", tempfile.mkdtemp(prefix="tourops-media-"))
os.environ.setdefault("TOUROPS_DEFAULT_LOCALE", "ko")
