from __future__ import annotations
from pathlib import Path

# Repo/pipeline roots
REPO_ROOT   = Path(__file__).resolve().parents[2]
CONFIG_DIR  = REPO_ROOT / "config"

# Default pipeline policy (absent when installed without the repo checkout)
CONFIG_PATH = CONFIG_DIR / "pipeline.yml"
