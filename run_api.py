"""Helper launcher to run the edge worker without worrying about PYTHONPATH.

Usage (from project root):
  PRIVATE_KEY_JWK="$(sxg-edge gen-jwk)" SXG_ENGINE=mypkg.engine:factory \
  ORIGIN_URL=http://127.0.0.1:8080 python run_api.py

The worker listens on 127.0.0.1:8000; send requests with
`Accept: application/signed-exchange;v=b3` to receive signed exchanges.
See `sxg_edge.settings.Settings` for the remaining environment variables.
"""
from __future__ import annotations

import pathlib
import sys

ROOT = pathlib.Path(__file__).parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sxg_edge.api.main import app  # noqa: E402

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000, reload=False)
