from __future__ import annotations

import argparse
import json
import logging
import sys
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

# Allow running from repo root without installing.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
sys.path.insert(0, str(SRC_DIR))

from media_budget.budget.dependencies import dependent_fields  # noqa: E402
from media_budget.budget.model import BudgetData  # noqa: E402
from media_budget.budget.reconcile import calculate_budget  # noqa: E402
from media_budget.fees.catalog import fee_catalog_from_records  # noqa: E402
from media_budget.logging_config import default_log_level, setup_logging  # noqa: E402

logger = logging.getLogger("media_budget.server")


class App(BaseHTTPRequestHandler):
    def _send_json(self, status: int, payload: dict[str, Any]) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(data)

    def _read_json_body(self) -> Any:
        n = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(n) if n > 0 else b""
        if not raw:
            return None
        return json.loads(raw.decode("utf-8"))

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.info("%s - %s", self.address_string(), format % args)

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(HTTPStatus.NO_CONTENT)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.end_headers()

    def _calculate(self, body: dict[str, Any]) -> None:
        tactic = body.get("tactic")
        if not isinstance(tactic, dict):
            return self._send_json(HTTPStatus.BAD_REQUEST, {"error": "Body must include tactic object"})
        fees = fee_catalog_from_records(body.get("fees") or [])
        result = calculate_budget(BudgetData.from_record(tactic), fees)
        return self._send_json(HTTPStatus.OK, result.to_record())

    def _dependencies(self, body: dict[str, Any]) -> None:
        field = body.get("field")
        if not isinstance(field, str):
            return self._send_json(HTTPStatus.BAD_REQUEST, {"error": "Body must include field string"})
        fee_ids = [str(f) for f in body.get("fee_ids") or []]
        return self._send_json(HTTPStatus.OK, {"fields": sorted(dependent_fields(field, fee_ids))})

    def do_POST(self) -> None:  # noqa: N802
        try:
            body = self._read_json_body()
            if not isinstance(body, dict):
                return self._send_json(HTTPStatus.BAD_REQUEST, {"error": "Expected JSON object body"})
            path = self.path.rstrip("/")
            if path == "/api/budget/calculate":
                return self._calculate(body)
            if path == "/api/budget/dependencies":
                return self._dependencies(body)
            return self._send_json(HTTPStatus.NOT_FOUND, {"error": "Unknown endpoint"})
        except (json.JSONDecodeError, ValueError) as e:
            return self._send_json(HTTPStatus.BAD_REQUEST, {"error": str(e)})
        except Exception as e:  # pragma: no cover
            logger.exception("request failed")
            return self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": f"{type(e).__name__}: {e}"})


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--log-level", default=default_log_level())
    ap.add_argument("--log-json", action="store_true", default=False)
    args = ap.parse_args()

    setup_logging(args.log_level, json_output=args.log_json)
    httpd = ThreadingHTTPServer(("127.0.0.1", args.port), App)
    logger.info("Serving budget API at http://127.0.0.1:%d/api/budget/", args.port)
    httpd.serve_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
