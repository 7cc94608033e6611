#!/usr/bin/env python3
"""Lightweight smoke tests for launch-critical HTTP routes.

Usage:
  ./venv/bin/python scripts/smoke_test.py
  ./venv/bin/python scripts/smoke_test.py --base-url https://app.linkstream.example
"""

from __future__ import annotations

import argparse
import json
import os
import time
import urllib.error
import urllib.request
from typing import Any, Dict, Optional, Tuple


def _request(
    method: str,
    url: str,
    *,
    json_body: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 10.0,
) -> Tuple[int, str, Dict[str, str]]:
    payload = None
    request_headers: Dict[str, str] = dict(headers or {})
    if json_body is not None:
        payload = json.dumps(json_body).encode("utf-8")
        request_headers.setdefault("Content-Type", "application/json")
    req = urllib.request.Request(url=url, data=payload, method=method.upper(), headers=request_headers)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            body = response.read().decode("utf-8", errors="replace")
            status = int(response.getcode())
            response_headers = {k: v for k, v in response.getheaders()}
            return status, body, response_headers
    except urllib.error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace")
        response_headers = {k: v for k, v in exc.headers.items()}
        return int(exc.code), body, response_headers


class SmokeRunner:
    def __init__(self, base_url: str, timeout: float, bearer_token: str = "") -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.bearer_token = bearer_token.strip()
        self.failures = 0
        self.total = 0

    def _print_result(self, ok: bool, label: str, detail: str = "") -> None:
        prefix = "PASS" if ok else "FAIL"
        print(f"[{prefix}] {label}")
        if detail:
            print(f"       {detail}")
        if not ok:
            self.failures += 1

    def _expect_status(self, label: str, method: str, path: str, expected_status: int, **kwargs: Any) -> Tuple[int, str, Dict[str, str]]:
        self.total += 1
        url = f"{self.base_url}{path}"
        started = time.time()
        try:
            status, body, headers = _request(method, url, timeout=self.timeout, **kwargs)
        except Exception as exc:
            self._print_result(False, label, f"request error: {exc}")
            return 0, "", {}
        elapsed_ms = int((time.time() - started) * 1000)
        ok = status == expected_status
        body_preview = body.strip().replace("\n", " ")[:140]
        detail = f"expected {expected_status}, got {status} ({elapsed_ms}ms)"
        if body_preview:
            detail += f" | body: {body_preview}"
        self._print_result(ok, label, detail)
        return status, body, headers

    def run(self) -> int:
        print(f"Running smoke tests against: {self.base_url}")
        print(f"Timeout per request: {self.timeout:.1f}s")
        print("")

        # Liveness
        self._expect_status("Liveness probe", "GET", "/healthz", 200)
        _status, body, _headers = self._expect_status("Runtime health", "GET", "/api/health", 200)
        self.total += 1
        try:
            parsed = json.loads(body or "{}")
            checks = parsed.get("checks", {})
            self._print_result(bool(checks.get("firebase_ready")), "Firebase is initialized")
        except Exception as exc:
            self._print_result(False, "Firebase is initialized", f"invalid json: {exc}")

        _status, body, _headers = self._expect_status("Tier config endpoint reachable", "GET", "/api/config", 200)
        self.total += 1
        try:
            parsed = json.loads(body or "{}")
            tiers = parsed.get("tiers", {})
            self._print_result(
                {"free", "pro", "business", "enterprise"} <= set(tiers),
                "Tier config lists every subscription tier",
            )
        except Exception as exc:
            self._print_result(False, "Tier config lists every subscription tier", f"invalid json: {exc}")

        # Unauthorized guardrails
        self._expect_status("Backup list requires auth", "GET", "/api/backups", 401)
        self._expect_status(
            "Upload URL requires auth",
            "POST",
            "/api/backups/upload",
            401,
            json_body={"fileName": "export.zip", "fileSize": 1024, "contentType": "application/zip"},
        )
        self._expect_status("Team requires auth", "GET", "/api/team", 401)
        self._expect_status("GDPR export requires auth", "GET", "/api/gdpr/export-data", 401)
        self._expect_status("GDPR delete requires auth", "POST", "/api/gdpr/delete-account", 401, json_body={})
        self._expect_status(
            "Checkout create requires auth",
            "POST",
            "/api/create-checkout-session",
            401,
            json_body={"tier": "pro"},
        )
        self._expect_status("Admin users requires auth", "GET", "/api/admin/users", 401)
        self._expect_status("Cron cleanup requires secret", "POST", "/api/cron/cleanup-expired-backups", 401)
        self._expect_status("Unknown invite token rejected", "GET", "/api/team/validate-invite/not-a-real-token", 404)

        if self.bearer_token:
            auth_headers = {"Authorization": f"Bearer {self.bearer_token}"}
            self._expect_status("Authenticated /api/auth/user", "GET", "/api/auth/user", 200, headers=auth_headers)
            self._expect_status("Authenticated usage", "GET", "/api/usage", 200, headers=auth_headers)
            self._expect_status("Authenticated backup list", "GET", "/api/backups", 200, headers=auth_headers)
        else:
            print("")
            print("Note: Skipped authenticated smoke checks (set FIREBASE_TEST_BEARER to enable).")

        print("")
        passed = self.total - self.failures
        print(f"Summary: {passed}/{self.total} checks passed.")
        if self.failures:
            print("Smoke test status: FAILED")
            return 1
        print("Smoke test status: PASSED")
        return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run launch smoke tests.")
    parser.add_argument("--base-url", default="http://127.0.0.1:5000", help="Base URL for the app (default: http://127.0.0.1:5000)")
    parser.add_argument("--timeout", default=10.0, type=float, help="Request timeout in seconds")
    parser.add_argument("--bearer-token", default="", help="Optional Firebase bearer token for authenticated checks")
    args = parser.parse_args()

    token = args.bearer_token.strip() or os.getenv("FIREBASE_TEST_BEARER", "").strip()

    runner = SmokeRunner(base_url=args.base_url, timeout=args.timeout, bearer_token=token)
    return runner.run()


if __name__ == "__main__":
    raise SystemExit(main())
