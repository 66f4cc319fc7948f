"""Post-deploy smoke checks executed from the app container."""

from __future__ import annotations

import json
import urllib.error
import urllib.request

BASE_URL = "http://localhost:8000"
API_PREFIX = "/api/v1"


def request(
    path: str,
    *,
    method: str = "GET",
    body: dict | None = None,
    expected: int = 200,
) -> bytes:
    payload = None
    req_headers = {"Accept": "application/json"}
    if body is not None:
        payload = json.dumps(body).encode("utf-8")
        req_headers["Content-Type"] = "application/json"

    request_obj = urllib.request.Request(
        f"{BASE_URL}{path}",
        data=payload,
        method=method,
        headers=req_headers,
    )
    try:
        with urllib.request.urlopen(request_obj, timeout=30) as response:
            content = response.read()
            status = response.getcode()
    except urllib.error.HTTPError as exc:  # pragma: no cover - runtime smoke script
        body_text = exc.read().decode("utf-8", errors="ignore")
        raise RuntimeError(f"{method} {path} -> {exc.code}: {body_text}") from exc

    if status != expected:
        raise RuntimeError(f"{method} {path} -> {status}, expected {expected}")
    return content


def main() -> None:
    for endpoint in ["/health", "/ready", "/docs", "/metrics"]:
        request(endpoint, expected=200)

    offerings = json.loads(
        request(f"{API_PREFIX}/catalog/offerings?limit=20&offset=0").decode("utf-8"),
    )["items"]
    if not offerings:
        print("Smoke checks passed (catalog is empty, skipped availability and quote).")
        return

    offering = offerings[0]
    request(f"{API_PREFIX}/capacity/offerings/{offering['id']}/availability")
    if offering["kind"] != "course":
        # Courses need a schedule; the availability call above already covers them.
        request(
            f"{API_PREFIX}/pricing/quote",
            method="POST",
            body={"offering_id": offering["id"], "quantity": 1},
        )

    print("Smoke checks passed.")


if __name__ == "__main__":
    main()
