#!/usr/bin/env python3
"""
Smoke test for client-ip-echo deployments.

Deploy guardrail: fast, with actionable failures (step name, HTTP status/body
preview).

Flow (default):
1. Health check
2. GET / returns {"ip": ...}
3. /ipv4 and /ipv6 agree with / (exactly one matches, or the other 404s)
4. Forwarding header is honoured (optional via --skip-forwarding; proxies in
   front of the service usually overwrite it)

Usage:
    ./scripts/smoke-test.py https://ip.example.com
    ./scripts/smoke-test.py http://localhost:3000 --health-only
"""

import argparse
import ipaddress
import json
import random
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

SkipCheck = Callable[["SmokeContext"], str | None]

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
MAX_BACKOFF_SECONDS = 4.0
BODY_PREVIEW_CHARS = 200
# Documentation range (RFC 5737), never a real client
PROBE_IP = "203.0.113.254"


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


def _is_retryable_status(status_code: int) -> bool:
    return status_code in {408, 425, 429, 502, 503, 504}


@dataclass
class HttpClient:
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    def get_json(
        self, path: str, *, headers: dict[str, str] | None = None
    ) -> tuple[int, dict[str, Any]]:
        url = f"{self.base_url}{path}"
        max_attempts = max(1, self.retries + 1)
        for attempt in range(1, max_attempts + 1):
            request = Request(url, headers=headers or {}, method="GET")
            try:
                with urlopen(request, timeout=self.timeout_seconds) as response:
                    return response.getcode(), self._decode(path, response.read())
            except HTTPError as e:
                if attempt < max_attempts and _is_retryable_status(e.code):
                    self._sleep_backoff(attempt)
                    continue
                return e.code, self._decode(path, e.read() if e.fp else b"")
            except (URLError, TimeoutError) as e:
                if attempt < max_attempts:
                    self._sleep_backoff(attempt)
                    continue
                raise RuntimeError(f"Network error after {attempt} attempts: {e}") from e
        raise RuntimeError(f"GET {path}: retries exhausted")

    @staticmethod
    def _decode(path: str, body: bytes) -> dict[str, Any]:
        try:
            return json.loads(body.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            preview = body[:BODY_PREVIEW_CHARS]
            raise RuntimeError(f"Invalid JSON from GET {path}: preview={preview!r}") from e

    def _sleep_backoff(self, attempt: int) -> None:
        base = self.retry_backoff_seconds * (2 ** (attempt - 1))
        jitter = random.random() * self.retry_backoff_seconds
        time.sleep(min(MAX_BACKOFF_SECONDS, base + jitter))


def wait_for_health(client: HttpClient, max_attempts: int = 30, delay: float = 2.0) -> bool:
    """Wait for /health to return healthy status."""
    for attempt in range(1, max_attempts + 1):
        try:
            status, data = client.get_json("/health")
            if status == 200 and data.get("status") == "healthy":
                if not isinstance(data.get("timestamp"), int):
                    raise RuntimeError(f"Health timestamp is not an integer: {data!r}")
                log(f"Health check passed (attempt {attempt})")
                return True
        except RuntimeError as e:
            log(f"Health attempt {attempt} failed: {e}")

        if attempt < max_attempts:
            time.sleep(delay)

    return False


@dataclass
class SmokeContext:
    client: HttpClient
    max_health_attempts: int

    ip: str | None = None

    def require_ip(self) -> str:
        if self.ip is None:
            raise RuntimeError("Missing ip (step ordering bug)")
        return self.ip


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], None]
    # Return `None` to run the step; return a string to skip with that reason.
    skip_reason: SkipCheck | None = None


@dataclass(frozen=True)
class StepResult:
    name: str
    status: str  # passed|skipped|failed
    seconds: float
    detail: str | None = None


def _print_summary(results: list[StepResult], total_seconds: float) -> None:
    log("Summary:")
    for result in results:
        suffix = f" - {result.detail}" if result.detail else ""
        log(f"  {result.status.upper():7} {result.name} ({result.seconds:.2f}s){suffix}")
    log(f"Total: {total_seconds:.2f}s")


def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    results: list[StepResult] = []
    overall_start = time.time()

    for step in steps:
        reason = step.skip_reason(ctx) if step.skip_reason else None
        if reason:
            log(f"SKIP: {step.name}: {reason}")
            results.append(StepResult(step.name, "skipped", 0.0, reason))
            continue

        log(f"STEP: {step.name}")
        start = time.time()
        try:
            step.run(ctx)
        except Exception as e:
            elapsed = time.time() - start
            results.append(StepResult(step.name, "failed", elapsed, str(e)))
            _print_summary(results, time.time() - overall_start)
            return False

        elapsed = time.time() - start
        results.append(StepResult(step.name, "passed", elapsed))
        log(f"OK: {step.name} ({elapsed:.2f}s)")

    _print_summary(results, time.time() - overall_start)
    return True


def step_health(ctx: SmokeContext) -> None:
    log(f"Checking health: {ctx.client.base_url}/health")
    if not wait_for_health(ctx.client, max_attempts=ctx.max_health_attempts):
        raise RuntimeError("Health check failed")


def step_root(ctx: SmokeContext) -> None:
    status, data = ctx.client.get_json("/")
    if status != 200 or "ip" not in data:
        raise RuntimeError(f"GET / returned {status}: {data!r}")
    ctx.ip = data["ip"]
    log(f"Reported IP: {ctx.ip!r}")


def _family_of(ip: str) -> int | None:
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return 4
    return address.version


def step_families(ctx: SmokeContext) -> None:
    ip = ctx.require_ip()
    family = _family_of(ip)

    for version in (4, 6):
        status, data = ctx.client.get_json(f"/ipv{version}")
        if family == version:
            if status != 200 or data.get("ip") != ip:
                raise RuntimeError(f"/ipv{version} expected {ip!r}, got {status}: {data!r}")
        else:
            expected = {"error": f"No IPv{version} address found"}
            if status != 404 or data != expected:
                raise RuntimeError(f"/ipv{version} expected 404 {expected!r}, got {status}: {data!r}")


def step_forwarding(ctx: SmokeContext) -> None:
    status, data = ctx.client.get_json("/", headers={"X-Forwarded-For": f"{PROBE_IP}, 10.0.0.1"})
    if status != 200 or data.get("ip") != PROBE_IP:
        raise RuntimeError(f"X-Forwarded-For not honoured: {status}: {data!r}")


def skip_forwarding_disabled(_: SmokeContext) -> str | None:
    return "disabled via --skip-forwarding"


def main() -> int:
    parser = argparse.ArgumentParser(description="client-ip-echo smoke test")
    parser.add_argument("base_url", help="Base URL (e.g., https://ip.example.com)")
    parser.add_argument(
        "--health-only",
        action="store_true",
        help="Only run health check, skip full flow",
    )
    parser.add_argument(
        "--skip-forwarding",
        action="store_true",
        help="Skip the X-Forwarded-For check (use when a proxy rewrites it)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help=f"HTTP timeout seconds (default: {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        help=f"Retries for transient failures (default: {DEFAULT_RETRIES})",
    )
    parser.add_argument(
        "--max-health-attempts",
        type=int,
        default=30,
        help="Max health check attempts (default: 30)",
    )
    args = parser.parse_args()

    try:
        base_url = args.base_url.rstrip("/")
        client = HttpClient(base_url=base_url, timeout_seconds=args.timeout, retries=args.retries)
        ctx = SmokeContext(client=client, max_health_attempts=args.max_health_attempts)

        steps: list[Step] = [Step("health", step_health)]
        if args.health_only:
            log("Health-only mode: skipping full flow")
        else:
            steps.extend(
                [
                    Step("root ip", step_root),
                    Step("address families", step_families),
                    Step(
                        "forwarding header",
                        step_forwarding,
                        skip_reason=skip_forwarding_disabled if args.skip_forwarding else None,
                    ),
                ]
            )

        ok = run_steps(ctx, steps)
        return 0 if ok else 1
    except Exception as e:
        log(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
