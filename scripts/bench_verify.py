#!/usr/bin/env python3
"""Benchmark notarize-then-verify: indexing delay and verification latency.

Usage:
  From host (API on localhost):
    export API_URL=http://localhost:8000 KEYCLOAK_URL=http://localhost:8080
    export KEYCLOAK_REALM=docnotary KEYCLOAK_CLIENT_ID=docnotary-api KEYCLOAK_CLIENT_SECRET=docnotary-api-secret
    export BENCH_USER=testuser BENCH_PASSWORD=testpass
    uv run python scripts/bench_verify.py [--num-docs 100] [--content-size 4096]

  Without Keycloak (anonymous API), leave KEYCLOAK_CLIENT_SECRET empty.
"""
from __future__ import annotations

import argparse
import os
import statistics
import sys
import time

import httpx

SENDER = "0x" + "a" * 40
RECIPIENT = "0x" + "b" * 40


def get_token(
    keycloak_url: str,
    realm: str,
    client_id: str,
    client_secret: str,
    username: str,
    password: str,
) -> str:
    url = f"{keycloak_url.rstrip('/')}/realms/{realm}/protocol/openid-connect/token"
    r = httpx.post(
        url,
        data={
            "grant_type": "password",
            "client_id": client_id,
            "client_secret": client_secret,
            "username": username,
            "password": password,
        },
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=30.0,
    )
    r.raise_for_status()
    return r.json()["access_token"]


def percentiles(latencies: list[float]) -> tuple[float, float, float]:
    n = len(latencies)
    ordered = sorted(latencies)
    p50 = statistics.median(latencies) * 1000
    p95 = ordered[int(n * 0.95) - 1] * 1000 if n >= 20 else p50
    p99 = ordered[int(n * 0.99) - 1] * 1000 if n >= 100 else p95
    return p50, p95, p99


def wait_indexed(client: httpx.Client, api_url: str, record_id: int, timeout: float) -> float:
    """Poll until the record is served by the index; return seconds waited."""
    t0 = time.perf_counter()
    while time.perf_counter() - t0 < timeout:
        r = client.get(f"{api_url}/v1/records/{record_id}")
        if r.status_code == 200:
            return time.perf_counter() - t0
        time.sleep(0.05)
    raise TimeoutError(f"record {record_id} not indexed after {timeout}s")


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark notarization and verification")
    parser.add_argument("--num-docs", type=int, default=50, help="Number of documents to notarize")
    parser.add_argument("--content-size", type=int, default=4096, help="Bytes per document")
    parser.add_argument("--index-timeout", type=float, default=30.0, help="Seconds to wait per record")
    parser.add_argument("--output", type=str, default="/results/bench_verify.txt", help="Output file path")
    args = parser.parse_args()

    api_url = os.environ.get("API_URL", "http://localhost:8000").rstrip("/")
    headers: dict[str, str] = {}
    client_secret = os.environ.get("KEYCLOAK_CLIENT_SECRET", "")
    if client_secret:
        print("Getting token...")
        token = get_token(
            os.environ.get("KEYCLOAK_URL", "http://localhost:8080"),
            os.environ.get("KEYCLOAK_REALM", "docnotary"),
            os.environ.get("KEYCLOAK_CLIENT_ID", "docnotary-api"),
            client_secret,
            os.environ.get("BENCH_USER", "testuser"),
            os.environ.get("BENCH_PASSWORD", "testpass"),
        )
        headers["Authorization"] = f"Bearer {token}"

    index_delays: list[float] = []
    verify_latencies: list[float] = []
    wrong = 0

    print(f"Notarizing {args.num_docs} documents ({args.content_size} bytes each)...")
    with httpx.Client(timeout=120.0, headers=headers) as client:
        for i in range(args.num_docs):
            body = os.urandom(args.content_size)
            r = client.post(
                f"{api_url}/v1/notarizations",
                files={"document": (f"bench_{i}.bin", body, "application/octet-stream")},
                data={"sender": SENDER, "recipient": RECIPIENT, "reference": f"bench {i}"},
            )
            r.raise_for_status()
            record_id = r.json()["record_id"]
            index_delays.append(wait_indexed(client, api_url, record_id, args.index_timeout))

            tampered = bytes([body[0] ^ 0xFF]) + body[1:]
            for candidate, expected in ((body, True), (tampered, False)):
                t0 = time.perf_counter()
                r = client.post(
                    f"{api_url}/v1/records/{record_id}/verify",
                    content=candidate,
                    headers={"Content-Type": "application/octet-stream"},
                )
                verify_latencies.append(time.perf_counter() - t0)
                r.raise_for_status()
                if r.json()["matched"] is not expected:
                    wrong += 1

    if not verify_latencies:
        print("Nothing verified.")
        return 1

    i50, i95, i99 = percentiles(index_delays)
    v50, v95, v99 = percentiles(verify_latencies)
    summary = (
        f"Notarize/verify benchmark (docs={len(index_delays)}, wrong answers={wrong})\n"
        f"  Indexing delay: p50={i50:.1f} ms, p95={i95:.1f} ms, p99={i99:.1f} ms\n"
        f"  Verify latency: p50={v50:.1f} ms, p95={v95:.1f} ms, p99={v99:.1f} ms\n"
    )
    print(summary)

    try:
        os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(summary)
        print(f"Wrote {args.output}")
    except OSError:
        pass

    return 1 if wrong else 0


if __name__ == "__main__":
    sys.exit(main())
