#!/usr/bin/env python3
"""
Repair Bay Server - Smoke Check

Exercises a running server end to end. It leaves the fault index set to 1.
It checks:
- CORS preflight
- Status report
- Setting the fault index
- Repair bay page
- Teapot

Usage: python scripts/smoke_check.py [--url http://localhost:3000]
"""

import argparse
import sys

import requests

CORS_ORIGIN_HEADER = "Access-Control-Allow-Origin"


class SmokeCheckError(Exception):
    """Raised when the server does not behave as expected."""

    pass


def expect(condition: bool, message: str) -> None:
    if not condition:
        raise SmokeCheckError(message)
    print(f"✅ {message}")


def run_checks(base_url: str, timeout: float = 5.0) -> None:
    """
    Run every check against ``base_url``.

    Raises:
        SmokeCheckError: On the first failed expectation
        requests.RequestException: If the server cannot be reached
    """
    base_url = base_url.rstrip("/")

    response = requests.options(f"{base_url}/status", timeout=timeout)
    expect(response.status_code == 200, "Preflight answered with 200")
    expect(response.headers.get(CORS_ORIGIN_HEADER) == "*", "CORS headers present")

    response = requests.get(f"{base_url}/status", timeout=timeout)
    expect(response.status_code == 200, "Status endpoint reachable")
    current = response.json()["damaged_system"]
    print(f"📊 Currently damaged: {current}")

    response = requests.put(f"{base_url}/set-system-idx/1", timeout=timeout)
    expect(response.status_code == 204, "Fault index accepted")

    response = requests.get(f"{base_url}/status", timeout=timeout)
    expect(
        response.json() == {"damaged_system": "communications"},
        "Status follows the fault index",
    )

    response = requests.get(f"{base_url}/repair-bay", timeout=timeout)
    expect(response.status_code == 200, "Repair bay page rendered")
    expect("COM-02" in response.text, "Repair bay shows the system code")

    response = requests.put(f"{base_url}/set-system-idx/999", timeout=timeout)
    expect(response.status_code in (400, 500), "Out-of-range index rejected")

    response = requests.post(f"{base_url}/teapot", timeout=timeout)
    expect(
        response.status_code == 418 and response.text == "I'm a teapot",
        "Teapot is a teapot",
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Smoke check a running Repair Bay server")
    parser.add_argument("--url", default="http://localhost:3000", help="Server base URL")
    args = parser.parse_args(argv)

    print(f"🔧 Checking {args.url}")
    try:
        run_checks(args.url)
    except SmokeCheckError as e:
        print(f"❌ {e}")
        return 1
    except requests.RequestException as e:
        print(f"❌ Could not reach server: {e}")
        return 1

    print("🎉 All checks passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
