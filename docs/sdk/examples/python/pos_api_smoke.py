import os
import sys

import httpx

base_url = os.getenv("RETAILPOS_BASE_URL", "http://localhost:8000").rstrip("/")
username = os.getenv("RETAILPOS_USERNAME", "admin")
password = os.getenv("RETAILPOS_PASSWORD")

if not password:
    raise RuntimeError("RETAILPOS_PASSWORD is required")


def main() -> int:
    with httpx.Client(base_url=base_url, timeout=15) as client:
        login = client.post("/auth/login", json={"username": username, "password": password})
        login.raise_for_status()
        headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

        low_stock = client.get("/products/low-stock", headers=headers)
        low_stock.raise_for_status()
        report = client.get("/reports/sales", headers=headers)
        report.raise_for_status()

    totals = report.json()["totals"]
    print(f"Low stock products: {len(low_stock.json()['items'])}")
    print(f"Sales recorded: {totals['sale_count']} (revenue {totals['revenue']:.2f})")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except httpx.HTTPError as exc:
        print(f"POS API probe failed: {exc}", file=sys.stderr)
        raise SystemExit(1)
