#!/usr/bin/env python3
"""
Seed a running backend with demo tenders spread across the board columns.

Run with backend up: uvicorn licitaciones.main:app --reload (from backend dir)

Usage:
  python scripts/seed_demo_tenders.py
  python scripts/seed_demo_tenders.py --base http://localhost:8001

Writes: scripts/demo_tenders.json with the created tender IDs.
"""

import json
import os
import sys
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime, timedelta
from pathlib import Path

BASE_URL = os.environ.get("API_BASE", "http://localhost:8000").rstrip("/")

DEMO_RULES = (
    "1. Solo servicios de mantenimiento y limpieza en la Comunidad de Madrid.\n"
    "2. Descartar si exigen ISO 14001 o clasificación empresarial.\n"
    "3. Presupuesto mínimo 30.000 EUR."
)


def request(method: str, path: str, body: dict | None = None, form: dict | None = None) -> dict:
    url = f"{BASE_URL}{path}"
    data = None
    headers = {}
    if body is not None:
        data = json.dumps(body).encode("utf-8")
        headers["Content-Type"] = "application/json"
    elif form is not None:
        data = urllib.parse.urlencode(form).encode("utf-8")
        headers["Content-Type"] = "application/x-www-form-urlencoded"
    req = urllib.request.Request(url, data=data, method=method, headers=headers)
    try:
        with urllib.request.urlopen(req, timeout=30) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        err_body = e.read().decode("utf-8") if e.fp else ""
        raise SystemExit(f"HTTP {e.code} {path}: {err_body}")
    except urllib.error.URLError as e:
        raise SystemExit(f"Request failed (is the backend running at {BASE_URL}?): {e.reason}")


def create_tender(fields: dict) -> dict:
    return request("POST", "/tenders", form={k: v for k, v in fields.items() if v is not None})


def set_status(tender_id: str, status: str) -> dict:
    return request("PATCH", f"/tenders/{tender_id}/status", body={"status": status})


def main() -> None:
    global BASE_URL
    if "--help" in sys.argv or "-h" in sys.argv:
        print(__doc__)
        sys.exit(0)
    for i, arg in enumerate(sys.argv):
        if arg == "--base" and i + 1 < len(sys.argv):
            BASE_URL = sys.argv[i + 1].rstrip("/")
            break

    print(f"Using API base: {BASE_URL}")
    request("PUT", "/rules", body={"content": DEMO_RULES})
    print("  Business rules updated")

    today = datetime.utcnow().date()
    demo = [
        ({
            "name": "Servicio de limpieza de edificios municipales",
            "expedientNumber": "DEMO/2024/001",
            "budget": "120.000 EUR",
            "scoringSystem": "Precio 60, criterios técnicos 40",
            "deadline": (today + timedelta(days=20)).isoformat(),
        }, None),
        ({
            "name": "Mantenimiento de zonas verdes",
            "expedientNumber": "DEMO/2024/002",
            "budget": "45.000 EUR",
            "deadline": (today + timedelta(days=12)).isoformat(),
        }, "IN_DOUBT"),
        ({
            "name": "Mantenimiento de climatización del hospital",
            "expedientNumber": "DEMO/2024/003",
            "budget": "310.000 EUR",
            "deadline": (today + timedelta(days=30)).isoformat(),
        }, "IN_PROGRESS"),
        ({
            "name": "Suministro de vehículos eléctricos",
            "expedientNumber": "DEMO/2024/004",
            "budget": "900.000 EUR",
            "deadline": (today + timedelta(days=5)).isoformat(),
        }, "REJECTED"),
        ({
            "name": "Limpieza viaria 2023",
            "expedientNumber": "DEMO/2023/017",
            "budget": "75.000 EUR",
            "deadline": (today - timedelta(days=200)).isoformat(),
        }, "ARCHIVED"),
    ]

    created = []
    for fields, status in demo:
        tender = create_tender(fields)
        if status:
            tender = set_status(tender["id"], status)
        created.append({"id": tender["id"], "name": tender["name"], "status": tender["status"]})
        print(f"  {tender['status']:<12} {tender['expedientNumber']}  {tender['name'][:50]}")

    manifest_path = Path(__file__).resolve().parent / "demo_tenders.json"
    manifest = {
        "base_url": BASE_URL,
        "created_at": datetime.utcnow().isoformat() + "Z",
        "tenders": created,
    }
    manifest_path.write_text(json.dumps(manifest, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"  Manifest: {manifest_path}")

    print("\nDone. Next:")
    print("  1. GET /tenders/board and confirm one tender per column.")
    print("  2. GET /tenders?status=ARCHIVED lists the archived one.")
    print("  3. POST /tenders/{id}/analyze on the pending tender (needs OLLAMA_BASE_URL).")


if __name__ == "__main__":
    main()
