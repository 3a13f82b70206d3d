"""
Roster Loader Script - creates batches from a roster JSON file via the API.

The file holds a list of batches in the shape exported by the old
spreadsheet: {"code", "group", "students": [{"name", "email", "phone"}],
"trainers": [...], "coordinators": [...]}.

Usage:
    python load_roster.py rosters.json                          # Uses default URL
    python load_roster.py rosters.json http://localhost:8000    # Custom API URL
"""

import json
import os
import sys

import httpx


def build_batch_payload(raw: dict) -> dict:
    """Convert one roster file entry into a POST /api/batches body."""
    def person(p):
        return {"name": (p.get("name") or "").strip(), "email": p.get("email"), "phone": p.get("phone")}

    students = []
    for s in raw.get("students", []):
        if not (s.get("name") or "").strip():
            continue
        entry = person(s)
        if s.get("id"):
            entry["id"] = str(s["id"])
        if s.get("points") is not None:
            entry["points"] = int(s["points"])
        students.append(entry)

    return {
        "code": (raw.get("code") or "").strip(),
        "group_name": raw.get("group") or raw.get("group_name"),
        "default_meet_url": raw.get("meet_url") or raw.get("default_meet_url"),
        "students": students,
        "trainers": [person(p) for p in raw.get("trainers", []) if p.get("name")],
        "coordinators": [person(p) for p in raw.get("coordinators", []) if p.get("name")],
    }


def main():
    if len(sys.argv) < 2:
        print("Usage: python load_roster.py <rosters.json> [api_url]")
        sys.exit(1)

    data_file = sys.argv[1]
    api_url = sys.argv[2] if len(sys.argv) > 2 else os.getenv("API_URL", "http://localhost:8000")

    if not os.path.exists(data_file):
        print(f"Error: Could not find {data_file}")
        sys.exit(1)

    with open(data_file, "r", encoding="utf-8") as f:
        raw_batches = json.load(f)

    payloads = [build_batch_payload(b) for b in raw_batches]
    print(f"Found {len(payloads)} batches to create at {api_url}")
    print()

    created = 0
    with httpx.Client(base_url=api_url, timeout=30.0) as client:
        for payload in payloads:
            try:
                resp = client.post("/api/batches", json=payload)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                print(f"  ❌ {payload['code']}: {e}")
                continue
            created += 1
            body = resp.json()
            print(f"  ✅ {payload['code']}: {len(body.get('students', []))} students (id {body['id'][:8]}...)")

    print()
    print("=" * 60)
    print(f"  Created {created} of {len(payloads)} batches")
    print("=" * 60)


if __name__ == "__main__":
    main()
