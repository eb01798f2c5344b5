#!/usr/bin/env python3
"""Print the transcript of the current (or last) call from a running relay.

Usage:
    python scripts/call_transcript.py                          # localhost:3001, human-readable
    python scripts/call_transcript.py --url http://host:3001   # another server
    python scripts/call_transcript.py --raw                    # raw status JSON
    python scripts/call_transcript.py --gap-threshold 3        # flag silences over 3s
"""

import argparse
import json
import sys

import httpx

DEFAULT_URL = "http://localhost:3001"


def fetch_status(base_url: str, timeout: float = 10.0) -> dict:
    resp = httpx.get(f"{base_url.rstrip('/')}/call/status", timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def format_transcript(snapshot: dict, gap_threshold: float = 5.0) -> str:
    """Render a /call/status snapshot as a readable transcript.

    Times are relative to the first line. Gaps longer than gap_threshold
    seconds are marked so long holds stand out.
    """
    if snapshot.get("status") == "no_active_call":
        return "No active call."

    header = [
        f"Call: {snapshot.get('id', '?')}",
        f"Clinic: {snapshot.get('clinic', '')}",
        f"State: {snapshot.get('state', '')}",
    ]
    if snapshot.get("end_reason"):
        header.append(f"Ended: {snapshot['end_reason']}")

    lines = snapshot.get("transcript") or []
    if not lines:
        return "\n".join(header + ["", "(no transcript yet)"])

    base = lines[0].get("timestamp", 0.0)
    prev = base
    body = []
    for entry in lines:
        ts = entry.get("timestamp", prev)
        if ts - prev > gap_threshold:
            body.append(f"         ... {ts - prev:.1f}s gap ...")
        body.append(f"[{ts - base:6.1f}s] {entry.get('speaker', 'Unknown')}: {entry.get('text', '')}")
        prev = ts
    return "\n".join(header + [""] + body)


def main():
    parser = argparse.ArgumentParser(description="Print the call relay transcript")
    parser.add_argument("--url", default=DEFAULT_URL, help="Relay base URL")
    parser.add_argument("--raw", action="store_true", help="Print raw status JSON")
    parser.add_argument("--gap-threshold", type=float, default=5.0, help="Gap marker threshold in seconds")
    args = parser.parse_args()

    try:
        snapshot = fetch_status(args.url)
    except httpx.HTTPError as e:
        print(f"Could not reach {args.url}: {e}", file=sys.stderr)
        sys.exit(1)

    if args.raw:
        print(json.dumps(snapshot, indent=2))
    else:
        print(format_transcript(snapshot, args.gap_threshold))


if __name__ == "__main__":
    main()
