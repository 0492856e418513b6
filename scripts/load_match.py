#!/usr/bin/env python3
"""
Replay recorded matches through the scoring API.

Reads JSON match files from data/sample/ and scores them ball by ball against
the running server using the public endpoints, the same calls a scorer's
client makes.

Workflow per file:
  1. POST  /api/matches                      create match (teams, toss, format)
  2. POST  /api/matches/{id}/start
  3. per ball: select striker / non-striker / bowler when they change,
     then POST /api/matches/{id}/balls
  4. POST  /api/matches/{id}/end-innings     after each innings

File format: the create-match body plus ``innings: [{"balls": [...]}]``, where
each ball carries ``striker``, ``non_striker`` and ``bowler`` ids alongside
the scoring fields (runs, extra_type, extra_runs, wicket_type, ...).

Usage:
    python scripts/load_match.py                       # load all JSON files
    python scripts/load_match.py sample_t20.json       # load one file
    python scripts/load_match.py --base-url http://localhost:8001

Requires the server to be running (uvicorn livescore.main:app).
"""

import argparse
import json
import sys
from pathlib import Path

import httpx

FEED_DIR = Path(__file__).resolve().parent.parent / "data" / "sample"
DEFAULT_BASE_URL = "http://localhost:8000"

BALL_FIELDS = ("runs", "extra_type", "extra_runs", "wicket_type", "out_batsman", "fielder")


def _post(client: httpx.Client, path: str, body: dict | None = None) -> dict:
    resp = client.post(path, json=body)
    if resp.status_code >= 400:
        raise RuntimeError(f"POST {path} -> {resp.status_code}: {resp.text}")
    return resp.json()


# ------------------------------------------------------------------ #
#  Player slots
# ------------------------------------------------------------------ #

def align_players(client: httpx.Client, base: str, match: dict, ball: dict) -> dict:
    """Make the server's striker, non-striker and bowler match the ball's."""
    innings = match["innings"][match["current_innings_number"] - 1]
    striker, non_striker = ball["striker"], ball.get("non_striker")

    # Batters crossed: one swap instead of two selections
    if striker == innings["non_striker"] or (non_striker and non_striker == innings["striker"]):
        match = _post(client, f"{base}/swap")
        innings = match["innings"][match["current_innings_number"] - 1]

    if innings["striker"] != striker:
        match = _post(client, f"{base}/striker", {"player_id": striker})
    if non_striker and innings["non_striker"] != non_striker:
        match = _post(client, f"{base}/non-striker", {"player_id": non_striker})
    if innings["current_bowler"] != ball["bowler"]:
        match = _post(client, f"{base}/bowler", {"player_id": ball["bowler"]})
    return match


# ------------------------------------------------------------------ #
#  Load a single match file
# ------------------------------------------------------------------ #

def load_file(client: httpx.Client, filepath: Path) -> bool:
    """Score one JSON match file via the API. Returns True on success."""
    print(f"\n{'='*60}")
    print(f"Loading: {filepath.name}")
    print(f"{'='*60}")

    with open(filepath) as f:
        raw = json.load(f)

    innings_data = raw.pop("innings", [])
    if not innings_data:
        print(f"  SKIP: no innings data in {filepath.name}")
        return False

    match_id = raw.get("id")
    if match_id and client.get(f"/api/matches/{match_id}").status_code == 200:
        print(f"  SKIP: match {match_id} already exists")
        return True

    match = _post(client, "/api/matches", raw)
    match_id = match["id"]
    base = f"/api/matches/{match_id}"
    print(f"  Created match: id={match_id}, {match['team1']['name']} vs {match['team2']['name']}")

    match = _post(client, f"{base}/start")
    total_balls = 0
    for number, inn in enumerate(innings_data, start=1):
        for ball in inn.get("balls", []):
            match = align_players(client, base, match, ball)
            body = {k: ball[k] for k in BALL_FIELDS if k in ball}
            match = _post(client, f"{base}/balls", body)
            total_balls += 1

        innings = match["innings"][number - 1]
        print(f"  Innings {number}: {innings['team_id']} "
              f"{innings['total_runs']}/{innings['total_wickets']} "
              f"({innings['total_overs']}.{innings['current_over_balls']} Ov)")
        match = _post(client, f"{base}/end-innings")

    if match["status"] != "COMPLETED":
        match = _post(client, f"{base}/end-match")

    result = match["result"]
    print(f"  Result: {result['winner'] or '-'} "
          f"by {result['win_margin']} {result['win_margin_type']}")
    print(f"  SUCCESS: match_id={match_id}, {total_balls} balls scored")
    return True


# ------------------------------------------------------------------ #
#  CLI entry point
# ------------------------------------------------------------------ #

def main():
    parser = argparse.ArgumentParser(description="Replay match files through the scoring API")
    parser.add_argument(
        "files", nargs="*",
        help="JSON filenames to load (default: all *.json in data/sample/)",
    )
    parser.add_argument(
        "--base-url", default=DEFAULT_BASE_URL,
        help=f"Server base URL (default: {DEFAULT_BASE_URL})",
    )
    args = parser.parse_args()

    if args.files:
        filepaths = []
        for name in args.files:
            p = FEED_DIR / name
            if not p.exists():
                print(f"ERROR: file not found: {p}")
                sys.exit(1)
            filepaths.append(p)
    else:
        filepaths = sorted(FEED_DIR.glob("*.json"))
        if not filepaths:
            print(f"No JSON files found in {FEED_DIR}")
            sys.exit(1)

    print(f"Server: {args.base_url}")
    print(f"Files:  {len(filepaths)}")

    client = httpx.Client(base_url=args.base_url, timeout=60.0)
    try:
        resp = client.get("/api/matches")
        resp.raise_for_status()
    except httpx.ConnectError:
        print(f"\nERROR: Cannot connect to {args.base_url}")
        print("Make sure the server is running: uvicorn livescore.main:app")
        sys.exit(1)

    success = 0
    failed = 0
    for fp in filepaths:
        try:
            if load_file(client, fp):
                success += 1
            else:
                failed += 1
        except Exception as e:
            print(f"\n  FAILED: {e}")
            failed += 1

    print(f"\n{'='*60}")
    print(f"Done: {success} succeeded, {failed} failed")
    print(f"{'='*60}")

    client.close()


if __name__ == "__main__":
    main()
