#!/usr/bin/env python3
"""
Seed script — creates a realistic dataset for exercising the API.

Creates:
  • 8 channels (users)
  • 3 videos per channel
  • A few comments and tweets
  • Likes on videos/comments/tweets and channel subscriptions

Run after docker compose up:
  python scripts/seed_data.py --api-url http://localhost:8000

All IDs are printed so you can use them in curl commands.
"""
import argparse
import base64
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional


BASE_USERS = [
    ("alice_films", "Alice Chen"),
    ("bob_builds", "Bob Martinez"),
    ("carol_cooks", "Carol Singh"),
    ("dave_drums", "Dave Kim"),
    ("eve_explores", "Eve Johnson"),
    ("frank_fixes", "Frank Williams"),
    ("grace_games", "Grace Li"),
    ("henry_hikes", "Henry Brown"),
]

VIDEO_TITLES = [
    "Unboxing the new camera",
    "Ten minute pasta",
    "Drum cover: a classic riff",
    "Hiking the ridge at sunrise",
    "Fixing a squeaky door hinge",
    "Speedrun attempt #12",
    "Building a bookshelf from scratch",
    "Street food tour",
    "Timelapse: city at night",
    "Beginner guitar lesson 1",
]

COMMENTS = [
    "Great video!",
    "This helped a lot, thanks.",
    "What camera do you use?",
    "Subscribed!",
    "Can you do a follow-up?",
]

TWEETS = [
    "New upload this weekend.",
    "Editing all night again.",
    "Thanks for 100 subscribers!",
    "Which topic should I cover next?",
]

# Tiny placeholder payloads — the API only needs valid base64.
FAKE_VIDEO = base64.b64encode(b"\x00\x00\x00\x18ftypmp42").decode()
FAKE_IMAGE = base64.b64encode(b"\xff\xd8\xff\xe0JFIF").decode()

PASSWORD = "seed-password-123"


@dataclass
class ApiClient:
    base_url: str
    token: Optional[str] = None

    def _request(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode() if data is not None else None
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        req = urllib.request.Request(url, data=body, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: Optional[dict] = None) -> dict:
        return self._request("POST", path, data if data is not None else {})

    def get(self, path: str) -> dict:
        return self._request("GET", path)

    def as_user(self, token: str) -> "ApiClient":
        return ApiClient(self.base_url, token)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for i in range(retries):
        try:
            result = client.get("/health")
            if result.get("status") == "ok":
                print("  API is ready!\n")
                return
        except Exception:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Create users ─────────────────────────────────────────────────────
    print("Creating channels...")
    sessions: dict[str, ApiClient] = {}
    for username, full_name in BASE_USERS:
        client.post(
            "/users/register",
            {
                "username": username,
                "email": f"{username}@example.com",
                "full_name": full_name,
                "password": PASSWORD,
                "avatar_base64": FAKE_IMAGE,
            },
        )
        login = client.post("/users/login", {"username": username, "password": PASSWORD})
        if login.get("access_token"):
            uid = login["user"]["id"]
            sessions[uid] = client.as_user(login["access_token"])
            print(f"  ✓ {username} ({uid})")
        else:
            print(f"  ✗ Failed to create {username}")

    if not sessions:
        print("No users created — aborting")
        return
    user_ids = list(sessions)

    # ── Videos, comments, tweets ─────────────────────────────────────────
    print("\nPublishing videos...")
    video_ids: list[str] = []
    for uid, session in sessions.items():
        for title in random.sample(VIDEO_TITLES, k=3):
            result = session.post(
                "/videos/",
                {
                    "title": title,
                    "description": f"{title} — full walkthrough",
                    "duration": round(random.uniform(60, 900), 1),
                    "video_base64": FAKE_VIDEO,
                    "thumbnail_base64": FAKE_IMAGE,
                },
            )
            if result.get("id"):
                video_ids.append(result["id"])
        session.post("/tweets/", {"content": random.choice(TWEETS)})
    print(f"  ✓ {len(video_ids)} videos published")

    print("\nAdding comments...")
    comment_ids: list[str] = []
    for video_id in video_ids:
        for uid in random.sample(user_ids, k=random.randint(0, 3)):
            result = sessions[uid].post(
                f"/comments/video/{video_id}", {"content": random.choice(COMMENTS)}
            )
            if result.get("id"):
                comment_ids.append(result["id"])
    print(f"  ✓ {len(comment_ids)} comments added")

    # ── Likes & subscriptions ────────────────────────────────────────────
    print("\nToggling likes and subscriptions...")
    toggles = 0
    for video_id in video_ids:
        for uid in random.sample(user_ids, k=random.randint(0, 5)):
            sessions[uid].post(f"/relations/video_like/{video_id}")
            toggles += 1
    for comment_id in comment_ids:
        for uid in random.sample(user_ids, k=random.randint(0, 2)):
            sessions[uid].post(f"/relations/comment_like/{comment_id}")
            toggles += 1
    for subscriber in user_ids:
        for channel in random.sample([u for u in user_ids if u != subscriber], k=3):
            sessions[subscriber].post(f"/relations/subscription/{channel}")
            toggles += 1
    print(f"  ✓ {toggles} toggles applied")

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    if video_ids:
        v = video_ids[0]
        print("# Like count of a video:")
        print(f"  curl -s '{api_url}/relations/video_like/{v}/count' | python3 -m json.tool\n")
        print("# Who liked it:")
        print(f"  curl -s '{api_url}/relations/video_like/{v}/actors' | python3 -m json.tool\n")
    u = user_ids[0]
    print("# A channel profile (subscriber_count):")
    print(f"  curl -s '{api_url}/users/{u}' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus: http://localhost:9090")
    print("# Check MinIO: http://localhost:9001 (minioadmin/minioadmin)")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the MediaHub API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
