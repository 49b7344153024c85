#!/usr/bin/env python3
"""
Example client for the exiftags HTTP server.

Start the server first:
    exiftags-server --port 8080

Then run this script to download the tag dictionary and summarize it.
"""

import json
import sys
from collections import Counter

try:
    import httpx
except ImportError:
    print("This example requires 'httpx'. Install it with:")
    print("  pip install httpx")
    sys.exit(1)


def fetch_tags(client: httpx.Client, base_url: str) -> list:
    """Stream /tags, reporting progress, and return the parsed tag list."""
    body = bytearray()
    with client.stream("GET", f"{base_url}/tags") as response:
        if response.status_code != 200:
            response.read()
            raise RuntimeError(f"HTTP {response.status_code}: {response.text}")
        for chunk in response.iter_bytes():
            body.extend(chunk)
            print(f"\rReceived {len(body):,} bytes", end="", flush=True)
    print()
    try:
        return json.loads(body)["tags"]
    except json.JSONDecodeError:
        # The server cuts the document short when exiftool fails mid-stream.
        raise RuntimeError("Truncated response; exiftool failed while streaming") from None


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://127.0.0.1:8080"

    try:
        with httpx.Client(timeout=60.0) as client:
            tags = fetch_tags(client, base_url)
    except httpx.ConnectError:
        print(f"\nError: Could not connect to server at {base_url}")
        print("\nMake sure the server is running:")
        print("  exiftags-server")
        sys.exit(1)
    except RuntimeError as e:
        print(f"\nError: {e}")
        sys.exit(1)

    print(f"\n=== {len(tags):,} tags ===")
    groups = Counter(entry["path"].split(":", 1)[0] for entry in tags)
    for group, count in groups.most_common(10):
        print(f"{group:30} {count:6,}")

    writable = sum(1 for entry in tags if entry["writable"])
    print(f"\nWritable: {writable:,}")
    languages = Counter(lang for entry in tags for lang in entry["description"])
    print("Languages:", ", ".join(f"{lang} ({count:,})" for lang, count in languages.most_common()))


if __name__ == "__main__":
    main()
