#!/usr/bin/env python3
"""CLI script to issue the PO review link for a deal.

Usage:
    python scripts/issue_po_link.py --deal-id 1234567890
    python scripts/issue_po_link.py --deal-id 1234567890 --base-url https://review.example.com/po

Reads PO_QUOTE_SECRET (and PO_REVIEW_BASE_URL when --base-url is omitted)
from the environment or .env file. Prints the access token and, when a base
URL is known, the full review link.
"""

from __future__ import annotations

import argparse
import os
import sys
from urllib.parse import urlencode

# Ensure project root is on sys.path so we can import src.sketch_review
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


def build_link(base_url: str, deal_id: str, token: str) -> str:
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode({'dealId': deal_id, 'token': token})}"


def main() -> None:
    from src.sketch_review.config import get_settings
    from src.sketch_review.core.errors import ConfigurationError
    from src.sketch_review.core.security import TokenAuthority

    parser = argparse.ArgumentParser(description="Issue the PO review link for a deal")
    parser.add_argument("--deal-id", required=True, help="HubSpot deal record id")
    parser.add_argument("--base-url", default=None, help="Review page URL (default: PO_REVIEW_BASE_URL)")
    args = parser.parse_args()

    settings = get_settings()
    try:
        token = TokenAuthority(settings.PO_QUOTE_SECRET).issue(args.deal_id)
    except ConfigurationError as exc:
        parser.exit(1, f"error: {exc.message}\n")

    print(f"Deal:  {args.deal_id}")
    print(f"Token: {token}")

    base_url = args.base_url or settings.PO_REVIEW_BASE_URL
    if base_url:
        print(f"Link:  {build_link(base_url, args.deal_id, token)}")


if __name__ == "__main__":
    main()
