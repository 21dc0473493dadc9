#!/usr/bin/env python3
"""
Reset a card to unclaimed: detaches the profile and clears the claim date.

Usage:
  python scripts/unclaim_card.py --code AB7K9Q2M [--clear-nfc]
"""
from __future__ import annotations

import argparse
import sys

from kardo.domain.codes import is_valid_code, normalize_code
from kardo.repositories.sql_repository import SQLRepository


def main() -> None:
    ap = argparse.ArgumentParser(description="Reset a Kardo card to unclaimed")
    ap.add_argument("--code", required=True, help="Card code to reset")
    ap.add_argument("--clear-nfc", action="store_true", help="Also mark the NFC tag as unassigned")
    args = ap.parse_args()

    repo = SQLRepository()
    code = normalize_code(args.code)
    if not is_valid_code(code):
        raise SystemExit("Invalid card code")
    card = repo.get_card(code)
    if not card:
        raise SystemExit(f"Card '{code}' not found")
    if card.status == "disabled":
        raise SystemExit(f"Card '{code}' is disabled")
    owner = repo.get_profile_handle(card.profile_id) if card.profile_id else None

    repo.unclaim_card(code)
    if args.clear_nfc:
        repo.set_nfc_tag_assigned(code, False)

    print("OK: card reset")
    print(f"  Code: {code}")
    if owner:
        print(f"  Previous profile: {owner}")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
