#!/usr/bin/env python3
"""
Generate a batch of unclaimed cards directly in the database.

Usage:
  python scripts/generate_cards.py --count 100 [--length 8] [--out codes.txt]
"""
from __future__ import annotations

import argparse
import sys

from kardo.core.errors import KardoError
from kardo.repositories.sql_repository import SQLRepository
from kardo.services.code_generator import CodeGenerator


def main() -> None:
    ap = argparse.ArgumentParser(description="Generate unclaimed Kardo cards")
    ap.add_argument("--count", type=int, default=1, help="Number of cards (1-1000)")
    ap.add_argument("--length", type=int, default=8, help="Code length (6-16)")
    ap.add_argument("--out", help="Also write the codes to this file, one per line")
    args = ap.parse_args()

    try:
        codes = CodeGenerator(SQLRepository()).generate_and_store(args.count, args.length)
    except KardoError as exc:
        raise SystemExit(exc.message)

    if args.out:
        with open(args.out, "w", encoding="utf-8") as fh:
            fh.write("\n".join(codes) + "\n")
    print(f"OK: {len(codes)} cards created")
    for code in codes:
        print(f"  {code}")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
