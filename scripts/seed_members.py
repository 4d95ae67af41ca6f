#!/usr/bin/env python3
"""
Seed Members
============
Loads attendees from a JSON file into the members table.

Flow:
1. Load the JSON list of attendee records
2. Register each one (validation, insert, immediate embedding)
3. Optionally generate embeddings for any member still missing one
4. Optionally generate top and broader intros for every seeded member

Usage:
    python scripts/seed_members.py
    python scripts/seed_members.py --json data/sample_members.json
    python scripts/seed_members.py --embed     # Fill in missing embeddings afterwards
    python scripts/seed_members.py --generate  # Also generate top + broader intros

Requirements:
    - SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables
    - OPENAI_API_KEY for embeddings and AI intros (fallback intros without it)
"""

import sys
import json
import argparse
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Dict, Any

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from match_generator import MatchGenerator


@dataclass
class SeedResult:
    registered: List[str] = field(default_factory=list)
    skipped: int = 0
    embeddings_failed: int = 0
    intros_generated: int = 0
    errors: List[str] = field(default_factory=list)


def load_members(json_path: str) -> List[Dict[str, Any]]:
    """Load attendee records from a JSON list"""
    path = Path(json_path)
    if not path.exists():
        raise ValueError(f"JSON file not found: {json_path}")

    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"{json_path} must contain a JSON list of attendee records")
    return data


def seed(generator: MatchGenerator, members: List[Dict[str, Any]], embed: bool = False, generate: bool = False) -> SeedResult:
    result = SeedResult()

    print(f"Registering {len(members)} members...")
    for i, member in enumerate(members, start=1):
        outcome = generator.register_member(member)
        if outcome['success']:
            result.registered.append(outcome['member_id'])
            print(f"  [{i}/{len(members)}] {member.get('name')} -> {outcome['member_id']}")
        else:
            result.skipped += 1
            result.errors.append(f"{member.get('name', 'Row ' + str(i))}: {outcome['error']}")
            print(f"  [{i}/{len(members)}] Skipped {member.get('name')}: {outcome['error']}")

    if embed:
        print("\nGenerating missing embeddings...")
        outcome = generator.generate_missing_embeddings()
        if outcome['success']:
            result.embeddings_failed = len(outcome['failed'])
            print(f"  Updated {len(outcome['updated'])}, failed {len(outcome['failed'])}")
        else:
            result.errors.append(f"Embeddings: {outcome['error']}")

    if generate:
        print("\nGenerating intros...")
        for member_id in result.registered:
            for tier in ('top', 'broader'):
                outcome = generator.generate_matches_for_member(member_id, tier)
                if outcome['success']:
                    result.intros_generated += outcome['count']
                    print(f"  {member_id} {tier}: {outcome['count']} intros")
                else:
                    result.errors.append(f"{member_id} {tier}: {outcome['error']}")

    return result


def main():
    parser = argparse.ArgumentParser(
        description="Seed attendees from a JSON file and optionally generate their intros"
    )
    parser.add_argument(
        '--json', '-j',
        default='data/sample_members.json',
        help='Path to attendee JSON file'
    )
    parser.add_argument(
        '--embed',
        action='store_true',
        help='Generate embeddings for members still missing one'
    )
    parser.add_argument(
        '--generate',
        action='store_true',
        help='Generate top and broader intros for each seeded member'
    )

    args = parser.parse_args()

    try:
        members = load_members(args.json)
        generator = MatchGenerator()
        try:
            result = seed(generator, members, embed=args.embed, generate=args.generate)
        finally:
            generator.rich_service.close()
    except ValueError as e:
        print(f"Configuration Error: {e}")
        sys.exit(1)

    print(f"\n{'='*50}")
    print("Seed Summary")
    print(f"{'='*50}")
    print(f"Registered: {len(result.registered)}")
    print(f"Skipped: {result.skipped}")
    print(f"Embedding Failures: {result.embeddings_failed}")
    print(f"Intros Generated: {result.intros_generated}")
    print(f"Total Errors: {len(result.errors)}")
    for error in result.errors[:10]:
        print(f"  - {error}")


if __name__ == "__main__":
    main()
