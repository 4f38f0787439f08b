#!/usr/bin/env python3
"""
Re-score stored Freedom Diagnostic results with the current scoring rules.

Run after changing sprint priorities, tie-break rules or explanations so that
saved score_result payloads match what a fresh submission would produce.

Usage:
    python rescore_diagnostics.py [--user-id USER_ID] [--dry-run]

Examples:
    # Re-score every stored result
    python rescore_diagnostics.py

    # Re-score one user's results
    python rescore_diagnostics.py --user-id <user_id>

    # Dry run (show changes without saving)
    python rescore_diagnostics.py --dry-run
"""

import sys
import os
import argparse

# Add parent directory to path to import services
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from config.database import get_supabase
from services.freedom_scoring import ANSWER_KEYS, score_and_recommend


def get_stored_results(user_id=None):
    supabase = get_supabase()
    query = supabase.table('freedom_diagnostic_results').select('*')
    if user_id:
        query = query.eq('user_id', user_id)
    return query.order('created_at').execute().data or []


def rescore_result(row):
    """Return (new_score_result, changed) for a stored row"""
    responses = row.get('responses') or {key: row.get(key) for key in ANSWER_KEYS}
    score_result = score_and_recommend(responses)
    return score_result, score_result != row.get('score_result')


def main(argv=None):
    parser = argparse.ArgumentParser(description='Re-score stored Freedom Diagnostic results')
    parser.add_argument('--user-id', help='Only re-score results for this user')
    parser.add_argument('--dry-run', action='store_true', help='Calculate but do not save scores')

    args = parser.parse_args(argv)

    print("Loading stored diagnostic results...")
    rows = get_stored_results(args.user_id)

    if not rows:
        print("No diagnostic results found.")
        return 0

    print(f"Found {len(rows)} result(s).")

    if args.dry_run:
        print("\n[DRY RUN MODE - Scores will not be saved]\n")

    supabase = get_supabase()
    updated_count = 0
    unchanged_count = 0
    error_count = 0

    for row in rows:
        try:
            score_result, changed = rescore_result(row)
        except ValueError as e:
            print(f"  ✗ {row.get('id')}: {e}")
            error_count += 1
            continue

        if not changed:
            unchanged_count += 1
            continue

        order = ', '.join(item['sprint_key'] for item in score_result['recommended_order'])
        print(f"  {row.get('id')}: {score_result['percent']}% -> {order}")

        if not args.dry_run:
            supabase.table('freedom_diagnostic_results').update({
                'score_result': score_result,
                'total_score': score_result['total_score'],
                'percent': score_result['percent'],
            }).eq('id', row['id']).execute()
        updated_count += 1

    print(f"\n{'='*60}")
    print(f"Summary:")
    print(f"  Total processed: {len(rows)}")
    print(f"  {'Would update' if args.dry_run else 'Updated'}: {updated_count}")
    print(f"  Unchanged: {unchanged_count}")
    print(f"  Errors: {error_count}")
    print(f"{'='*60}")
    return error_count


if __name__ == '__main__':
    sys.exit(1 if main() else 0)
