#!/usr/bin/env python
"""Idempotent seed script for the default role grants.

Usage:
    python backend/scripts/seed_authz.py                # seed normally
    python backend/scripts/seed_authz.py --show-grants  # print role/action grid (after ensuring seed)
    python backend/scripts/seed_authz.py --dry-run      # run logic then rollback (no DB changes)
    python backend/scripts/seed_authz.py --export-json  # dump grants + checksum as JSON

The first-user bootstrap seeds the same baseline on its own; this script is for
environments created by migrations before anyone has logged in.
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json, hashlib

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from catalog_admin import create_app, get_db, get_stores  # type: ignore
from catalog_admin.constants.permissions import ALL_ACTIONS, ROLES
from catalog_admin.models.authz import Base
from catalog_admin.services.bootstrap import seed_default_grants


def build_grant_map(stores):
    mapping = {}
    for g in stores.grants.get_grants():
        mapping.setdefault(g.role, {})[g.action] = g.allowed
    return mapping


def print_grant_summary(grant_map):
    if not grant_map:
        print("[INFO] No grants present.")
        return
    action_w = max(len(a) for a in ALL_ACTIONS)
    print(f"{'Action'.ljust(action_w)} | " + ' | '.join(r.ljust(5) for r in ROLES))
    print('-' * (action_w + 3 + 8 * len(ROLES)))
    for action in ALL_ACTIONS:
        cells = []
        for role in ROLES:
            val = grant_map.get(role, {}).get(action)
            cells.append(('-' if val is None else ('yes' if val else 'no')).ljust(5))
        print(f"{action.ljust(action_w)} | " + ' | '.join(cells))


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed default role grants",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  dry run: seed_authz.py --dry-run\n  show grants: seed_authz.py --show-grants\n""")
    )
    p.add_argument('--show-grants', action='store_true', help='Print the role/action grant grid after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export grants JSON (to FILE or stdout if omitted)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        # Lightweight fallback if migrations not run yet; in real env prefer alembic upgrade
        Base.metadata.create_all(get_db().get_bind())

    with app.app_context():
        session = get_db()
        stores = get_stores()
        try:
            count = seed_default_grants(stores)
            grant_map = build_grant_map(stores)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Grants would upsert: {count}")
            else:
                session.commit()
                print(f"[DONE] Grants upserted: {count}")
            if args.show_grants:
                print('\nGrant Summary:')
                print_grant_summary(grant_map)
            if args.export_json is not None:
                canonical = json.dumps(grant_map, sort_keys=True, separators=(',', ':'))
                payload = {
                    'grants': grant_map,
                    'meta': {
                        'grants_checksum_sha256': hashlib.sha256(canonical.encode('utf-8')).hexdigest(),
                        'dry_run': args.dry_run,
                    }
                }
                if args.export_json == '-':
                    print(json.dumps(payload, indent=2, sort_keys=True))
                else:
                    with open(args.export_json, 'w', encoding='utf-8') as f:
                        json.dump(payload, f, indent=2, sort_keys=True)
                    print(f"[INFO] Exported JSON to {args.export_json}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

if __name__ == '__main__':
    main()
