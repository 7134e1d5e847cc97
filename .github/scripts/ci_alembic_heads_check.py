"""CI gate: the migration graph must stay a single line ending at EXPECTED_HEAD.

A second root or a fork makes `alembic upgrade head` ambiguous. New migrations
set down_revision to the current head and bump EXPECTED_HEAD here.

Usage:
  python .github/scripts/ci_alembic_heads_check.py
"""
from __future__ import annotations

import sys
from pathlib import Path

api_root = Path(__file__).resolve().parents[2] / "apps" / "api"
sys.path.insert(0, str(api_root))

from alembic.config import Config
from alembic.script import ScriptDirectory

EXPECTED_HEAD = "001"


def main() -> int:
    cfg = Config(str(api_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(api_root / "alembic"))
    script = ScriptDirectory.from_config(cfg)

    problems = []

    heads = sorted(script.get_heads())
    if heads != [EXPECTED_HEAD]:
        problems.append(f"heads are {heads}, expected ['{EXPECTED_HEAD}']")

    revisions = list(script.walk_revisions())
    roots = sorted(r.revision for r in revisions if r.down_revision is None)
    if len(roots) != 1:
        problems.append(f"{len(roots)} root revisions {roots}, expected exactly one")

    if problems:
        print("MIGRATION GRAPH CHECK FAILED")
        for p in problems:
            print(f"  - {p}")
        print("  Fix: chain new migrations off the current head and update EXPECTED_HEAD.")
        return 1

    print(f"Migration graph OK: head {EXPECTED_HEAD}, {len(revisions)} revision(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
