#!/usr/bin/env python3
"""Emit SQL that grants a SignalX account a role and review status."""

from __future__ import annotations

import argparse


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(*, role: str, status: str, uid: str | None, email: str | None) -> str:
    if uid:
        target_where = f"uid = {_quote_sql(uid)}"
    else:
        assert email is not None
        target_where = f"lower(email) = lower({_quote_sql(email)})"

    return f"""-- SignalX account bootstrap SQL
-- Run this against the SignalX database in a privileged Postgres session.

update users
set role = {_quote_sql(role)}, status = {_quote_sql(status)}, updated_at = now()
where {target_where};
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to promote a SignalX account.")
    parser.add_argument(
        "--role",
        choices=["user", "admin"],
        default="admin",
        help="Role stored in users.role",
    )
    parser.add_argument(
        "--status",
        choices=["pending", "approved", "rejected"],
        default="approved",
        help="Review status stored in users.status",
    )
    identity_group = parser.add_mutually_exclusive_group(required=True)
    identity_group.add_argument("--uid", help="users.uid as issued by the sign-in provider")
    identity_group.add_argument("--email", help="users.email (matched case-insensitively)")
    args = parser.parse_args()

    print(render_sql(role=args.role, status=args.status, uid=args.uid, email=args.email))


if __name__ == "__main__":
    main()
