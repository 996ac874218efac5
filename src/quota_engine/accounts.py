# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Read-only access to the configured account list.

Expected JSON format:
{
  "accounts": [
    {"email": "alice@example.com", "refreshToken": "..."},
    ...
  ]
}
"""

import json
import logging
from pathlib import Path
from typing import List, Union

from .core.types import AccountConfig

lib_logger = logging.getLogger("quota_engine")

DEFAULT_ACCOUNTS_FILE = Path.home() / ".config" / "antigravity-proxy" / "accounts.json"


def load_accounts(path: Union[str, Path, None] = None) -> List[AccountConfig]:
    """
    Load configured accounts.

    A missing or unreadable file yields an empty list; the caller decides
    whether that is fatal. Entries without an email are skipped.
    """
    path = Path(path).expanduser() if path else DEFAULT_ACCOUNTS_FILE
    if not path.is_file():
        lib_logger.debug(f"No accounts file at {path}")
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        lib_logger.error(f"Error loading accounts from {path}: {e}")
        return []

    raw_accounts = data.get("accounts", []) if isinstance(data, dict) else []
    if not isinstance(raw_accounts, list):
        lib_logger.error(f"'accounts' in {path} is not a list")
        return []

    accounts: List[AccountConfig] = []
    for raw in raw_accounts:
        if not isinstance(raw, dict) or not raw.get("email"):
            lib_logger.warning("Skipping account entry without an email")
            continue
        extra = {k: v for k, v in raw.items() if k not in ("email", "refreshToken")}
        accounts.append(
            AccountConfig(
                email=str(raw["email"]),
                refresh_token=raw.get("refreshToken"),
                extra=extra,
            )
        )
    return accounts
