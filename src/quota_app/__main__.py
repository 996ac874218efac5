# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""python -m quota_app: print the quota report."""

import sys

from .main import report_main

sys.exit(report_main())
