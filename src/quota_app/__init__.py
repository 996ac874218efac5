# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""Terminal report and live dashboard for multi-account model quotas."""
