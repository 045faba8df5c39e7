# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Per-user records: the User type and records scoped to the current user."""

from .scoped import ScopedRecord
from .user import User

__all__ = ["ScopedRecord", "User"]
