# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""CLI entry point for persistent-object (python -m persistent_object).

Usage:
    persistent-object --help
    persistent-object schema myapp.models:Widget --db ./app.db
    persistent-object dump myapp.models:Widget --expand owner
"""

from .cli import main

if __name__ == "__main__":
    main()
