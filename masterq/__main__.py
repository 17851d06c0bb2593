#!/usr/bin/env python3
"""Run the masterq command line interface."""

from __future__ import annotations

from masterq.cli.main import main

if __name__ == "__main__":
    main()
