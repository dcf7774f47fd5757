#!/usr/bin/env python3
"""
Standalone launcher for the assessment runner.

Used as the PyInstaller entry script: the frozen executable unpacks the
assessment_engine package into its bundle directory, so that directory has
to be importable before the CLI is loaded.
"""

import os
import sys


def _package_root() -> str:
    if getattr(sys, 'frozen', False):
        return sys._MEIPASS
    return os.path.dirname(os.path.abspath(__file__))


if __name__ == "__main__":
    sys.path.insert(0, _package_root())
    from assessment_engine.cli import AssessmentRunner
    sys.exit(AssessmentRunner().run())
