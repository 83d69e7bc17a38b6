#!/usr/bin/env python3
"""
VacantCourt - Command Line Interface

Main entry point for the court occupancy monitoring system.
"""

import sys

from vacantcourt.cli import main

if __name__ == '__main__':
    sys.exit(main())
