#!/usr/bin/env python3
"""One-shot backup runner"""
import sys
from sshbackup.runner import main

if __name__ == '__main__':
    # Reads .env from the working directory, then the process environment
    sys.exit(main())
