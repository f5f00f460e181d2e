#!/usr/bin/env python3
"""
Entry point for running redis_embedded as a module.
This file enables: python -m redis_embedded
"""

from .main import main

if __name__ == '__main__':
    main()
