"""
Backend Scripts Module

This module contains utility scripts for rule maintenance.

Available scripts:
    - validate_template.py: Checks a template rule definition file for
      malformed rules, undeclared dependencies and dependency cycles

Usage:
    python -m scripts.validate_template path/to/rules.json
"""
