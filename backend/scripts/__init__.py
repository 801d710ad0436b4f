"""
Backend Scripts Module

Utility scripts for seeding and checking workflow definitions.

Available scripts:
    - seed_data.py: Stores sample workflows in MongoDB
    - validate_workflow.py: Prints the validation report of a workflow

Usage:
    python -m scripts.seed_data
"""
