"""
Core business logic for practice planning.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns, so the planning rules can be tested in
isolation.
"""
