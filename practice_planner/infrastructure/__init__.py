"""
Adapters for the systems the planner depends on.

snowflake/ holds the connection factory, the table definitions and the
repositories that turn rows into core models and back.
"""
