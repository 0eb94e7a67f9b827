"""
Table definitions.

Plain DDL that runs on Snowflake and on the SQLite database behind the
mock connection. There are deliberately no unique constraints on round
or roster positions: those invariants are checked by the enforcer over
the staged state, which lets a batch pass through intermediate states
(e.g. two sets swapping rounds).
"""

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS clubs (
        club_id VARCHAR(36) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        ideal_sets_per_dog FLOAT DEFAULT 2
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS club_members (
        club_id VARCHAR(36) NOT NULL,
        user_id VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS locations (
        location_id VARCHAR(36) PRIMARY KEY,
        club_id VARCHAR(36) NOT NULL,
        name VARCHAR(255) NOT NULL,
        is_default BOOLEAN DEFAULT FALSE,
        is_double_lane BOOLEAN DEFAULT FALSE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS handlers (
        handler_id VARCHAR(36) PRIMARY KEY,
        club_id VARCHAR(36) NOT NULL,
        given_name VARCHAR(255),
        surname VARCHAR(255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dogs (
        dog_id VARCHAR(36) PRIMARY KEY,
        club_id VARCHAR(36) NOT NULL,
        name VARCHAR(255) NOT NULL,
        owner_id VARCHAR(36),
        training_level INTEGER DEFAULT 1,
        status VARCHAR(16) DEFAULT 'Active'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS practices (
        practice_id VARCHAR(36) PRIMARY KEY,
        club_id VARCHAR(36) NOT NULL,
        scheduled_at VARCHAR(40) NOT NULL,
        status VARCHAR(16) DEFAULT 'Draft',
        is_private BOOLEAN DEFAULT FALSE,
        planned_by_id VARCHAR(255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS practice_attendances (
        attendance_id VARCHAR(36) PRIMARY KEY,
        practice_id VARCHAR(36) NOT NULL,
        dog_id VARCHAR(36) NOT NULL,
        attending VARCHAR(16) DEFAULT 'Unknown'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sets (
        set_id VARCHAR(36) PRIMARY KEY,
        practice_id VARCHAR(36) NOT NULL,
        location_id VARCHAR(36) NOT NULL,
        set_index INTEGER NOT NULL,
        set_type VARCHAR(32),
        type_custom VARCHAR(255),
        notes VARCHAR(4000),
        is_warmup BOOLEAN DEFAULT FALSE,
        rating VARCHAR(16),
        created_at VARCHAR(40) NOT NULL,
        updated_at VARCHAR(40) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS set_dogs (
        set_dog_id VARCHAR(36) PRIMARY KEY,
        set_id VARCHAR(36) NOT NULL,
        dog_id VARCHAR(36) NOT NULL,
        dog_index INTEGER NOT NULL,
        lane VARCHAR(8)
    )
    """,
]
