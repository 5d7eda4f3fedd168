"""
SQLite schema for the habit ledger.
"""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS habits (
    uuid TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    icon TEXT NOT NULL,
    color TEXT NOT NULL,
    frequency TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    archived INTEGER DEFAULT 0,
    archived_at TEXT,
    display_order INTEGER DEFAULT 0,
    reminder_time TEXT
);

CREATE INDEX IF NOT EXISTS idx_habits_archived ON habits (archived);
CREATE INDEX IF NOT EXISTS idx_habits_order ON habits (display_order);

CREATE TABLE IF NOT EXISTS completions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    habit_uuid TEXT NOT NULL,
    date TEXT NOT NULL,
    completed INTEGER DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_completions_habit_date
    ON completions (habit_uuid, date);
CREATE INDEX IF NOT EXISTS idx_completions_habit ON completions (habit_uuid);

CREATE TABLE IF NOT EXISTS settings (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    theme TEXT NOT NULL,
    grid_size TEXT NOT NULL,
    start_of_week INTEGER NOT NULL,
    timezone TEXT NOT NULL,
    notifications INTEGER NOT NULL,
    created_at TEXT,
    updated_at TEXT
);
"""
