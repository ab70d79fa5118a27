"""Admin support: Ruby lifecycle data, SQLite schema migrations, dashboard and changelog HTML, and catalogue view models."""