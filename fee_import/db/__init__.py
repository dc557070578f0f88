"""PostgreSQL connection and SQL store."""
