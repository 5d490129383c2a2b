"""Contract interfaces, handle registry, call gateway and role checks."""
