"""Table adapter, remote and in-memory collaborators, and event log stores."""
