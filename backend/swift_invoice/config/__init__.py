"""Runtime configuration: settings, database, logging and observability."""
