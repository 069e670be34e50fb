"""Session state and configuration for ZorkScaffold."""
