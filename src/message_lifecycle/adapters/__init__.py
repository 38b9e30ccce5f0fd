"""Port implementations: in-memory fakes and SQLAlchemy persistence."""
