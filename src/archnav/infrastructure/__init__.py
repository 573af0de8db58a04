"""Infrastructure layer: SQLite store, migrations, graph engine.

This layer depends on stdlib and third-party libs (SQLAlchemy, NetworkX)
plus the enumerations of the domain layer.
It must never import from services, commands, or output.
"""
