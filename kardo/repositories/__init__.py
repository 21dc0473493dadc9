"""
Persistence adapters.

Services depend on the repository interface rather than opening SQLAlchemy
sessions themselves; the core components accept any object with the same
lookup methods, which keeps them testable with in-memory fakes.
"""
