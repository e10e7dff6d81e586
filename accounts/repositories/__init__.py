"""
Persistence adapters.

Services depend on SQLRepository instead of opening SQLAlchemy sessions
themselves; every credential or subscription transition lives here as a
conditional update.
"""
