"""
InvoFlow kernel -- persistence, domain types, and write/read services for
small-business invoicing.

Layers (inner to outer):
    db/         engine, declarative base, money helpers
    domain/     clock, DTOs, invoice lifecycle (pure, zero I/O)
    models/     SQLAlchemy ORM models
    selectors/  read-only queries returning DTOs
    services/   write-side operations (flush, never commit)
"""
