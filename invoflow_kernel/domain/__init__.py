"""Pure domain layer: clock, DTOs and the invoice lifecycle."""
