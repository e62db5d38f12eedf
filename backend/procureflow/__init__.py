"""ProcureFlow: procurement backend (material requests, purchase orders, negotiation, delivery)."""
