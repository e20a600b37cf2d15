"""Service layer: Printful client, catalog store, sync engine and order translation."""
