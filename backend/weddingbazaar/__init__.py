"""Wedding Bazaar booking lifecycle and payment ledger service."""
