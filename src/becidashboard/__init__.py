"""BECI dashboard view/state reconciliation controller."""
