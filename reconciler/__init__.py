"""Reconciliation and risk-scoring rules for User Access Reviews."""
