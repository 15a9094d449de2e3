"""
Review services: request store, reconciliation, edit buffer, status and workflow.
"""
