"""
Project Review Queue.

Reconciles student deletion requests against project/stage/task trees and
drives the reviewer's approve/reject workflow.
"""

__version__ = "0.1.0"
