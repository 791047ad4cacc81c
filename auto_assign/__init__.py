"""
Reviewer Auto-Assign

A GitHub App backend that verifies pull request webhooks and requests a
review from a suggested (or otherwise assignable) user whenever a pull
request is opened without any reviewers.
"""

__version__ = "1.0.0"
__author__ = "Reviewer Auto-Assign Team"
