"""
Browser harness for the money-transfer page: request interception,
fabricated API responses, and scenario assertions over DOM and console.
"""
