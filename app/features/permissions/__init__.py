"""
Permission catalog and claim-based route protection.
"""
