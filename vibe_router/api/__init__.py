"""
API Package - local HTTP surface over the provider router.
"""
