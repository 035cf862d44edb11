"""
Venue quoting, venue graph and cycle search.
"""
