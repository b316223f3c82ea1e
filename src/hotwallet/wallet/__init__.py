"""
Keys, addresses, coin selection, transaction building and signing.
"""
