"""
Rolling per-channel message context used to enrich classification requests.
"""
