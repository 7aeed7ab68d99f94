"""
Canonical ordering for undirected two-party relationships.

Friendships and direct conversations store the pair lowest id first so that a
single unique constraint covers both directions. Every lookup, insert and delete
on those tables goes through canonical_pair().
"""


def canonical_pair(user_a_id: int, user_b_id: int) -> tuple[int, int]:
    return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)
