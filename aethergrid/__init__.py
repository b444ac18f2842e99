"""
AetherGrid - Commit-and-prove treasure hunt sessions on a shared ledger.

Two players who do not trust each other:
- Jointly authorize a session through a two-phase signing protocol
- Bind a private treasure location to the session with a one-way commitment
- Prove they found it with a zero-knowledge proof, never revealing it
- Let anyone resolve the winner from the verified, recorded state
"""

__version__ = "0.1.0"
