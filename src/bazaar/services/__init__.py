"""Application services composing the negotiation engine with its collaborators."""
