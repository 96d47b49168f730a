"""
auction - Ascending-Price Auction Round Engine

This package contains the discrete-event engine that runs a sequence of
fixed-duration ascending auctions contested by agent, ratchet and sniper
bidders.

Modules:
    simulation: Simulation context (simpy environment + random variates)
    arbiter: The exclusive resource that serializes price increments
    auction_round: One round's price state, lifecycle and settlement
    watchdog: First-bid grace monitor
    population: Bidder population generator
    orchestrator: Back-to-back round scheduling
    metrics: Per-round statistics and win summaries
"""

__version__ = "1.0.0"
