"""
bidders - Bidder Strategy Zoo

This package contains the bidder strategies competing in each round:
- AgentBidder: frequent polling, quiet until late, bids as patience collapses
- RatchetBidder: eligible early, reacts to being outbid, may be irrational
- SniperBidder: one attempt just before the close

All bidders implement the base.Bidder process interface.
"""

__version__ = "1.0.0"
