"""Periodic fee path: vault sweep, reward distribution, creator payouts."""
